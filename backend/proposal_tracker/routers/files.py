from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, File, Form, Query, UploadFile
from starlette.concurrency import run_in_threadpool

from ..dependencies import get_current_actor, get_file_service
from ..modules.workflow.file_service import FileService, IncomingFile
from ..modules.workflow.models import Actor
from ..responses import ok

router = APIRouter(tags=["files"])


@router.get("")
def get_files(
    file_id: str | None = Query(default=None, alias="fileId"),
    proposal_id: str | None = Query(default=None, alias="proposalId"),
    actor: Actor = Depends(get_current_actor),
    service: FileService = Depends(get_file_service),
):
    if file_id:
        return ok(service.get_file(actor, file_id))
    files = service.list_files(actor, proposal_id=proposal_id)
    return ok(files, count=len(files))


@router.post("", status_code=201)
async def upload_files(
    files: list[UploadFile] = File(...),
    proposal_id: str | None = Form(default=None, alias="proposalId"),
    file_type: str = Form(default="project", alias="fileType"),
    actor: Actor = Depends(get_current_actor),
    service: FileService = Depends(get_file_service),
):
    incoming: list[IncomingFile] = []
    for f in files:
        incoming.append(
            IncomingFile(
                original_name=f.filename or "file",
                content_type=(f.content_type or "application/octet-stream").lower(),
                body=await f.read(),
            )
        )

    created = await run_in_threadpool(
        service.upload,
        actor,
        files=incoming,
        proposal_id=proposal_id,
        file_type=file_type,
    )
    return ok(created, message=f"{len(created)} file(s) uploaded successfully", count=len(created))


@router.post("/links", status_code=201)
def add_link(
    body: dict[str, Any] | None = Body(default=None),
    actor: Actor = Depends(get_current_actor),
    service: FileService = Depends(get_file_service),
):
    payload = body or {}
    link = service.add_link(
        actor,
        proposal_id=payload.get("proposalId"),
        url=str(payload.get("url") or ""),
        title=payload.get("title"),
    )
    return ok(link, message="Link added successfully")


@router.delete("")
def delete_file(
    id: str | None = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    service: FileService = Depends(get_file_service),
):
    service.delete(actor, id)
    return ok(message="File deleted successfully")
