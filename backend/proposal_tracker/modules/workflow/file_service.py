from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any

from ...errors import AuthorizationError, InternalError, NotFoundError, ValidationError
from ...infrastructure.storage.blob_store import make_file_key
from ...observability.logging import get_logger
from ...repositories.base_repository import now_iso
from ...store import Store
from .access import can_access_file, can_delete_file, can_upload_file
from .models import ActivityRecord, Actor, Proposal

log = get_logger("files")

ALLOWED_CONTENT_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "text/plain",
        "text/csv",
        "image/jpeg",
        "image/png",
        "image/gif",
        "application/zip",
        "application/x-zip-compressed",
    }
)

UPLOAD_FILE_TYPES = ("project", "estimation")


@dataclass(frozen=True, slots=True)
class IncomingFile:
    original_name: str
    content_type: str
    body: bytes

    @property
    def size(self) -> int:
        return len(self.body)


@dataclass
class FileService:
    store: Store
    max_files: int = 10
    max_file_size: int = 25 * 1024 * 1024

    def _proposal(self, proposal_id: str | None) -> Proposal | None:
        pid = str(proposal_id or "").strip()
        if not pid:
            return None
        proposal = self.store.proposals.get_proposal(pid)
        if proposal is None:
            raise NotFoundError("Proposal not found", details={"proposalId": pid})
        return proposal

    def _log_activity(self, actor: Actor, kind: str, file: dict[str, Any], proposal: Proposal | None) -> None:
        name = file.get("originalName") or file.get("title") or file.get("url") or ""
        verb = "uploaded" if kind == "file_uploaded" else "deleted"
        record = ActivityRecord(
            type=kind,
            proposal_id=proposal.id if proposal else file.get("proposalId"),
            project_name=proposal.project_name if proposal else None,
            client_company=proposal.client_company if proposal else None,
            performed_by_uid=actor.uid,
            performed_by_name=actor.name,
            performed_by_role=actor.role.value,
            details=f"File {verb}: {name}",
            timestamp=now_iso(),
            metadata={"fileId": file.get("id"), "fileType": file.get("fileType")},
        )
        try:
            self.store.activities.create(record)
        except Exception:
            log.warning("activity_write_failed", activity_type=kind, file_id=file.get("id"), exc_info=True)

    def decorate(self, actor: Actor, file: dict[str, Any], proposal: Proposal | None) -> dict[str, Any]:
        can_view = can_access_file(actor, file, proposal)
        is_link = file.get("fileType") == "link"
        out = {
            **file,
            "canView": can_view,
            "canDownload": can_view and not is_link,
            "canDelete": can_delete_file(actor, file),
        }
        if can_view and not is_link and file.get("fileName"):
            try:
                out["downloadUrl"] = self.store.blobs.presigned_url(key=str(file["fileName"]))
            except Exception:
                log.warning("file_presign_failed", file_id=file.get("id"), exc_info=True)
                out["downloadUrl"] = None
        return out

    # --- reads ---

    def get_file(self, actor: Actor, file_id: str) -> dict[str, Any]:
        file = self.store.files.get(file_id)
        if not file:
            raise NotFoundError("File not found", details={"fileId": file_id})
        proposal = self.store.proposals.get_proposal(str(file["proposalId"])) if file.get("proposalId") else None
        if not can_access_file(actor, file, proposal):
            raise AuthorizationError("You do not have access to this file")
        return self.decorate(actor, file, proposal)

    def list_files(self, actor: Actor, *, proposal_id: str | None = None) -> list[dict[str, Any]]:
        proposal = self._proposal(proposal_id)
        files = self.store.files.list_files(proposal_id=proposal.id if proposal else None)

        cache: dict[str, Proposal | None] = {}
        if proposal:
            cache[proposal.id] = proposal
        out: list[dict[str, Any]] = []
        for f in files:
            pid = f.get("proposalId")
            owner = None
            if pid:
                if pid not in cache:
                    cache[pid] = self.store.proposals.get_proposal(str(pid))
                owner = cache[pid]
            if can_access_file(actor, f, owner):
                out.append(self.decorate(actor, f, owner))
        return out

    # --- writes ---

    def upload(
        self,
        actor: Actor,
        *,
        files: list[IncomingFile],
        proposal_id: str | None,
        file_type: str,
    ) -> list[dict[str, Any]]:
        """
        Store every blob, then every metadata record. If any blob fails, the
        ones already stored are removed and nothing is recorded.
        """
        if not files:
            raise ValidationError("No files provided")
        if len(files) > self.max_files:
            raise ValidationError(f"Too many files (max {self.max_files})")
        kind = str(file_type or "project").strip().lower()
        if kind not in UPLOAD_FILE_TYPES:
            raise ValidationError("Invalid fileType", details={"allowed": list(UPLOAD_FILE_TYPES)})
        for f in files:
            if f.content_type not in ALLOWED_CONTENT_TYPES:
                raise ValidationError(f"File type not allowed: {f.content_type}", details={"file": f.original_name})
            if f.size > self.max_file_size:
                raise ValidationError(
                    f"File too large: {f.original_name}",
                    details={"maxBytes": self.max_file_size, "size": f.size},
                )

        proposal = self._proposal(proposal_id)
        if not can_upload_file(actor, kind, proposal):
            raise AuthorizationError(f"Role '{actor.role.value}' cannot upload {kind} files here")

        def _put(f: IncomingFile) -> tuple[IncomingFile, str, str]:
            key = make_file_key(file_name=f.original_name, proposal_id=proposal.id if proposal else None)
            url = self.store.blobs.put(key=key, body=f.body, content_type=f.content_type)
            return f, key, url

        stored: list[tuple[IncomingFile, str, str]] = []
        failed = False
        with ThreadPoolExecutor(max_workers=min(4, len(files))) as ex:
            futures = [ex.submit(_put, f) for f in files]
            for fut in as_completed(futures):
                try:
                    stored.append(fut.result())
                except Exception:
                    failed = True
                    log.exception("file_upload_failed", proposal_id=proposal_id)

        if failed:
            for _f, key, _url in stored:
                try:
                    self.store.blobs.delete(key=key)
                except Exception:
                    log.warning("file_blob_cleanup_failed", key=key, exc_info=True)
            raise InternalError("File upload failed")

        now = now_iso()
        created: list[dict[str, Any]] = []
        for f, key, url in stored:
            record = self.store.files.create(
                {
                    "originalName": f.original_name,
                    "fileName": key,
                    "url": url,
                    "mimeType": f.content_type,
                    "fileSize": f.size,
                    "proposalId": proposal.id if proposal else None,
                    "fileType": kind,
                    "uploadedByUid": actor.uid,
                    "uploadedByName": actor.name,
                    "uploadedByRole": actor.role.value,
                    "uploadedAt": now,
                }
            )
            created.append(record)

        log.info("files_uploaded", count=len(created), proposal_id=proposal_id, file_type=kind, actor_uid=actor.uid)
        for record in created:
            self._log_activity(actor, "file_uploaded", record, proposal)
        return [self.decorate(actor, r, proposal) for r in created]

    def add_link(self, actor: Actor, *, proposal_id: str | None, url: str, title: str | None = None) -> dict[str, Any]:
        link = str(url or "").strip()
        if not link.lower().startswith(("http://", "https://")):
            raise ValidationError("A valid http(s) url is required")
        proposal = self._proposal(proposal_id)
        if not can_upload_file(actor, "link", proposal):
            raise AuthorizationError(f"Role '{actor.role.value}' cannot add links here")

        record = self.store.files.create(
            {
                "originalName": str(title or "").strip() or link,
                "title": str(title or "").strip() or None,
                "url": link,
                "proposalId": proposal.id if proposal else None,
                "fileType": "link",
                "uploadedByUid": actor.uid,
                "uploadedByName": actor.name,
                "uploadedByRole": actor.role.value,
                "uploadedAt": now_iso(),
            }
        )
        self._log_activity(actor, "file_uploaded", record, proposal)
        return self.decorate(actor, record, proposal)

    def delete(self, actor: Actor, file_id: str | None) -> None:
        fid = str(file_id or "").strip()
        if not fid:
            raise ValidationError("File id is required")
        file = self.store.files.get(fid)
        if not file:
            raise NotFoundError("File not found", details={"fileId": fid})
        if not can_delete_file(actor, file):
            raise AuthorizationError("Only the uploader or a director can delete this file")

        self.store.files.delete(fid)
        if file.get("fileType") != "link" and file.get("fileName"):
            try:
                self.store.blobs.delete(key=str(file["fileName"]))
            except Exception:
                log.warning("file_blob_delete_failed", file_id=fid, exc_info=True)

        proposal = self.store.proposals.get_proposal(str(file["proposalId"])) if file.get("proposalId") else None
        log.info("file_deleted", file_id=fid, actor_uid=actor.uid)
        self._log_activity(actor, "file_deleted", file, proposal)
