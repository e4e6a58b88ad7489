from __future__ import annotations

from fastapi import Depends, Request

from .errors import AuthenticationError
from .modules.identity.identity import resolve_actor
from .modules.workflow.file_service import FileService
from .modules.workflow.models import Actor
from .modules.workflow.workflow_service import WorkflowService, defaults_from_settings
from .settings import settings
from .store import Store, get_store


def get_current_actor(request: Request, store: Store = Depends(get_store)) -> Actor:
    """The workflow actor behind the verified bearer token (set by AuthMiddleware)."""
    cached = getattr(request.state, "actor", None)
    if isinstance(cached, Actor):
        return cached
    user = getattr(request.state, "user", None)
    if user is None:
        raise AuthenticationError("Not authenticated")
    actor = resolve_actor(user, store.users)
    request.state.actor = actor
    return actor


def get_workflow_service(store: Store = Depends(get_store)) -> WorkflowService:
    return WorkflowService(store=store, defaults=defaults_from_settings(settings))


def get_file_service(store: Store = Depends(get_store)) -> FileService:
    return FileService(
        store=store,
        max_files=settings.max_files_per_upload,
        max_file_size=settings.max_file_size_bytes,
    )
