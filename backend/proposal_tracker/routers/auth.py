from __future__ import annotations

from fastapi import APIRouter, Depends

from ..dependencies import get_current_actor
from ..modules.workflow.models import Actor
from ..responses import ok

router = APIRouter(tags=["auth"])


@router.get("/me")
def me(actor: Actor = Depends(get_current_actor)):
    return ok(actor.to_dict())
