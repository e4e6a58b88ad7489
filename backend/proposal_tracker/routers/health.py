from __future__ import annotations

from fastapi import APIRouter

from .. import __version__
from ..settings import settings

router = APIRouter()


@router.get("/", tags=["health"])
def health():
    return {
        "message": "Proposal Workflow Tracker API",
        "version": __version__,
        "status": "running",
        "environment": settings.normalized_environment,
        "dynamodb": "configured" if settings.ddb_table_name else "missing",
        "endpoints": [
            "GET /api/auth/me",
            "GET /api/proposals",
            "POST /api/proposals",
            "PUT /api/proposals?id=",
            "DELETE /api/proposals?id=",
            "GET /api/files",
            "POST /api/files",
            "POST /api/files/links",
            "DELETE /api/files?id=",
            "GET /api/activities",
            "POST /api/activities",
            "GET /api/notifications",
            "PUT /api/notifications",
        ],
    }
