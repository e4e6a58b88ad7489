from __future__ import annotations

import re
import uuid
from functools import lru_cache
from typing import Any, Protocol

import boto3

from ...settings import settings


class BlobStore(Protocol):
    def put(self, *, key: str, body: bytes, content_type: str | None) -> str: ...

    def presigned_url(self, *, key: str) -> str: ...

    def delete(self, *, key: str) -> None: ...


def _safe_name(file_name: str) -> str:
    raw = (file_name or "").strip().rsplit("/", 1)[-1] or "file"
    return re.sub(r"[^a-zA-Z0-9._-]", "_", raw)[:120]


def make_file_key(*, file_name: str = "", proposal_id: str | None = None) -> str:
    """Attachments are grouped by proposal; unattached uploads go under `general`."""
    owner = re.sub(r"[^a-zA-Z0-9_-]", "_", (proposal_id or "general").strip())[:80] or "general"
    return f"proposals/{owner}/{uuid.uuid4()}-{_safe_name(file_name)}"


@lru_cache(maxsize=1)
def _s3_client():
    return boto3.client("s3", region_name=settings.aws_region)


class S3BlobStore:
    def __init__(self, *, bucket_name: str | None = None, expires_in: int | None = None):
        name = (bucket_name or settings.files_bucket_name or "").strip()
        if not name:
            raise RuntimeError("FILES_BUCKET_NAME is not set")
        self.bucket_name = name
        self.expires_in = int(expires_in or settings.files_url_expires_seconds)

    def put(self, *, key: str, body: bytes, content_type: str | None) -> str:
        params: dict[str, Any] = {"Bucket": self.bucket_name, "Key": key, "Body": body}
        if content_type:
            params["ContentType"] = str(content_type)
        _s3_client().put_object(**params)
        return self.presigned_url(key=key)

    def presigned_url(self, *, key: str) -> str:
        return _s3_client().generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket_name, "Key": key},
            ExpiresIn=max(60, min(7 * 24 * 3600, self.expires_in)),
        )

    def delete(self, *, key: str) -> None:
        _s3_client().delete_object(Bucket=self.bucket_name, Key=key)
