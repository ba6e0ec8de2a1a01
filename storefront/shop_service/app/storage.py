"""Blob storage for product images."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol

from .metrics import BLOB_OPERATIONS_TOTAL


class BlobStorage(Protocol):
    async def upload(self, bucket: str, path: str, data: bytes, content_type: str | None) -> str:
        ...

    async def delete(self, bucket: str, path: str) -> None:
        ...

    async def close(self) -> None:
        ...


class LocalBlobStorage:
    """Filesystem-backed storage useful for local development and tests.

    Objects live at ``<base_path>/<bucket>/<path>``. When ``base_url`` is set
    the returned URL is ``<base_url>/<bucket>/<path>``; otherwise it is
    ``<bucket>/<path>``.
    """

    def __init__(self, base_path: Path, base_url: str | None = None) -> None:
        self._base_path = base_path
        self._base_url = base_url.rstrip("/") if base_url else None

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str | None) -> str:
        relative = self._relative(bucket, path)
        target = self._base_path / relative
        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(target.write_bytes, data)
        BLOB_OPERATIONS_TOTAL.labels(operation="upload").inc()
        return self._build_url(relative)

    async def delete(self, bucket: str, path: str) -> None:
        target = self._base_path / self._relative(bucket, path)
        await asyncio.to_thread(target.unlink, missing_ok=True)
        BLOB_OPERATIONS_TOTAL.labels(operation="delete").inc()

    async def close(self) -> None:
        return None

    def _relative(self, bucket: str, path: str) -> str:
        safe_bucket = bucket.strip("/")
        safe_path = path.lstrip("/")
        if not safe_bucket or not safe_path or ".." in Path(safe_path).parts:
            raise ValueError(f"invalid blob location {bucket!r}/{path!r}")
        return f"{safe_bucket}/{safe_path}"

    def _build_url(self, relative_path: str) -> str:
        if self._base_url is not None:
            return f"{self._base_url}/{relative_path}"
        return relative_path
