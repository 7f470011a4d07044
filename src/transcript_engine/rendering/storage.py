"""Durable object stores for rendered certificates.

Each approval attempt stores its PDF under a name that includes the
verification code printed on it, so two attempts on one request never write
to the same object. The attempt whose status flip commits keeps its object;
a losing or failed attempt deletes its own.
"""

import asyncio
import logging
import os
import secrets
from abc import ABC, abstractmethod
from pathlib import Path

from transcript_engine.common.config import TranscriptSettings
from transcript_engine.common.exceptions import StorageFailureError

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


def certificate_object_name(student_usn: str, request_id: str, verification_code: str) -> str:
    return f"{student_usn}/certificate_{request_id}_{verification_code}.pdf"


class ObjectStore(ABC):
    """Named artifact storage. Returned refs are the object names."""

    @abstractmethod
    async def put(self, name: str, data: bytes, content_type: str = PDF_CONTENT_TYPE) -> str:
        """Store ``data`` under ``name`` (overwriting) and return its reference."""

    @abstractmethod
    async def get(self, ref: str) -> bytes:
        """Return the bytes stored under ``ref``."""

    @abstractmethod
    async def delete(self, ref: str) -> None:
        """Remove ``ref``; a missing object is not an error."""

    @abstractmethod
    async def exists(self, ref: str) -> bool:
        ...

    @abstractmethod
    async def list_names(self, prefix: str = "") -> list[str]:
        """Object names under ``prefix``, sorted. Used for operator inspection."""


class LocalObjectStore(ObjectStore):
    """Filesystem store rooted at a directory; writes are atomic replaces."""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def _path(self, name: str) -> Path:
        path = (self.root / name).resolve()
        if self.root not in path.parents:
            raise StorageFailureError(f"Object name escapes the store root: {name!r}")
        return path

    def _write(self, name: str, data: bytes) -> None:
        path = self._path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.{secrets.token_hex(4)}.tmp")
        try:
            tmp.write_bytes(data)
            os.replace(tmp, path)
        finally:
            if tmp.exists():
                tmp.unlink()

    async def put(self, name: str, data: bytes, content_type: str = PDF_CONTENT_TYPE) -> str:
        try:
            await asyncio.to_thread(self._write, name, data)
        except OSError as exc:
            raise StorageFailureError(f"Could not write '{name}': {exc}") from exc
        logger.debug("Stored %s (%d bytes)", name, len(data))
        return name

    async def get(self, ref: str) -> bytes:
        try:
            return await asyncio.to_thread(self._path(ref).read_bytes)
        except OSError as exc:
            raise StorageFailureError(f"Could not read '{ref}': {exc}") from exc

    async def delete(self, ref: str) -> None:
        try:
            await asyncio.to_thread(self._path(ref).unlink, missing_ok=True)
        except OSError as exc:
            raise StorageFailureError(f"Could not delete '{ref}': {exc}") from exc

    async def exists(self, ref: str) -> bool:
        return await asyncio.to_thread(self._path(ref).is_file)

    async def list_names(self, prefix: str = "") -> list[str]:
        def _scan() -> list[str]:
            if not self.root.exists():
                return []
            names = []
            for path in self.root.rglob("*"):
                if path.is_file() and not path.name.startswith("."):
                    name = path.relative_to(self.root).as_posix()
                    if name.startswith(prefix):
                        names.append(name)
            return sorted(names)

        return await asyncio.to_thread(_scan)


class S3ObjectStore(ObjectStore):
    """S3-compatible bucket store; ``put_object`` on an existing key overwrites it."""

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        client=None,
    ):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url or None
        self._client = client

    def _get_client(self):
        """Lazy-init the boto3 client."""
        if self._client is None:
            import boto3
            from botocore.config import Config

            self._client = boto3.client(
                "s3",
                region_name=self.region,
                endpoint_url=self.endpoint_url,
                config=Config(retries={"max_attempts": 3, "mode": "standard"}),
            )
        return self._client

    async def _call(self, op: str, ref: str, **kwargs):
        from botocore.exceptions import BotoCoreError, ClientError

        client = self._get_client()
        try:
            return await asyncio.to_thread(getattr(client, op), Bucket=self.bucket, **kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise StorageFailureError(f"S3 {op} failed for '{ref}': {exc}") from exc

    async def put(self, name: str, data: bytes, content_type: str = PDF_CONTENT_TYPE) -> str:
        await self._call("put_object", name, Key=name, Body=data, ContentType=content_type)
        logger.debug("Uploaded s3://%s/%s (%d bytes)", self.bucket, name, len(data))
        return name

    async def get(self, ref: str) -> bytes:
        response = await self._call("get_object", ref, Key=ref)
        return await asyncio.to_thread(response["Body"].read)

    async def delete(self, ref: str) -> None:
        await self._call("delete_object", ref, Key=ref)

    async def exists(self, ref: str) -> bool:
        try:
            await self._call("head_object", ref, Key=ref)
        except StorageFailureError:
            return False
        return True

    async def list_names(self, prefix: str = "") -> list[str]:
        response = await self._call("list_objects_v2", prefix, Prefix=prefix)
        return sorted(obj["Key"] for obj in response.get("Contents", []))


def create_object_store(settings: TranscriptSettings) -> ObjectStore:
    if settings.storage_backend == "s3":
        return S3ObjectStore(
            settings.s3_bucket,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
        )
    if settings.storage_backend == "local":
        return LocalObjectStore(settings.storage_dir)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend!r}")
