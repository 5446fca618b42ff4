import asyncio
import logging
import mimetypes
import os
import posixpath
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from urllib.parse import quote
from uuid import uuid4

import boto3
from boto3.exceptions import Boto3Error
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from filevault.core.errors import UploadError

logger = logging.getLogger(__name__)

RESOURCE_KINDS = ("image", "video", "raw")
IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".svg", ".tif", ".tiff", ".ico"})
VIDEO_KIND_EXTENSIONS = frozenset(
    {".mp4", ".avi", ".mov", ".wmv", ".flv", ".mkv", ".webm", ".m3u8", ".ts", ".mp3", ".wav", ".m4a"}
)
NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
# HEAD answers 403 for missing keys when the caller lacks s3:ListBucket
FORBIDDEN_CODES = frozenset({"403", "AccessDenied", "Forbidden"})

STORE_ERRORS = (BotoCoreError, ClientError, Boto3Error)

mimetypes.add_type("application/vnd.apple.mpegurl", ".m3u8")
mimetypes.add_type("video/mp2t", ".ts")


@dataclass(frozen=True)
class RemoteObject:
    remote_id: str
    url: str
    size_bytes: int
    resource_kind: str
    format: Optional[str] = None


def guess_resource_kind(name: str) -> str:
    _, ext = os.path.splitext(name or "")
    ext = ext.lower()
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext in VIDEO_KIND_EXTENSIONS:
        return "video"
    return "raw"


def alternate_kind(kind: str) -> str:
    return "raw" if kind != "raw" else "image"


def build_s3_client(settings):
    """Creates the boto3 S3 client from application settings."""
    return boto3.client(
        "s3",
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        region_name=settings.AWS_REGION,
        endpoint_url=settings.S3_ENDPOINT_URL or None,
        config=Config(signature_version="s3v4", retries={"max_attempts": 3}),
    )


class S3ObjectStore:
    """
    Remote object store on an S3 bucket.

    Objects are namespaced by resource kind: the remote id `files/abc.png`
    of an image lives at key `image/files/abc.png`. Callers only ever see
    the remote id and the kind.
    """

    def __init__(
        self,
        client,
        bucket: str,
        public_base_url: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        concurrency: int = 4,
    ):
        if not bucket:
            raise ValueError("AWS_S3_BUCKET is not set")
        self.client = client
        self.bucket = bucket
        self.public_base_url = public_base_url
        self.region = region
        self.endpoint_url = endpoint_url
        self.concurrency = max(1, concurrency)

    @classmethod
    def from_settings(cls, settings) -> "S3ObjectStore":
        return cls(
            build_s3_client(settings),
            bucket=settings.AWS_S3_BUCKET,
            public_base_url=settings.S3_PUBLIC_BASE_URL,
            region=settings.AWS_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
            concurrency=settings.UPLOAD_CONCURRENCY,
        )

    @staticmethod
    def object_key(remote_id: str, kind: str) -> str:
        return f"{kind}/{remote_id}"

    def public_url(self, key: str) -> str:
        path = quote(key, safe="/")
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{path}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{path}"
        region = self.region or "us-east-1"
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{path}"

    async def upload_file(
        self,
        local_path: str,
        kind_hint: str = "auto",
        folder: Optional[str] = None,
        preserve_name: bool = False,
    ) -> RemoteObject:
        if not local_path:
            raise UploadError("Local file path is required")
        if not os.path.isfile(local_path):
            raise UploadError("File not found at path", context={"path": local_path})

        basename = os.path.basename(local_path)
        if preserve_name:
            name = basename
        else:
            _, ext = os.path.splitext(basename)
            name = f"{uuid4().hex}{ext.lower()}"
        remote_id = posixpath.join(folder, name) if folder else name
        return await self._put(local_path, remote_id, self._resolve_kind(kind_hint, basename))

    async def upload_directory(
        self,
        dir_path: str,
        folder: Optional[str] = None,
        kind_hint: str = "auto",
    ) -> List[RemoteObject]:
        """
        Uploads every regular file under dir_path, keeping relative paths.

        Either every file is stored and returned, or UploadError is raised and
        the files that did make it are deleted again (best effort).
        """
        if not os.path.isdir(dir_path):
            raise UploadError("Directory not found", context={"path": dir_path})

        entries = self._collect_files(dir_path, folder)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(local_path: str, remote_id: str) -> RemoteObject:
            async with semaphore:
                return await self._put(local_path, remote_id, self._resolve_kind(kind_hint, local_path))

        results = await asyncio.gather(
            *(bounded(local_path, remote_id) for local_path, remote_id in entries),
            return_exceptions=True,
        )

        uploaded = [r for r in results if isinstance(r, RemoteObject)]
        failures = [r for r in results if isinstance(r, BaseException)]
        if not failures:
            logger.info("Uploaded %d files from %s", len(uploaded), dir_path)
            return uploaded

        logger.error("%d of %d uploads failed for %s", len(failures), len(entries), dir_path)
        await self.discard(uploaded)
        first = failures[0]
        if isinstance(first, UploadError):
            first.context.update({"failed": len(failures), "total": len(entries)})
            raise first
        raise UploadError(
            f"Directory upload failed: {first}",
            context={"failed": len(failures), "total": len(entries)},
        ) from first

    async def delete_object(self, remote_id: str, kind_hint: Optional[str] = None) -> bool:
        """
        Deletes one object. Deleting something already gone counts as success.

        The object is looked up under the hinted kind first and, if it is not
        there, under the alternate kind. When a lookup is forbidden, both keys
        are deleted blindly, since DeleteObject on a missing key succeeds.
        Returns False only when the store itself failed.
        """
        if not remote_id:
            logger.error("No remote id provided for deletion")
            return False

        first = kind_hint if kind_hint in RESOURCE_KINDS else guess_resource_kind(remote_id)
        keys = [self.object_key(remote_id, kind) for kind in (first, alternate_kind(first))]
        try:
            for key in keys:
                found = await asyncio.to_thread(self._exists, key)
                if found is None:
                    for blind_key in keys:
                        await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=blind_key)
                    logger.info("Deleted remote object %s without lookup", remote_id)
                    return True
                if found:
                    await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
                    logger.info("Deleted remote object %s", key)
                    return True
        except STORE_ERRORS:
            logger.warning("Failed to delete %s", remote_id, exc_info=True)
            return False

        logger.info("Remote object %s not found, treating as deleted", remote_id)
        return True

    async def delete_objects(self, objects: Iterable[Tuple[str, Optional[str]]]) -> bool:
        """Deletes (remote_id, kind) pairs. True only if all deletions succeeded."""
        results = await asyncio.gather(
            *(self.delete_object(remote_id, kind) for remote_id, kind in objects)
        )
        return all(results)

    async def discard(self, objects: Iterable[RemoteObject]) -> None:
        objects = list(objects)
        if not objects:
            return
        if not await self.delete_objects((o.remote_id, o.resource_kind) for o in objects):
            logger.warning("Some of %d orphaned remote objects could not be deleted", len(objects))

    async def _put(self, local_path: str, remote_id: str, kind: str) -> RemoteObject:
        key = self.object_key(remote_id, kind)
        content_type = mimetypes.guess_type(local_path)[0] or "application/octet-stream"
        try:
            size = os.path.getsize(local_path)
            await asyncio.to_thread(
                self.client.upload_file,
                local_path,
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except STORE_ERRORS + (OSError,) as e:
            logger.error("Upload failed for %s: %s", key, e)
            raise UploadError(f"Remote upload error: {e}", context={"key": key}) from e

        _, ext = os.path.splitext(local_path)
        return RemoteObject(
            remote_id=remote_id,
            url=self.public_url(key),
            size_bytes=size,
            resource_kind=kind,
            format=ext.lstrip(".").lower() or None,
        )

    def _exists(self, key: str) -> Optional[bool]:
        """True/False from HEAD, None when HEAD is forbidden and cannot tell."""
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in NOT_FOUND_CODES:
                return False
            if code in FORBIDDEN_CODES:
                return None
            raise

    @staticmethod
    def _resolve_kind(kind_hint: str, name: str) -> str:
        if kind_hint in RESOURCE_KINDS:
            return kind_hint
        return guess_resource_kind(name)

    @staticmethod
    def _collect_files(dir_path: str, folder: Optional[str]) -> List[Tuple[str, str]]:
        entries = []
        for current, dirnames, filenames in os.walk(dir_path):
            dirnames.sort()
            for filename in sorted(filenames):
                local_path = os.path.join(current, filename)
                if not os.path.isfile(local_path) or os.path.islink(local_path):
                    continue
                relative = os.path.relpath(local_path, dir_path).replace(os.sep, "/")
                remote_id = posixpath.join(folder, relative) if folder else relative
                entries.append((local_path, remote_id))
        return entries
