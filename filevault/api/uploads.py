"""
Buffering of multipart uploads to local disk before they enter the pipeline.
"""

import logging
import os
import random
import time
from dataclasses import dataclass
from typing import Optional

import aiofiles
from fastapi import File, UploadFile

from filevault.core.config import settings
from filevault.core.errors import UnsupportedMediaTypeError, ValidationError
from filevault.media.workspace import ensure_dir, remove_file
from filevault.services.pipeline import BufferedUpload

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

ALLOWED_DOC_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
})


@dataclass(frozen=True)
class IncomingFile:
    source: BufferedUpload
    mime_type: str
    size_bytes: int


def is_allowed_type(mime_type: Optional[str]) -> bool:
    if not mime_type:
        return False
    if mime_type.startswith("video/") or mime_type.startswith("image/"):
        return True
    return mime_type in ALLOWED_DOC_TYPES


def buffer_filename(original_name: str) -> str:
    _, ext = os.path.splitext(original_name or "")
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{unique_suffix}{ext.lower()}"


async def buffer_upload(
    file: UploadFile,
    temp_dir: str,
    max_bytes: int,
) -> IncomingFile:
    mime_type = (file.content_type or "").split(";")[0].strip().lower()
    if not is_allowed_type(mime_type):
        raise UnsupportedMediaTypeError("Unsupported file type")

    target_dir = ensure_dir(temp_dir)
    path = os.path.join(target_dir, buffer_filename(file.filename))
    size = 0
    try:
        async with aiofiles.open(path, "wb") as out:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise ValidationError(
                        f"File size too large. Maximum allowed size is {max_bytes // (1024 * 1024)} MB"
                    )
                await out.write(chunk)
    except BaseException:
        remove_file(path)
        raise
    finally:
        await file.close()

    logger.info("Buffered upload %s (%d bytes) to %s", file.filename, size, path)
    return IncomingFile(
        source=BufferedUpload(path=path, original_name=file.filename or os.path.basename(path)),
        mime_type=mime_type,
        size_bytes=size,
    )


async def incoming_file(file: Optional[UploadFile] = File(None)) -> IncomingFile:
    if file is None or not file.filename:
        raise ValidationError("File is required")
    return await buffer_upload(file, settings.TEMP_DIR, settings.MAX_UPLOAD_SIZE)
