import logging
import os
from typing import List, Optional
from uuid import uuid4

from filevault.core.errors import NotFoundError, RemoteDeleteError, ValidationError
from filevault.database.repositories import FileRepository
from filevault.database.schemas.file import FileMetadataRecord, media_fields
from filevault.database.schemas.upload import UploadResult
from filevault.media.workspace import remove_file
from filevault.services.pipeline import BufferedUpload, UploadPipeline, UploadSource
from filevault.storage.s3_store import S3ObjectStore

logger = logging.getLogger(__name__)


def unique_name(original_name: str) -> str:
    return f"{uuid4()}-{original_name}"


def _original_name(source: Optional[UploadSource]) -> str:
    if isinstance(source, BufferedUpload):
        return source.original_name
    return os.path.basename(getattr(source, "path", "") or "")


class FileService:
    """Owns file metadata records and decides when remote objects go away."""

    def __init__(self, repository: FileRepository, pipeline: UploadPipeline, store: S3ObjectStore):
        self.repository = repository
        self.pipeline = pipeline
        self.store = store

    async def upload(
        self,
        owner: str,
        source: Optional[UploadSource],
        mime_type: Optional[str] = None,
        size_bytes: Optional[int] = None,
    ) -> FileMetadataRecord:
        result = await self.pipeline.handle_upload(source, mime_type, size_bytes)

        record = FileMetadataRecord(
            name=unique_name(_original_name(source)),
            owner=owner,
            mime_type=mime_type,
            **media_fields(result),
        )
        try:
            return await self.repository.create(record)
        except Exception:
            logger.exception("Failed to save file record, removing uploaded objects")
            await self._discard_result(result)
            raise

    async def list_files(self, owner: str) -> List[FileMetadataRecord]:
        return await self.repository.find_by_owner(owner)

    async def get_file(self, owner: str, file_id: str) -> FileMetadataRecord:
        record = await self.repository.find_by_id(file_id)
        if record is None or record.owner != owner:
            raise NotFoundError("File not found")
        return record

    async def update(
        self,
        owner: str,
        file_id: str,
        source: Optional[UploadSource],
        mime_type: Optional[str] = None,
        size_bytes: Optional[int] = None,
    ) -> FileMetadataRecord:
        if source is None:
            raise ValidationError("File is required")
        try:
            previous = await self.get_file(owner, file_id)
        except Exception:
            # the buffered body is ours to drop even when nothing gets uploaded
            if isinstance(source, BufferedUpload):
                remove_file(source.path)
            raise

        # new content must be stored before the old one is touched
        result = await self.pipeline.handle_upload(source, mime_type, size_bytes)

        kept = set(result.remote_ids())
        stale = [(rid, kind) for rid, kind in previous.remote_objects() if rid not in kept]
        if stale:
            try:
                if not await self.store.delete_objects(stale):
                    logger.warning("Could not delete old remote objects for file %s", file_id)
            except Exception:
                logger.exception("Error while trying to delete old remote objects for file %s", file_id)

        fields = media_fields(result)
        fields.update(name=unique_name(_original_name(source)), mime_type=mime_type)
        updated = await self.repository.update(file_id, fields)
        if updated is None:
            await self._discard_result(result)
            raise NotFoundError("File not found")
        return updated

    async def delete(self, owner: str, file_id: str) -> None:
        record = await self.get_file(owner, file_id)

        if not await self.store.delete_objects(record.remote_objects()):
            raise RemoteDeleteError("Failed to delete file from remote storage", context={"file_id": file_id})

        await self.repository.delete(file_id)
        logger.info("Deleted file %s", file_id)

    async def _discard_result(self, result: UploadResult) -> None:
        await self.store.delete_objects((rid, result.resource_kind) for rid in result.remote_ids())
