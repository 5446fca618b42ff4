from functools import lru_cache

from filevault.core.config import settings
from filevault.core.database import get_files_collection
from filevault.database.repositories import FileRepository
from filevault.media.inspector import MediaInspector
from filevault.media.transcoder import RenditionTranscoder
from filevault.services.file_service import FileService
from filevault.services.pipeline import PipelineConfig, UploadPipeline
from filevault.storage.s3_store import S3ObjectStore


@lru_cache
def get_object_store() -> S3ObjectStore:
    return S3ObjectStore.from_settings(settings)


@lru_cache
def get_upload_pipeline() -> UploadPipeline:
    return UploadPipeline(
        inspector=MediaInspector(settings.FFPROBE_PATH, timeout=settings.PROBE_TIMEOUT),
        transcoder=RenditionTranscoder(settings.FFMPEG_PATH, timeout=settings.TRANSCODE_TIMEOUT),
        store=get_object_store(),
        config=PipelineConfig.from_settings(settings),
    )


def get_file_service() -> FileService:
    return FileService(
        repository=FileRepository(get_files_collection()),
        pipeline=get_upload_pipeline(),
        store=get_object_store(),
    )
