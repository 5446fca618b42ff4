"""
Upload pipeline.

One `PipelineRun` per upload call walks the states

    RECEIVED -> VALIDATED -> (DIRECT | PROBING -> TRANSCODING) -> UPLOADING -> COMPLETED

and lands in ABORTED on any error. Non-video files go to the object store as
they are; video files are transcoded into HLS renditions inside a scoped
workspace and the whole rendition set is uploaded. The run either returns a
complete `UploadResult` or raises, and in both cases it removes the workspace
and the caller's buffered input file before returning.
"""

import asyncio
import logging
import mimetypes
import os
import posixpath
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union
from uuid import uuid4

from filevault.core.errors import FileVaultError, PipelineError, ValidationError
from filevault.database.schemas.upload import StreamEntry, UploadResult
from filevault.media.inspector import MediaInspector, MediaProbe, is_video_path
from filevault.media.transcoder import MASTER_PLAYLIST_NAME, RenditionTranscoder
from filevault.media.workspace import remove_file, scoped_workspace
from filevault.storage.s3_store import RemoteObject, S3ObjectStore

logger = logging.getLogger(__name__)

MIB = 1024 * 1024


class PipelineState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    DIRECT = "direct"
    PROBING = "probing"
    TRANSCODING = "transcoding"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class LocalPath:
    """A file that already lives on disk and belongs to the caller."""
    path: str


@dataclass(frozen=True)
class BufferedUpload:
    """A request body buffered to a temp file; the pipeline deletes it."""
    path: str
    original_name: str


UploadSource = Union[LocalPath, BufferedUpload]


@dataclass(frozen=True)
class UploadInput:
    local_path: str
    original_name: str
    mime_type: str
    size_bytes: int
    is_temporary: bool = False


@dataclass(frozen=True)
class PipelineConfig:
    max_upload_bytes: int = 100 * MIB
    temp_dir: str = "./public/temp"
    segment_duration_seconds: int = 10
    max_width: int = 1920
    upload_folder: str = "files"
    hls_folder: str = "hls"

    @classmethod
    def from_settings(cls, settings) -> "PipelineConfig":
        return cls(
            max_upload_bytes=settings.MAX_UPLOAD_SIZE,
            temp_dir=settings.TEMP_DIR,
            segment_duration_seconds=settings.HLS_SEGMENT_DURATION,
            max_width=settings.HLS_MAX_WIDTH,
            upload_folder=settings.UPLOAD_FOLDER,
            hls_folder=settings.HLS_FOLDER,
        )


def resolve_upload_input(
    source: Optional[UploadSource],
    mime_type: Optional[str] = None,
    size_bytes: Optional[int] = None,
) -> UploadInput:
    if source is None:
        raise ValidationError("File is required")
    if isinstance(source, BufferedUpload):
        path, name, temporary = source.path, source.original_name, True
    elif isinstance(source, LocalPath):
        path, name, temporary = source.path, os.path.basename(source.path), False
    else:
        raise ValidationError("Unsupported upload source")
    if not path:
        raise ValidationError("File is required")

    if size_bytes is None:
        size_bytes = os.path.getsize(path) if os.path.isfile(path) else 0
    mime_type = mime_type or mimetypes.guess_type(name or path)[0] or "application/octet-stream"
    return UploadInput(
        local_path=path,
        original_name=name or os.path.basename(path),
        mime_type=mime_type,
        size_bytes=size_bytes,
        is_temporary=temporary,
    )


def source_folder_name(upload_input: UploadInput) -> str:
    """Remote folder for one rendition set, unique per call."""
    stem, _ = os.path.splitext(os.path.basename(upload_input.local_path))
    stem = re.sub(r"[^A-Za-z0-9_-]+", "-", stem).strip("-") or "video"
    return f"{stem}-{uuid4().hex[:12]}"


class UploadPipeline:
    def __init__(
        self,
        inspector: MediaInspector,
        transcoder: RenditionTranscoder,
        store: S3ObjectStore,
        config: Optional[PipelineConfig] = None,
    ):
        self.inspector = inspector
        self.transcoder = transcoder
        self.store = store
        self.config = config or PipelineConfig()

    async def handle_upload(
        self,
        source: Optional[UploadSource],
        mime_type: Optional[str] = None,
        size_bytes: Optional[int] = None,
    ) -> UploadResult:
        return await PipelineRun(self, source, mime_type, size_bytes).execute()


class PipelineRun:
    def __init__(
        self,
        pipeline: UploadPipeline,
        source: Optional[UploadSource],
        mime_type: Optional[str] = None,
        size_bytes: Optional[int] = None,
    ):
        self.pipeline = pipeline
        self.source = source
        self.mime_type = mime_type
        self.size_bytes = size_bytes
        self.state = PipelineState.RECEIVED
        self.history: List[PipelineState] = [PipelineState.RECEIVED]

    def transition(self, state: PipelineState) -> None:
        logger.debug("Upload pipeline %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    async def execute(self) -> UploadResult:
        temp_path = self.source.path if isinstance(self.source, BufferedUpload) else None
        try:
            upload_input = self._validate()
            if is_video_path(upload_input.local_path):
                self.transition(PipelineState.PROBING)
                probe = await self.pipeline.inspector.probe(upload_input.local_path)
            else:
                probe = MediaProbe(is_video=False)

            if probe.is_video:
                result = await self._process_video(upload_input, probe)
            else:
                self.transition(PipelineState.DIRECT)
                result = await self._upload_direct(upload_input)

            self.transition(PipelineState.COMPLETED)
            logger.info(
                "Upload completed: %s -> %s (%d bytes)",
                upload_input.original_name, result.remote_id, result.size_bytes,
            )
            return result
        except FileVaultError as e:
            e.context.setdefault("stage", self.state.value)
            self._abort(e)
            raise
        except asyncio.CancelledError:
            self._abort(None)
            raise
        except Exception as e:
            stage = self.state.value
            self._abort(e)
            raise PipelineError(f"Upload failed during {stage}: {e}", context={"stage": stage}) from e
        finally:
            if temp_path:
                remove_file(temp_path)

    def _abort(self, error: Optional[BaseException]) -> None:
        failed_stage = self.state.value
        self.transition(PipelineState.ABORTED)
        if error is None:
            logger.warning("Upload cancelled during %s", failed_stage)
        else:
            logger.error("Upload aborted during %s: %s", failed_stage, error)

    def _validate(self) -> UploadInput:
        config = self.pipeline.config
        upload_input = resolve_upload_input(self.source, self.mime_type, self.size_bytes)

        if upload_input.size_bytes > config.max_upload_bytes:
            raise ValidationError(
                f"File size too large. Maximum allowed size is {config.max_upload_bytes // MIB} MB"
            )
        path = upload_input.local_path
        if not os.path.isfile(path) or not os.access(path, os.R_OK):
            raise ValidationError("File not found or unreadable")
        actual_size = os.path.getsize(path)
        if upload_input.size_bytes <= 0 or actual_size == 0:
            raise ValidationError("File is empty")
        if actual_size > config.max_upload_bytes:
            raise ValidationError(
                f"File size too large. Maximum allowed size is {config.max_upload_bytes // MIB} MB"
            )

        self.transition(PipelineState.VALIDATED)
        return upload_input

    async def _upload_direct(self, upload_input: UploadInput) -> UploadResult:
        self.transition(PipelineState.UPLOADING)
        remote = await self.pipeline.store.upload_file(
            upload_input.local_path,
            kind_hint="auto",
            folder=self.pipeline.config.upload_folder,
        )
        return UploadResult(
            url=remote.url,
            remote_id=remote.remote_id,
            resource_kind=remote.resource_kind,
            format=remote.format,
            size_bytes=remote.size_bytes,
            thumbnail_url=remote.url if remote.resource_kind == "image" else None,
            is_adaptive_stream=False,
        )

    async def _process_video(self, upload_input: UploadInput, probe: MediaProbe) -> UploadResult:
        config = self.pipeline.config
        folder = posixpath.join(config.hls_folder, source_folder_name(upload_input))

        async with scoped_workspace(config.temp_dir, prefix="hls") as workspace:
            self.transition(PipelineState.TRANSCODING)
            renditions = await self.pipeline.transcoder.transcode(
                upload_input.local_path,
                probe,
                workspace,
                segment_duration_seconds=config.segment_duration_seconds,
                max_width=config.max_width,
            )
            self.transition(PipelineState.UPLOADING)
            objects = await self.pipeline.store.upload_directory(renditions.root_dir, folder=folder)

        master = next(
            (o for o in objects if posixpath.basename(o.remote_id) == MASTER_PLAYLIST_NAME), None
        )
        if master is None:
            await self.pipeline.store.discard(objects)
            raise PipelineError("Master playlist missing from uploaded renditions", context={"folder": folder})

        entries = tuple(
            StreamEntry(tier_name=self._tier_of(o, folder), url=o.url, remote_id=o.remote_id)
            for o in objects
            if o is not master
        )
        return UploadResult(
            url=master.url,
            remote_id=master.remote_id,
            resource_kind="video",
            format="m3u8",
            size_bytes=sum(o.size_bytes for o in objects),
            width=probe.width,
            height=probe.height,
            duration_seconds=probe.duration_seconds,
            is_adaptive_stream=True,
            stream_entries=entries,
        )

    @staticmethod
    def _tier_of(remote: RemoteObject, folder: str) -> str:
        relative = remote.remote_id[len(folder):].lstrip("/")
        if "/" in relative:
            return relative.split("/", 1)[0]
        return posixpath.splitext(relative)[0]
