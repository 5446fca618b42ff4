from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime

from filevault.database.schemas.upload import UploadResult


def utcnow() -> datetime:
    return datetime.utcnow()


class HlsStream(BaseModel):
    quality: str
    url: str
    remote_id: str


class FileMetadataRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(default=None, alias="_id")
    name: str
    owner: str
    url: str
    remote_id: str
    size: int  # bytes
    format: Optional[str] = None
    resource_type: str  # image | video | raw
    mime_type: Optional[str] = None

    duration: Optional[float] = None  # seconds
    width: Optional[int] = None
    height: Optional[int] = None
    thumbnail_url: Optional[str] = None

    status: str = Field(default="ready")  # processing | ready | error
    is_hls: bool = False
    hls_streams: List[HlsStream] = Field(default_factory=list)
    master_playlist_url: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def file_type(self) -> str:
        if self.resource_type == "video":
            return "video"
        if self.resource_type == "image":
            return "image"
        return "document"

    def remote_objects(self) -> List[tuple]:
        """(remote_id, resource kind) for every stored object, master first."""
        objects = [(self.remote_id, self.resource_type)]
        for stream in self.hls_streams:
            if stream.remote_id != self.remote_id:
                objects.append((stream.remote_id, self.resource_type))
        return objects

    def to_document(self) -> dict:
        return self.model_dump(exclude={"id"})

    def to_response(self) -> dict:
        data = self.model_dump(by_alias=True, mode="json")
        data["fileType"] = self.file_type
        return data


def media_fields(result: UploadResult) -> dict:
    """Record fields that come straight from a pipeline result."""
    return {
        "url": result.url,
        "remote_id": result.remote_id,
        "size": result.size_bytes,
        "format": result.format,
        "resource_type": result.resource_kind,
        "duration": result.duration_seconds,
        "width": result.width,
        "height": result.height,
        "thumbnail_url": result.thumbnail_url,
        "is_hls": result.is_adaptive_stream,
        "hls_streams": [
            {"quality": e.tier_name, "url": e.url, "remote_id": e.remote_id}
            for e in result.stream_entries or ()
        ],
        "master_playlist_url": result.url if result.is_adaptive_stream else None,
    }
