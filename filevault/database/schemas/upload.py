from pydantic import BaseModel, ConfigDict
from typing import List, Optional, Tuple


class StreamEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier_name: str
    url: str
    remote_id: str


class UploadResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    remote_id: str
    resource_kind: str  # image | video | raw
    format: Optional[str] = None
    size_bytes: int
    width: Optional[int] = None
    height: Optional[int] = None
    duration_seconds: Optional[float] = None
    thumbnail_url: Optional[str] = None
    is_adaptive_stream: bool = False
    stream_entries: Optional[Tuple[StreamEntry, ...]] = None

    def remote_ids(self) -> List[str]:
        """Every remote object this result references, master first."""
        ids = [self.remote_id]
        for entry in self.stream_entries or ():
            if entry.remote_id not in ids:
                ids.append(entry.remote_id)
        return ids
