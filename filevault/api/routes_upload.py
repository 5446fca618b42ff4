"""
Pipeline-only endpoints: upload to remote storage without a metadata record,
and delete a remote object by id.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from filevault.api.dependencies import get_object_store, get_upload_pipeline
from filevault.api.uploads import IncomingFile, incoming_file
from filevault.core.errors import RemoteDeleteError, ValidationError
from filevault.core.responses import api_response
from filevault.core.security import get_current_user
from filevault.services.pipeline import UploadPipeline
from filevault.storage.s3_store import S3ObjectStore

router = APIRouter(dependencies=[Depends(get_current_user)])


class DeleteRemoteRequest(BaseModel):
    public_id: Optional[str] = Field(default=None, alias="publicId")
    resource_type: Optional[str] = Field(default=None, alias="resourceType")


@router.post("/upload")
async def upload(
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
    incoming: IncomingFile = Depends(incoming_file),
):
    result = await pipeline.handle_upload(incoming.source, incoming.mime_type, incoming.size_bytes)
    return api_response(201, result.model_dump(), "File uploaded successfully")


@router.delete("/delete")
async def delete(
    payload: DeleteRemoteRequest,
    store: S3ObjectStore = Depends(get_object_store),
):
    if not payload.public_id:
        raise ValidationError("Public ID is required")
    if not await store.delete_object(payload.public_id, payload.resource_type):
        raise RemoteDeleteError("Failed to delete file", context={"remote_id": payload.public_id})
    return api_response(200, {"publicId": payload.public_id}, "File deleted successfully")
