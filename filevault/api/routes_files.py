import logging

from fastapi import APIRouter, Depends

from filevault.api.dependencies import get_file_service
from filevault.api.uploads import IncomingFile, incoming_file
from filevault.core.responses import api_response
from filevault.core.security import get_current_user
from filevault.services.file_service import FileService

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(get_current_user)])


@router.post("/upload")
async def upload_file(
    user: dict = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
    incoming: IncomingFile = Depends(incoming_file),
):
    logger.info("Uploading file %s for user %s", incoming.source.original_name, user["_id"])
    record = await service.upload(user["_id"], incoming.source, incoming.mime_type, incoming.size_bytes)

    return api_response(
        201,
        {"fileData": record.to_response(), "sharableLink": record.url},
        "File uploaded and saved successfully",
    )


@router.get("/all")
async def get_all_files(
    user: dict = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    files = await service.list_files(user["_id"])
    return api_response(200, [f.to_response() for f in files], "Files fetched successfully")


@router.put("/update/{file_id}")
async def update_file(
    file_id: str,
    user: dict = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
    incoming: IncomingFile = Depends(incoming_file),
):
    record = await service.update(
        user["_id"], file_id, incoming.source, incoming.mime_type, incoming.size_bytes
    )
    return api_response(
        200,
        {"file": record.to_response(), "sharableLink": record.url},
        "File updated successfully",
    )


@router.delete("/delete/{file_id}")
async def delete_file(
    file_id: str,
    user: dict = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    await service.delete(user["_id"], file_id)
    return api_response(200, None, "File deleted successfully")
