import logging
from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, ReturnDocument

from filevault.database.schemas.file import FileMetadataRecord

logger = logging.getLogger(__name__)


def _to_record(document: Optional[dict]) -> Optional[FileMetadataRecord]:
    if document is None:
        return None
    document = dict(document)
    document["_id"] = str(document["_id"])
    return FileMetadataRecord.model_validate(document)


def _object_id(file_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(file_id)
    except (InvalidId, TypeError):
        return None


class FileRepository:
    """File metadata records in the MongoDB `files` collection."""

    def __init__(self, collection):
        self.collection = collection

    async def create(self, record: FileMetadataRecord) -> FileMetadataRecord:
        result = await self.collection.insert_one(record.to_document())
        logger.info("Inserted file record %s", result.inserted_id)
        return record.model_copy(update={"id": str(result.inserted_id)})

    async def find_by_owner(self, owner: str) -> List[FileMetadataRecord]:
        cursor = self.collection.find({"owner": owner}).sort("created_at", DESCENDING)
        return [_to_record(doc) async for doc in cursor]

    async def find_by_id(self, file_id: str) -> Optional[FileMetadataRecord]:
        oid = _object_id(file_id)
        if oid is None:
            return None
        return _to_record(await self.collection.find_one({"_id": oid}))

    async def update(self, file_id: str, fields: dict) -> Optional[FileMetadataRecord]:
        oid = _object_id(file_id)
        if oid is None:
            return None
        fields = {**fields, "updated_at": datetime.utcnow()}
        document = await self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        if document is None:
            logger.warning("No file found for id=%s", file_id)
        return _to_record(document)

    async def delete(self, file_id: str) -> bool:
        oid = _object_id(file_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid})
        return result.deleted_count == 1
