"""
MongoDB access.

`Database` owns one MongoClient for the lifetime of the app. Each stored
collection is named after its schema class, lowercased.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.errors import ConfigurationError, PyMongoError

logger = logging.getLogger("shop.database")


class Database:
    def __init__(self, url: Optional[str] = None, name: str = "ecommerce", client: Optional[MongoClient] = None):
        self.url = url
        self.name = name
        self.error = None if url or client is not None else "DATABASE_URL is not set"
        if client is None and url:
            # Parses the URI and resolves +srv records here
            try:
                client = MongoClient(url, serverSelectionTimeoutMS=5000)
            except PyMongoError as exc:
                logger.exception("MongoDB Connection Error")
                self.error = str(exc)
        self.client = client

    @property
    def db(self):
        if self.client is None:
            return None
        return self.client[self.name]

    def __getitem__(self, collection_name: str):
        if self.db is None:
            raise ConfigurationError(self.error or "MongoDB client is not available")
        return self.db[collection_name]

    # Lifecycle

    def connect(self) -> bool:
        if self.client is None:
            logger.error("MongoDB Connection Error: %s", self.error)
            return False
        try:
            self.client.admin.command("ping")
        except PyMongoError:
            logger.exception("MongoDB Connection Error")
            return False
        logger.info("MongoDB connected (database %s)", self.name)
        return True

    def ensure_indexes(self) -> None:
        try:
            self["user"].create_index([("email", ASCENDING)], unique=True)
            self["cartitem"].create_index([("user_id", ASCENDING)])
        except PyMongoError as exc:
            logger.warning("Unable to ensure indexes: %s", exc)

    def close(self) -> None:
        if self.client is not None:
            self.client.close()

    def collection_names(self) -> List[str]:
        return self.db.list_collection_names() if self.db is not None else []

    # Document helpers

    def create_document(self, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
        doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
        doc["created_at"] = datetime.now(timezone.utc)
        result = self[collection_name].insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    def get_documents(self, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return list(self[collection_name].find(filter_dict or {}))

    def find_document(self, collection_name: str, filter_dict: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self[collection_name].find_one(filter_dict)

    def update_document(self, collection_name: str, filter_dict: Dict[str, Any], values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        values = dict(values)
        values["updated_at"] = datetime.now(timezone.utc)
        return self[collection_name].find_one_and_update(
            filter_dict,
            {"$set": values},
            return_document=ReturnDocument.AFTER,
        )


def to_object_id(value: Optional[str]) -> Optional[ObjectId]:
    if value and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    # Convert ObjectId in nested fields if any
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
        elif isinstance(v, dict):
            doc[k] = serialize_doc(v)
    return doc
