"""
MongoDB access

A single long-lived database handle is created by connect() and handed to the
app factory. Nothing here keeps a module-level client; callers own the handle.
"""

import logging
import os
from typing import Any, Dict, List, Optional

from bson import ObjectId
from dotenv import load_dotenv
from fastapi import Request
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from errors import InvalidParameter

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "potions")

POTIONS = "potion"
USERS = "user"


def connect(url: Optional[str] = None, name: Optional[str] = None) -> Database:
    url = url or DATABASE_URL
    name = name or DATABASE_NAME
    logger.info("Connecting to MongoDB database %s", name)
    client = MongoClient(url, tz_aware=True)
    return client[name]


def ensure_indexes(db: Database) -> None:
    """User names are unique; registration relies on the store rejecting duplicates."""
    db[USERS].create_index([("name", ASCENDING)], unique=True)
    logger.info("Ensured unique index on %s.name", USERS)


def get_db(request: Request) -> Database:
    return request.app.state.db


def to_obj_id(id_str: str) -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise InvalidParameter("id", id_str, ["24-character hex ObjectId"])
    return ObjectId(id_str)


def sanitize(doc: Optional[Dict]) -> Optional[Dict]:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def get_documents(db: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  projection: Optional[Dict[str, Any]] = None) -> List[Dict]:
    cursor = db[collection_name].find(filter_dict or {}, projection)
    return [sanitize(d) for d in cursor]
