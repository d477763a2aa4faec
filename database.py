"""
Database helpers for the furniture store

Thin layer over pymongo: the shared `db` handle, document creation/listing,
index setup, pagination and reference resolution ("populate").
"""
import logging
import math
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "furniture_store")

if DATABASE_URL:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]
else:
    client = None
    db = None


def now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document, stamping created_at/updated_at. Returns the new id."""
    if db is None:
        raise RuntimeError("Database not configured")
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    stamp = now()
    doc.setdefault("created_at", stamp)
    doc["updated_at"] = stamp
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None,
                  sort: Optional[list] = None) -> List[dict]:
    if db is None:
        raise RuntimeError("Database not configured")
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def update_document(collection_name: str, oid: ObjectId, changes: dict) -> Optional[dict]:
    """$set the given fields plus updated_at and return the fresh document."""
    changes = dict(changes)
    changes["updated_at"] = now()
    res = db[collection_name].update_one({"_id": oid}, {"$set": changes})
    if res.matched_count == 0:
        return None
    return db[collection_name].find_one({"_id": oid})


def ensure_indexes():
    if db is None:
        return
    try:
        db["admin"].create_index("email", unique=True)
        db["category"].create_index("name", unique=True)
        db["category"].create_index("slug", unique=True)
        db["product"].create_index("slug", unique=True)
        db["product"].create_index("category")
    except Exception as exc:
        logger.warning("Unable to ensure indexes: %s", exc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def paginate(collection_name: str, query: dict, page: int, limit: int, sort_by: str,
             sort_order: str) -> Dict[str, Any]:
    direction = DESCENDING if sort_order == "desc" else ASCENDING
    cursor = (
        db[collection_name]
        .find(query)
        .sort([(sort_by, direction), ("_id", direction)])
        .skip((page - 1) * limit)
        .limit(limit)
    )
    items = list(cursor)
    total = db[collection_name].count_documents(query)
    return {
        "items": items,
        "pagination": {"current": page, "pages": math.ceil(total / limit), "total": total},
    }


def populate(docs: Iterable[dict], path: str, collection_name: str, fields: List[str]) -> None:
    """
    Replace ObjectId references with a projection of the referenced document,
    in place. `path` is either a top-level field ("category") or a field of the
    elements of a list ("items.product"). Dangling references become None.
    """
    docs = list(docs)
    if "." in path:
        list_field, ref_field = path.split(".", 1)
        holders = [entry for d in docs for entry in (d.get(list_field) or [])]
    else:
        ref_field = path
        holders = docs

    ids = {h.get(ref_field) for h in holders if isinstance(h.get(ref_field), ObjectId)}
    if not ids:
        for h in holders:
            if ref_field in h and not isinstance(h[ref_field], dict):
                h[ref_field] = None
        return

    projection = {f: 1 for f in fields}
    found = {d["_id"]: d for d in db[collection_name].find({"_id": {"$in": list(ids)}}, projection)}
    for h in holders:
        ref = h.get(ref_field)
        if isinstance(ref, ObjectId):
            h[ref_field] = found.get(ref)
        elif ref_field in h and not isinstance(ref, dict):
            h[ref_field] = None


def serialize_doc(doc: Any) -> Any:
    """Make a Mongo document JSON friendly: _id -> id, ObjectId -> str."""
    if isinstance(doc, list):
        return [serialize_doc(d) for d in doc]
    if isinstance(doc, dict):
        out = {}
        for k, v in doc.items():
            if k == "_id":
                out["id"] = str(v)
            else:
                out[k] = serialize_doc(v)
        return out
    if isinstance(doc, ObjectId):
        return str(doc)
    return doc
