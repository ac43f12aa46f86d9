"""
materials/store.py -- MongoDB persistence layer for fabric materials.

Pattern: Repository + Data Mapper (same as auth/store.py).
MaterialStore is the repository; _doc_to_material / material_to_doc are the
mappers. The HTTP API only ever reads; writes come from the import CLI.

Document shape (collection "materials"), camelCase as stored by the legacy
service:

    {_id, qrCodeId, materialName, materialType, color, manufacturer,
     productionDate, features, careInstructions, imageUrl, ...}

Unknown fields are kept in Material.extra and written back unchanged.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from materials.models import Material

logger = logging.getLogger("fabricqr.materials")

# Document field -> dataclass attribute
DOCUMENT_FIELDS: dict[str, str] = {
    "qrCodeId": "qr_code_id",
    "materialName": "material_name",
    "materialType": "material_type",
    "color": "color",
    "manufacturer": "manufacturer",
    "productionDate": "production_date",
    "features": "features",
    "careInstructions": "care_instructions",
    "imageUrl": "image_url",
}

# Store id and Mongoose version key, never part of the material payload.
IGNORED_FIELDS = {"_id", "__v"}


def as_text(value: Any) -> str | None:
    """Coerce a stored scalar to the string form the API returns.

    Documents written by other tools may hold numbers or BSON dates where a
    label string is expected.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def as_features(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [as_text(v) for v in value if v is not None]
    return [as_text(value)]


def as_plain(value: Any) -> Any:
    """Convert BSON-only values (ObjectId, Decimal128, dates) to JSON-ready ones, recursively."""
    if isinstance(value, dict):
        return {str(k): as_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [as_plain(v) for v in value]
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    return as_text(value)


class MaterialStore:
    """Repository for Material entities.

    Usage:
        store = MaterialStore(client["fabric_qr"])
        store.ensure_indexes()
        material = store.get_by_qr_code_id("FAB-0001")
    """

    def __init__(self, database: Database, collection_name: str = "materials") -> None:
        self._materials: Collection = database.get_collection(collection_name)

    def ensure_indexes(self) -> None:
        self._materials.create_index([("qrCodeId", ASCENDING)], unique=True, name="uniq_qr_code_id")

    def get_by_qr_code_id(self, qr_code_id: str) -> Material | None:
        """Exact-match lookup. Returns None if no material carries this id."""
        doc = self._materials.find_one({"qrCodeId": qr_code_id})
        return _doc_to_material(doc) if doc is not None else None

    def upsert(self, material: Material) -> bool:
        """Insert or replace the material with the same qrCodeId.

        Returns True when a new document was created, False when an existing
        one was replaced.
        """
        result = self._materials.replace_one(
            {"qrCodeId": material.qr_code_id},
            material_to_doc(material),
            upsert=True,
        )
        if result.upserted_id is not None:
            material.id = str(result.upserted_id)
            return True
        return False

    def count(self) -> int:
        return self._materials.count_documents({})


# ---------------------------------------------------------------------------
# Document mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _doc_to_material(doc: dict) -> Material:
    known = {
        attr: as_text(doc.get(key))
        for key, attr in DOCUMENT_FIELDS.items()
        if attr != "features" and doc.get(key) is not None
    }
    extra = {k: as_plain(v) for k, v in doc.items() if k not in DOCUMENT_FIELDS and k not in IGNORED_FIELDS}
    known.setdefault("qr_code_id", "")
    known.setdefault("material_name", "")
    return Material(id=str(doc["_id"]), features=as_features(doc.get("features")), extra=extra, **known)


def material_to_doc(material: Material) -> dict:
    """Map a Material to its stored document. None-valued fields are omitted."""
    doc = dict(material.extra)
    for key, attr in DOCUMENT_FIELDS.items():
        value = getattr(material, attr)
        if value is not None:
            doc[key] = value
    return doc
