"""
materials/models.py -- Domain dataclass for fabric material records.

Pure data container. Mapping to and from Mongo documents lives in
materials/store.py; mapping to the HTTP contract lives in api/models.py.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Material:
    """A fabric material, addressed by the id printed in its QR code.

    extra holds any document fields beyond the known ones so they survive a
    read/write round trip and are still returned by the lookup endpoint.

    id is None before the record is written to the database.
    """

    qr_code_id: str
    material_name: str
    material_type: Optional[str] = None
    color: Optional[str] = None
    manufacturer: Optional[str] = None
    production_date: Optional[str] = None  # free text, as printed on the label
    features: list[str] = field(default_factory=list)
    care_instructions: Optional[str] = None
    image_url: Optional[str] = None
    id: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)
