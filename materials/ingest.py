"""
materials/ingest.py -- Parser for bulk material imports.

The HTTP API is read-only for materials, so catalogues are loaded with
`python main.py import-materials catalogue.json`. The file is a JSON array of
material documents using the stored camelCase field names:

    [
      {"qrCodeId": "FAB-0001", "materialName": "Organic Cotton Twill",
       "color": "Navy", "features": ["breathable", "durable"]},
      ...
    ]

Pipeline:
  file content -> parse_materials_json() -> MaterialImport
  -> caller: MaterialStore.upsert() per record

Records without qrCodeId or materialName are skipped and reported, never
raised -- one bad row must not abort a whole catalogue.
"""

import json
from dataclasses import dataclass, field

from materials.models import Material
from materials.store import DOCUMENT_FIELDS, IGNORED_FIELDS, as_features, as_text


@dataclass
class MaterialImport:
    """Parsed import: usable records plus one message per skipped entry."""

    records: list[Material] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def parse_materials_json(content: str) -> MaterialImport:
    """Parse a JSON array of material documents.

    Returns an empty import with a single skip message if the content is not
    a JSON array.
    """
    result = MaterialImport()
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, ValueError) as exc:
        result.skipped.append(f"invalid JSON: {exc}")
        return result
    if not isinstance(data, list):
        result.skipped.append("expected a JSON array of materials")
        return result

    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            result.skipped.append(f"entry {index}: not an object")
            continue
        qr_code_id = str(entry.get("qrCodeId") or "").strip()
        material_name = str(entry.get("materialName") or "").strip()
        if not qr_code_id:
            result.skipped.append(f"entry {index}: missing qrCodeId")
            continue
        if not material_name:
            result.skipped.append(f"entry {index}: missing materialName ({qr_code_id})")
            continue

        result.records.append(
            Material(
                qr_code_id=qr_code_id,
                material_name=material_name,
                material_type=as_text(entry.get("materialType")),
                color=as_text(entry.get("color")),
                manufacturer=as_text(entry.get("manufacturer")),
                production_date=as_text(entry.get("productionDate")),
                features=as_features(entry.get("features")),
                care_instructions=as_text(entry.get("careInstructions")),
                image_url=as_text(entry.get("imageUrl")),
                extra={k: v for k, v in entry.items() if k not in DOCUMENT_FIELDS and k not in IGNORED_FIELDS},
            )
        )
    return result
