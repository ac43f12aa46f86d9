"""
api/routes/materials.py -- QR code lookup.

Routes:
  GET /materials/{qr_code_id} -- the material printed on a scanned QR code (public)
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pymongo.errors import PyMongoError

from api.deps import get_material_store, store_failure
from api.models import MaterialResponse, MessageResponse
from materials.store import MaterialStore

logger = logging.getLogger("fabricqr.api.materials")

MSG_MATERIAL_NOT_FOUND = "Material not found."

router = APIRouter()


@router.get("/materials/{qr_code_id}", response_model=MaterialResponse, response_model_exclude_none=True)
def get_material(
    request: Request,
    qr_code_id: str,
    material_store: MaterialStore = Depends(get_material_store),
) -> MaterialResponse:
    """Look up exactly one material by its QR code id."""
    logger.info("Material lookup for QR code %r", qr_code_id)
    try:
        material = material_store.get_by_qr_code_id(qr_code_id)
    except PyMongoError as exc:
        raise store_failure(request, exc) from exc

    if material is None:
        logger.info("No material for QR code %r", qr_code_id)
        raise HTTPException(
            status_code=404,
            detail=MessageResponse(message=MSG_MATERIAL_NOT_FOUND).model_dump(exclude_none=True),
        )
    return MaterialResponse.from_material(material)
