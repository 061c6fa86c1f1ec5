# WORKFLOW: Parcel endpoints: details, standalone classification and reviewer approval.
# Used by: Reviewers, re-classification after vocabulary or catalog edits
# Endpoints:
# 1. GET /parcels/{id} - Parcel with its matches and document-type payload
# 2. GET /registers/{id}/parcels - Parcels of a register
# 3. POST /parcels/{id}/classify - Classify one parcel now
# 4. POST /parcels/{id}/approve - Reviewer approval (optionally with excise)
#
# Classification flow: parcel -> ParcelClassifier (context built on the fly) -> links + status

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import List
import logging

from api.dependencies import get_gate
from api.errors import to_http_exception
from api.schemas.response import ClassificationResponse, ParcelResponse
from core.exceptions import ComplianceError, ParcelNotFoundError, RegisterNotFoundError
from db.models import Parcel, Register
from db.session import get_db
from services.classifier import create_parcel_classifier
from services.decision_table import approve
from services.morphology import MorphologyGate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["parcels"])


def _load_parcel(db: Session, parcel_id: int) -> Parcel:
    parcel = db.get(Parcel, parcel_id)
    if parcel is None:
        raise to_http_exception(ParcelNotFoundError(parcel_id))
    return parcel


@router.get("/parcels/{parcel_id}", response_model=ParcelResponse)
async def get_parcel(parcel_id: int, db: Session = Depends(get_db)):
    return ParcelResponse.from_model(_load_parcel(db, parcel_id))


@router.get("/registers/{register_id}/parcels", response_model=List[ParcelResponse])
async def list_register_parcels(register_id: int, db: Session = Depends(get_db)):
    if db.get(Register, register_id) is None:
        raise to_http_exception(RegisterNotFoundError(register_id))
    parcels = db.query(Parcel).filter(Parcel.register_id == register_id).order_by(Parcel.id).all()
    return [ParcelResponse.from_model(p) for p in parcels]


@router.post("/parcels/{parcel_id}/classify", response_model=ClassificationResponse)
async def classify_parcel(
    parcel_id: int,
    db: Session = Depends(get_db),
    gate: MorphologyGate = Depends(get_gate),
):
    """
    Classify one parcel against the current vocabularies, rules and catalog.

    Parcels marked by partner or approved keep their status.
    """
    parcel = _load_parcel(db, parcel_id)
    result = create_parcel_classifier(db, gate).classify_parcel(parcel)
    logger.info(f"Parcel {parcel_id} classified: {result.check_status.name}")
    return ClassificationResponse.from_result(result)


@router.post("/parcels/{parcel_id}/approve", status_code=status.HTTP_204_NO_CONTENT)
async def approve_parcel(
    parcel_id: int,
    with_excise: bool = Query(False, description="Approve with excise"),
    db: Session = Depends(get_db),
):
    parcel = _load_parcel(db, parcel_id)
    try:
        parcel.check_status_id = int(approve(parcel.check_status_id, with_excise))
        db.commit()
    except ComplianceError as e:
        raise to_http_exception(e)
    logger.info(f"Parcel {parcel_id} approved (excise={with_excise})")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
