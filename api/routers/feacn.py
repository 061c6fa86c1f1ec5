# WORKFLOW: FEACN order and catalog endpoints.
# Used by: Compliance officers switching regulatory orders on and off
# Endpoints:
# 1. GET /feacn/orders - Orders with their enabled flag and prefix count
# 2. PUT /feacn/orders/{id} - Enable or disable an order
# 3. POST /feacn/codes/upload - Replace the FEACN code catalog with a spreadsheet export
#
# A disabled order's prefix rules stop matching on the next classification pass;
# standalone prefixes (no order) are unaffected.

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session, selectinload
from typing import List
import logging

from api.errors import to_http_exception
from api.schemas.request import FeacnOrderToggleRequest
from api.schemas.response import FeacnCatalogUploadResponse, FeacnOrderResponse
from core.config import settings
from core.exceptions import ComplianceError, FeacnOrderNotFoundError
from db.models import FeacnOrder
from db.session import get_db
from etl.feacn_catalog import create_feacn_catalog_loader

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feacn", tags=["feacn"])


@router.get("/orders", response_model=List[FeacnOrderResponse])
async def list_feacn_orders(db: Session = Depends(get_db)):
    orders = db.query(FeacnOrder).options(selectinload(FeacnOrder.prefixes)).order_by(FeacnOrder.id).all()
    return [FeacnOrderResponse.from_model(o) for o in orders]


@router.put("/orders/{order_id}", response_model=FeacnOrderResponse)
async def toggle_feacn_order(order_id: int, request: FeacnOrderToggleRequest, db: Session = Depends(get_db)):
    order = db.get(FeacnOrder, order_id)
    if order is None:
        raise to_http_exception(FeacnOrderNotFoundError(order_id))
    try:
        order.enabled = request.enabled
        db.commit()
        db.refresh(order)
    except Exception as e:
        logger.error(f"Failed to update FEACN order {order_id}: {e}")
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    logger.info(f"FEACN order {order_id} {'enabled' if order.enabled else 'disabled'}")
    return FeacnOrderResponse.from_model(order)


@router.post("/codes/upload", response_model=FeacnCatalogUploadResponse)
async def upload_feacn_catalog(file: UploadFile = File(...), db: Session = Depends(get_db)):
    """
    Replace the FEACN code catalog with an uploaded export.

    The previous catalog is removed in the same transaction; a concurrent
    upload is refused with 409.
    """
    content = await file.read()
    file_name = file.filename or ""
    logger.info(f"FEACN catalog upload: {file_name} ({len(content)} bytes)")

    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={"code": "file_too_large", "message": f"Upload exceeds {settings.max_upload_bytes} bytes"},
        )

    loader = create_feacn_catalog_loader(db)
    try:
        stored = await run_in_threadpool(loader.load, content, file_name)
    except ComplianceError as e:
        raise to_http_exception(e)
    return FeacnCatalogUploadResponse(feacn_codes=stored)
