# WORKFLOW: Register endpoints: upload, validation jobs, progress and cancellation.
# Used by: Operators uploading partner registers, UI progress polling
# Endpoints:
# 1. POST /registers/upload - Import a register (.xlsx/.xls/.zip) and start classification
# 2. GET /registers, GET /registers/{id}, DELETE /registers/{id} - Register listing and removal
# 3. POST /registers/{id}/validate - Re-classify an existing register
# 4. GET /registers/validate/{handle} - Job progress
# 5. DELETE /registers/validate/{handle} - Cooperative job cancellation
#
# Upload flow: multipart file -> ImportPipeline.start_import in the threadpool (input errors -> 400) -> handle
# Progress flow: handle -> JobRegistry snapshot -> 404 for unknown handles

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from api.dependencies import get_pipeline
from api.errors import to_http_exception
from api.schemas.response import JobProgressResponse, RegisterResponse, UploadResponse
from core.config import settings
from core.exceptions import ComplianceError, RegisterNotFoundError
from db.models import Register
from db.session import get_db
from services.import_pipeline import ImportPipeline

logger = logging.getLogger(__name__)

router = APIRouter(tags=["registers"])


@router.post("/registers/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_register(
    file: UploadFile = File(...),
    document_type: Optional[str] = Form(None),
    pipeline: ImportPipeline = Depends(get_pipeline),
):
    """
    Upload a register and start classifying its parcels.

    Accepts .xlsx and .xls files, or a .zip archive holding one of them.
    Returns the handle of the background classification job.
    """
    content = await file.read()
    file_name = file.filename or ""
    logger.info(f"Register upload: {file_name} ({len(content)} bytes), type={document_type}")

    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={"code": "file_too_large", "message": f"Upload exceeds {settings.max_upload_bytes} bytes"},
        )

    try:
        handle_id = await run_in_threadpool(pipeline.start_import, content, file_name, document_type)
    except ComplianceError as e:
        raise to_http_exception(e)

    progress = pipeline.get_progress(handle_id)
    return UploadResponse(handle_id=handle_id, register_id=progress.register_id if progress else None)


@router.get("/registers", response_model=List[RegisterResponse])
async def list_registers(db: Session = Depends(get_db)):
    registers = db.query(Register).order_by(Register.id.desc()).all()
    return [RegisterResponse.from_model(r) for r in registers]


@router.get("/registers/{register_id}", response_model=RegisterResponse)
async def get_register(register_id: int, db: Session = Depends(get_db)):
    register = db.get(Register, register_id)
    if register is None:
        raise to_http_exception(RegisterNotFoundError(register_id))
    return RegisterResponse.from_model(register)


@router.delete("/registers/{register_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_register(register_id: int, db: Session = Depends(get_db)):
    """Delete a register together with its parcels and their matches."""
    register = db.get(Register, register_id)
    if register is None:
        raise to_http_exception(RegisterNotFoundError(register_id))
    try:
        db.delete(register)
        db.commit()
        logger.info(f"Deleted register {register_id}")
    except Exception as e:
        logger.error(f"Failed to delete register {register_id}: {e}")
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/registers/{register_id}/validate", response_model=UploadResponse, status_code=status.HTTP_202_ACCEPTED)
async def validate_register(register_id: int, pipeline: ImportPipeline = Depends(get_pipeline)):
    """Start (or join) re-classification of a register's parcels."""
    try:
        handle_id = pipeline.start_validation(register_id)
    except ComplianceError as e:
        raise to_http_exception(e)
    return UploadResponse(handle_id=handle_id, register_id=register_id)


@router.get("/registers/validate/{handle_id}", response_model=JobProgressResponse)
async def get_validation_progress(handle_id: str, pipeline: ImportPipeline = Depends(get_pipeline)):
    progress = pipeline.get_progress(handle_id)
    if progress is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "job_not_found", "message": f"Job {handle_id} not found"},
        )
    return JobProgressResponse.from_progress(progress)


@router.delete("/registers/validate/{handle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_validation(handle_id: str, pipeline: ImportPipeline = Depends(get_pipeline)):
    """Request cancellation; 404 when the handle is unknown or the job already ended."""
    if not pipeline.cancel(handle_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "job_not_cancellable", "message": f"Job {handle_id} not found or already finished"},
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
