# WORKFLOW: Stop-word and key-word vocabulary endpoints.
# Used by: Compliance officers maintaining vocabularies
# Endpoints:
# 1. GET/POST /stop-words, PUT/DELETE /stop-words/{id}
# 2. GET/POST /key-words, PUT/DELETE /key-words/{id}
# 3. POST /key-words/upload - Merge a key-word list spreadsheet into the vocabulary
#
# Entry flow: request -> VocabularyService (morphology gate, duplicate check) -> entry
# Insufficient morphology support answers 418 with {"word", "level"} so clients can
# fall back to a non-morphological match type.

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from typing import List
import logging

from api.dependencies import get_gate
from api.errors import to_http_exception
from api.schemas.request import KeyWordRequest, StopWordRequest
from api.schemas.response import KeyWordListUploadResponse, KeyWordResponse, StopWordResponse
from core.config import settings
from core.exceptions import ComplianceError
from db.session import get_db
from etl.key_word_list import create_key_word_list_importer
from services.morphology import MorphologyGate
from services.vocabulary import VocabularyService, create_vocabulary_service
from services.word_matcher import MatchType

logger = logging.getLogger(__name__)

router = APIRouter(tags=["vocabulary"])


def get_vocabulary_service(db: Session = Depends(get_db), gate: MorphologyGate = Depends(get_gate)) -> VocabularyService:
    return create_vocabulary_service(db, gate)


@router.get("/stop-words", response_model=List[StopWordResponse])
async def list_stop_words(service: VocabularyService = Depends(get_vocabulary_service)):
    return [StopWordResponse.from_model(w) for w in service.list_stop_words()]


@router.post("/stop-words", response_model=StopWordResponse, status_code=status.HTTP_201_CREATED)
async def create_stop_word(request: StopWordRequest, service: VocabularyService = Depends(get_vocabulary_service)):
    try:
        entry = service.create_stop_word(request.word, MatchType(request.match_type_id))
    except ComplianceError as e:
        raise to_http_exception(e)
    return StopWordResponse.from_model(entry)


@router.put("/stop-words/{stop_word_id}", response_model=StopWordResponse)
async def update_stop_word(stop_word_id: int, request: StopWordRequest,
                           service: VocabularyService = Depends(get_vocabulary_service)):
    try:
        entry = service.update_stop_word(stop_word_id, request.word, MatchType(request.match_type_id))
    except ComplianceError as e:
        raise to_http_exception(e)
    return StopWordResponse.from_model(entry)


@router.delete("/stop-words/{stop_word_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_stop_word(stop_word_id: int, service: VocabularyService = Depends(get_vocabulary_service)):
    try:
        service.delete_stop_word(stop_word_id)
    except ComplianceError as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/key-words", response_model=List[KeyWordResponse])
async def list_key_words(service: VocabularyService = Depends(get_vocabulary_service)):
    return [KeyWordResponse.from_model(w) for w in service.list_key_words()]


@router.post("/key-words", response_model=KeyWordResponse, status_code=status.HTTP_201_CREATED)
async def create_key_word(request: KeyWordRequest, service: VocabularyService = Depends(get_vocabulary_service)):
    try:
        entry = service.create_key_word(
            request.word,
            MatchType(request.match_type_id),
            feacn_codes=request.feacn_codes,
            insert_before=request.insert_before,
            insert_after=request.insert_after,
        )
    except ComplianceError as e:
        raise to_http_exception(e)
    return KeyWordResponse.from_model(entry)


@router.put("/key-words/{key_word_id}", response_model=KeyWordResponse)
async def update_key_word(key_word_id: int, request: KeyWordRequest,
                          service: VocabularyService = Depends(get_vocabulary_service)):
    try:
        entry = service.update_key_word(
            key_word_id,
            request.word,
            MatchType(request.match_type_id),
            feacn_codes=request.feacn_codes,
            insert_before=request.insert_before,
            insert_after=request.insert_after,
        )
    except ComplianceError as e:
        raise to_http_exception(e)
    return KeyWordResponse.from_model(entry)


@router.delete("/key-words/{key_word_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_key_word(key_word_id: int, service: VocabularyService = Depends(get_vocabulary_service)):
    try:
        service.delete_key_word(key_word_id)
    except ComplianceError as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/key-words/upload", response_model=KeyWordListUploadResponse)
async def upload_key_words(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    gate: MorphologyGate = Depends(get_gate),
):
    """
    Merge a key-word list spreadsheet into the key-word vocabulary.

    New words are added; existing words get the new match type and any codes
    they did not have yet.
    """
    content = await file.read()
    file_name = file.filename or ""
    logger.info(f"Key-word list upload: {file_name} ({len(content)} bytes)")

    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={"code": "file_too_large", "message": f"Upload exceeds {settings.max_upload_bytes} bytes"},
        )

    importer = create_key_word_list_importer(db, gate)
    try:
        summary = await run_in_threadpool(importer.import_list, content, file_name)
    except ComplianceError as e:
        raise to_http_exception(e)
    return KeyWordListUploadResponse(created=summary.created, updated=summary.updated, words=summary.words)
