# WORKFLOW: Pydantic response schemas for the Parcel Compliance API.
# Used by: API response generation, testing
# Schemas include:
# 1. UploadResponse / JobProgressResponse - Background job handles and progress
# 2. RegisterResponse - Register summary
# 3. ParcelResponse - Parcel with its matches and variant payload
# 4. ClassificationResponse - Result of a classification pass
# 5. StopWordResponse / KeyWordResponse - Vocabulary entries
# 6. FeacnOrderResponse - FEACN order state
# 7. KeyWordListUploadResponse / FeacnCatalogUploadResponse - Spreadsheet list upload summaries
#
# Response flow: ORM / service objects -> from_* helpers -> Pydantic model -> JSON

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from db.models import FeacnOrder, KeyWord, Parcel, Register, StopWord
from services.classifier import ClassificationResult
from services.decision_table import CheckStatus
from services.job_registry import JobProgress
from services.parcel_variants import parse_details, parcel_number
from services.word_matcher import MatchType


class UploadResponse(BaseModel):
    handle_id: str
    register_id: Optional[int] = None


class JobProgressResponse(BaseModel):
    handle_id: str
    register_id: int
    kind: str
    state: str
    total: int
    processed: int
    failed_parcels: int = 0
    finished: bool
    error: Optional[str] = None

    @classmethod
    def from_progress(cls, progress: JobProgress) -> "JobProgressResponse":
        return cls(
            handle_id=progress.handle_id,
            register_id=progress.register_id,
            kind=progress.kind.value,
            state=progress.state.value,
            total=progress.total,
            processed=progress.processed,
            failed_parcels=progress.failed_parcels,
            finished=progress.finished,
            error=progress.error,
        )


class RegisterResponse(BaseModel):
    id: int
    file_name: str
    document_type: str
    created_at: datetime
    parcel_count: int

    @classmethod
    def from_model(cls, register: Register) -> "RegisterResponse":
        return cls(
            id=register.id,
            file_name=register.file_name,
            document_type=register.document_type,
            created_at=register.created_at,
            parcel_count=len(register.parcels),
        )


class ParcelResponse(BaseModel):
    id: int
    register_id: int
    document_type: str
    check_status_id: int
    check_status: str
    parcel_number: Optional[str] = None
    product_name: Optional[str] = None
    description: Optional[str] = None
    tn_ved: Optional[str] = None
    country_code: Optional[int] = None
    quantity: Optional[float] = None
    unit_price: Optional[float] = None
    weight_kg: Optional[float] = None
    currency: Optional[str] = None
    partner_color: Optional[int] = None
    stop_word_ids: List[int] = Field(default_factory=list)
    key_word_ids: List[int] = Field(default_factory=list)
    feacn_prefix_ids: List[int] = Field(default_factory=list)
    feacn_order_ids: List[int] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_model(cls, parcel: Parcel) -> "ParcelResponse":
        details = parse_details(parcel.details, parcel.document_type)
        return cls(
            id=parcel.id,
            register_id=parcel.register_id,
            document_type=parcel.document_type,
            check_status_id=parcel.check_status_id,
            check_status=CheckStatus(parcel.check_status_id).title,
            parcel_number=parcel_number(details),
            product_name=parcel.product_name,
            description=parcel.description,
            tn_ved=parcel.tn_ved,
            country_code=parcel.country_code,
            quantity=parcel.quantity,
            unit_price=parcel.unit_price,
            weight_kg=parcel.weight_kg,
            currency=parcel.currency,
            partner_color=parcel.partner_color,
            stop_word_ids=sorted(link.stop_word_id for link in parcel.stop_word_links),
            key_word_ids=sorted(link.key_word_id for link in parcel.key_word_links),
            feacn_prefix_ids=sorted(link.feacn_prefix_id for link in parcel.feacn_prefix_links),
            feacn_order_ids=sorted({link.feacn_order_id for link in parcel.feacn_prefix_links
                                    if link.feacn_order_id is not None}),
            details=details.model_dump(mode="json", exclude_none=True),
        )


class ClassificationResponse(BaseModel):
    parcel_id: int
    check_status_id: int
    check_status: str
    skipped: bool = False
    tariff_outcome: Optional[str] = None
    word_outcome: Optional[str] = None
    stop_word_ids: List[int] = Field(default_factory=list)
    key_word_ids: List[int] = Field(default_factory=list)
    order_backed_prefix_ids: List[int] = Field(default_factory=list)
    standalone_prefix_ids: List[int] = Field(default_factory=list)
    feacn_order_ids: List[int] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ClassificationResult) -> "ClassificationResponse":
        return cls(
            parcel_id=result.parcel_id,
            check_status_id=int(result.check_status),
            check_status=result.check_status.title,
            skipped=result.skipped,
            tariff_outcome=result.tariff_outcome.value if result.tariff_outcome else None,
            word_outcome=result.word_outcome.value if result.word_outcome else None,
            stop_word_ids=result.stop_word_ids,
            key_word_ids=result.key_word_ids,
            order_backed_prefix_ids=result.order_backed_prefix_ids,
            standalone_prefix_ids=result.standalone_prefix_ids,
            feacn_order_ids=result.order_ids,
        )


class StopWordResponse(BaseModel):
    id: int
    word: str
    match_type_id: int
    match_type: str

    @classmethod
    def from_model(cls, entry: StopWord) -> "StopWordResponse":
        return cls(
            id=entry.id,
            word=entry.word,
            match_type_id=entry.match_type_id,
            match_type=MatchType(entry.match_type_id).name,
        )


class KeyWordResponse(StopWordResponse):
    feacn_codes: List[str] = Field(default_factory=list)
    insert_before: Optional[str] = None
    insert_after: Optional[str] = None

    @classmethod
    def from_model(cls, entry: KeyWord) -> "KeyWordResponse":
        return cls(
            id=entry.id,
            word=entry.word,
            match_type_id=entry.match_type_id,
            match_type=MatchType(entry.match_type_id).name,
            feacn_codes=[code.code for code in entry.feacn_codes],
            insert_before=entry.insert_before,
            insert_after=entry.insert_after,
        )


class FeacnOrderResponse(BaseModel):
    id: int
    title: str
    url: Optional[str] = None
    enabled: bool
    prefix_count: int

    @classmethod
    def from_model(cls, order: FeacnOrder) -> "FeacnOrderResponse":
        return cls(
            id=order.id,
            title=order.title,
            url=order.url,
            enabled=order.enabled,
            prefix_count=len(order.prefixes),
        )


class KeyWordListUploadResponse(BaseModel):
    created: int
    updated: int
    words: List[str] = Field(default_factory=list)


class FeacnCatalogUploadResponse(BaseModel):
    feacn_codes: int = Field(..., description="Number of catalog codes stored")
