# WORKFLOW: Document-type specific parcel payloads (tagged union on document_type).
# Used by: Register import (building parcels), parcel endpoints (reading details)
# Variants:
# 1. WbrDetails - WBR registers, carries the order number and sticker/SHK identifiers
# 2. OzonDetails - Ozon registers, carries the posting number and Ozon identifiers
#
# Parcel flow: register document type -> variant model -> Parcel.details JSON
# Shared parcel columns (product name, tariff code, quantities) live on Parcel itself.

from datetime import date
from typing import Annotated, Any, Dict, Literal, Optional, Set, Union

from pydantic import BaseModel, Field, TypeAdapter

WBR = "wbr"
OZON = "ozon"
DOCUMENT_TYPES = (WBR, OZON)

# Columns stored on the parcel row for every document type
COMMON_FIELDS = frozenset({
    "row_number",
    "product_name",
    "description",
    "tn_ved",
    "country_code",
    "quantity",
    "unit_price",
    "weight_kg",
    "currency",
})


class WbrDetails(BaseModel):
    document_type: Literal["wbr"] = WBR
    order_number: Optional[str] = None
    invoice_date: Optional[date] = None
    sticker: Optional[str] = None
    shk: Optional[str] = None
    sticker_code: Optional[str] = None
    ext_id: Optional[str] = None
    site_article: Optional[str] = None
    size: Optional[str] = None
    gender: Optional[str] = None
    brand: Optional[str] = None
    composition: Optional[str] = None
    unit: Optional[str] = None
    barcode: Optional[str] = None
    product_link: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_inn: Optional[str] = None
    passport_number: Optional[str] = None
    recipient_address: Optional[str] = None
    contact_phone: Optional[str] = None
    box_number: Optional[str] = None
    supplier: Optional[str] = None
    supplier_inn: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None


class OzonDetails(BaseModel):
    document_type: Literal["ozon"] = OZON
    posting_number: Optional[str] = None
    ozon_id: Optional[str] = None
    box_number: Optional[str] = None
    shipment_weight_kg: Optional[float] = None
    places_count: Optional[int] = None
    barcode: Optional[str] = None
    article: Optional[str] = None
    manufacturer: Optional[str] = None
    description_en: Optional[str] = None
    product_link: Optional[str] = None
    last_name: Optional[str] = None
    first_name: Optional[str] = None
    patronymic: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    birth_date: Optional[date] = None
    passport_series: Optional[str] = None
    passport_number: Optional[str] = None
    inn: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    comment: Optional[str] = None


ParcelDetails = Annotated[Union[WbrDetails, OzonDetails], Field(discriminator="document_type")]

_details_adapter = TypeAdapter(ParcelDetails)

_VARIANTS = {WBR: WbrDetails, OZON: OzonDetails}


def variant_fields(document_type: str) -> Set[str]:
    """Field names a register of this document type can populate."""
    model = _VARIANTS[document_type]
    return (set(model.model_fields) - {"document_type"}) | set(COMMON_FIELDS)


def build_details(document_type: str, values: Dict[str, Any]) -> ParcelDetails:
    """Build the variant payload for a parcel from mapped row values."""
    payload = {k: v for k, v in values.items() if k not in COMMON_FIELDS}
    payload["document_type"] = document_type
    return _details_adapter.validate_python(payload)


def parse_details(payload: Optional[Dict[str, Any]], document_type: str) -> ParcelDetails:
    data = dict(payload or {})
    data.setdefault("document_type", document_type)
    return _details_adapter.validate_python(data)


def has_order_number(details: ParcelDetails) -> bool:
    return isinstance(details, WbrDetails) and bool(details.order_number)


def has_posting_number(details: ParcelDetails) -> bool:
    return isinstance(details, OzonDetails) and bool(details.posting_number)


def parcel_number(details: ParcelDetails) -> Optional[str]:
    """Identifier shown to reviewers: order number (WBR) or posting number (Ozon)."""
    if has_order_number(details):
        return details.order_number
    if has_posting_number(details):
        return details.posting_number
    return None
