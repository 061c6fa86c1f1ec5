# WORKFLOW: Cell value conversion for register rows.
# Used by: Register importer
# Functions:
# 1. to_decimal() / to_int() / to_date() / to_bool() / to_text() - Typed cell parsers
# 2. lookup_country_code() - ISO alpha-2 / Russian short name / numeric -> ISO numeric
# 3. convert_value() - Convert a cell for a parcel field using FIELD_KINDS
#
# Conversion flow: raw cell text -> field kind -> typed value (None when the cell cannot be parsed)
# Registers come from Russian-locale spreadsheets: decimal comma, dd.mm.yyyy dates.

import logging
import re
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "yes", "true", "да"}

_DATE_FORMATS = ("%d.%m.%Y", "%d.%m.%y", "%Y-%m-%d", "%Y-%m-%d %H:%M:%S", "%d.%m.%Y %H:%M:%S")

COUNTRY_CODES: Dict[str, int] = {
    "RU": 643, "РОССИЯ": 643,
    "CN": 156, "КИТАЙ": 156,
    "UZ": 860, "УЗБЕКИСТАН": 860,
    "KZ": 398, "КАЗАХСТАН": 398,
    "BY": 112, "БЕЛАРУСЬ": 112,
    "KG": 417, "КИРГИЗИЯ": 417,
    "AM": 51, "АРМЕНИЯ": 51,
    "TR": 792, "ТУРЦИЯ": 792,
    "IN": 356, "ИНДИЯ": 356,
    "VN": 704, "ВЬЕТНАМ": 704,
    "KR": 410, "КОРЕЯ": 410,
    "DE": 276, "ГЕРМАНИЯ": 276,
    "IT": 380, "ИТАЛИЯ": 380,
    "US": 840, "США": 840,
}

# Parcel fields that are not plain text
FIELD_KINDS: Dict[str, str] = {
    "row_number": "int",
    "quantity": "decimal",
    "unit_price": "decimal",
    "weight_kg": "decimal",
    "shipment_weight_kg": "decimal",
    "places_count": "int",
    "invoice_date": "date",
    "birth_date": "date",
    "country_code": "country",
}


def to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_decimal(value: Any) -> Optional[float]:
    """Parse a number written with either a decimal comma or a decimal point."""
    text = to_text(value)
    if text is None:
        return None
    text = text.replace(" ", "").replace(" ", "").replace(",", ".")
    try:
        return float(text)
    except ValueError:
        logger.warning(f"Could not convert '{value}' to a decimal")
        return None


def to_int(value: Any) -> Optional[int]:
    number = to_decimal(value)
    if number is None:
        return None
    if number != int(number):
        logger.warning(f"Could not convert '{value}' to an integer")
        return None
    return int(number)


def to_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = to_text(value)
    if text is None:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    logger.warning(f"Could not convert '{value}' to a date")
    return None


def to_bool(value: Any) -> bool:
    text = to_text(value)
    return text is not None and text.lower() in TRUE_VALUES


def lookup_country_code(value: Any) -> Optional[int]:
    """
    Resolve a country cell to its ISO 3166 numeric code.

    Args:
        value: ISO alpha-2 code, Russian short name or numeric code

    Returns:
        Numeric code, or None when the country is not recognized
    """
    text = to_text(value)
    if text is None:
        return None
    if re.fullmatch(r"\d{1,3}", text):
        return int(text)
    return COUNTRY_CODES.get(text.upper())


_CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "int": to_int,
    "decimal": to_decimal,
    "date": to_date,
    "bool": to_bool,
    "country": lookup_country_code,
}


def convert_value(field_name: str, value: Any) -> Any:
    """Convert a raw cell to the type of the parcel field it is mapped to."""
    converter = _CONVERTERS.get(FIELD_KINDS.get(field_name, "text"), to_text)
    return converter(value)
