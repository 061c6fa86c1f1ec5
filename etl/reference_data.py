# WORKFLOW: Reference data seeding: FEACN catalog, prefix rules and vocabularies from a JSON seed.
# Used by: scripts/bootstrap.py, test fixtures
# Functions:
# 1. validate_feacn_code() / validate_prefix_code() / validate_iso_date() - Field format checks
# 2. validate_seed() - Whole-payload validation -> (is_valid, errors)
# 3. load_reference_data() - Insert orders, prefixes, catalog codes and vocabulary entries
#
# Seed flow: JSON file -> validate_seed() -> load_reference_data() -> committed rows
# Vocabulary entries go through VocabularyService so the morphology gate applies to them too.
#
# Seed layout:
# {
#   "feacn_codes":    [{"code", "name", "code_ex", "from_date", "to_date"}],
#   "feacn_orders":   [{"title", "url", "comment", "enabled", "prefixes": [...]}],
#   "feacn_prefixes": [{"code", "interval_code", "description", "comment", "exceptions": [...]}],
#   "stop_words":     [{"word", "match_type_id"}],
#   "key_words":      [{"word", "match_type_id", "feacn_codes", "insert_before", "insert_after"}]
# }

"""
Reference data validation and loading.
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from db.models import FeacnCode, FeacnOrder, FeacnPrefix, FeacnPrefixException
from services.feacn_matcher import FEACN_CODE_LENGTH, pad_code
from services.morphology import MorphologyGate
from services.vocabulary import create_vocabulary_service
from services.word_matcher import MatchType

logger = logging.getLogger(__name__)

_CODE_RE = re.compile(r"^\d{10}$")
_PREFIX_RE = re.compile(r"^\d{1,10}$")
_MAX_REPORTED = 10


@dataclass
class SeedSummary:
    feacn_codes: int = 0
    feacn_orders: int = 0
    feacn_prefixes: int = 0
    stop_words: int = 0
    key_words: int = 0


def validate_feacn_code(code: Any) -> bool:
    """Catalog codes are exactly 10 digits."""
    return isinstance(code, str) and bool(_CODE_RE.match(code.strip()))


def validate_prefix_code(code: Any) -> bool:
    """Prefix rule codes and exception fragments are 1 to 10 digits."""
    return isinstance(code, str) and bool(_PREFIX_RE.match(code.strip()))


def validate_iso_date(value: Any) -> bool:
    if value is None:
        return True
    try:
        date.fromisoformat(str(value))
        return True
    except ValueError:
        return False


def _validate_prefix(prefix: Dict[str, Any], where: str) -> List[str]:
    errors = []
    code = prefix.get("code")
    if not validate_prefix_code(code):
        errors.append(f"{where}: invalid prefix code {code!r}")
        return errors

    interval_code = prefix.get("interval_code")
    if interval_code is not None:
        if not validate_prefix_code(interval_code):
            errors.append(f"{where}: invalid interval code {interval_code!r}")
        elif int(pad_code(interval_code.strip())) < int(pad_code(code.strip())):
            errors.append(f"{where}: interval {code}-{interval_code} is empty")

    bad_exceptions = [e for e in prefix.get("exceptions", []) if not validate_prefix_code(e)]
    if bad_exceptions:
        errors.append(f"{where}: invalid exception codes {bad_exceptions[:_MAX_REPORTED]}")
    return errors


def validate_seed(payload: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """
    Validate a reference data payload before loading it.

    Args:
        payload: Parsed seed JSON

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors: List[str] = []

    if not isinstance(payload, dict):
        return False, ["Seed must be a JSON object"]

    codes = payload.get("feacn_codes", [])
    invalid_codes = [c.get("code") for c in codes if not validate_feacn_code(c.get("code"))]
    if invalid_codes:
        errors.append(f"Invalid FEACN codes: {invalid_codes[:_MAX_REPORTED]}")
    for c in codes:
        if not (validate_iso_date(c.get("from_date")) and validate_iso_date(c.get("to_date"))):
            errors.append(f"Invalid validity dates for FEACN code {c.get('code')!r}")
        elif c.get("from_date") and c.get("to_date") and c["from_date"] > c["to_date"]:
            errors.append(f"Validity window of FEACN code {c.get('code')!r} ends before it starts")

    for i, order in enumerate(payload.get("feacn_orders", [])):
        if not order.get("title"):
            errors.append(f"Order #{i}: missing title")
        for j, prefix in enumerate(order.get("prefixes", [])):
            errors.extend(_validate_prefix(prefix, f"Order #{i} prefix #{j}"))

    for i, prefix in enumerate(payload.get("feacn_prefixes", [])):
        errors.extend(_validate_prefix(prefix, f"Standalone prefix #{i}"))

    known_types = {m.value for m in MatchType}
    for kind in ("stop_words", "key_words"):
        for i, entry in enumerate(payload.get(kind, [])):
            if not str(entry.get("word", "")).strip():
                errors.append(f"{kind} #{i}: empty word")
            if entry.get("match_type_id") not in known_types:
                errors.append(f"{kind} #{i}: unknown match type {entry.get('match_type_id')!r}")

    logger.info(f"Seed validation: {len(errors)} errors found")
    return len(errors) == 0, errors


def _parse_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _build_prefix(prefix: Dict[str, Any]) -> FeacnPrefix:
    interval_code = prefix.get("interval_code")
    return FeacnPrefix(
        code=prefix["code"].strip(),
        interval_code=interval_code.strip()[:FEACN_CODE_LENGTH] if interval_code else None,
        description=prefix.get("description"),
        comment=prefix.get("comment"),
        exceptions=[FeacnPrefixException(code=e.strip()) for e in prefix.get("exceptions", [])],
    )


def load_reference_data(db: Session, payload: Dict[str, Any],
                        gate: Optional[MorphologyGate] = None) -> SeedSummary:
    """
    Insert a validated seed payload.

    Catalog codes, orders and prefixes are committed in one transaction;
    vocabulary entries are then created one by one through the vocabulary
    service, so a word the morphology gate rejects stops the load.

    Args:
        db: Database session
        payload: Seed payload (see module header)
        gate: Morphology gate for morphology match types

    Returns:
        Counts of inserted rows
    """
    summary = SeedSummary()
    try:
        for c in payload.get("feacn_codes", []):
            db.add(FeacnCode(
                code=c["code"].strip(),
                code_ex=c.get("code_ex"),
                name=c.get("name"),
                normalized=(c.get("name") or "").casefold() or None,
                from_date=_parse_date(c.get("from_date")),
                to_date=_parse_date(c.get("to_date")),
            ))
            summary.feacn_codes += 1

        for o in payload.get("feacn_orders", []):
            prefixes = [_build_prefix(p) for p in o.get("prefixes", [])]
            db.add(FeacnOrder(
                title=o["title"],
                url=o.get("url"),
                comment=o.get("comment"),
                enabled=o.get("enabled", True),
                prefixes=prefixes,
            ))
            summary.feacn_orders += 1
            summary.feacn_prefixes += len(prefixes)

        for p in payload.get("feacn_prefixes", []):
            db.add(_build_prefix(p))
            summary.feacn_prefixes += 1

        db.commit()
    except Exception as e:
        logger.error(f"Failed to load FEACN reference data: {e}")
        db.rollback()
        raise

    vocabulary = create_vocabulary_service(db, gate)
    for w in payload.get("stop_words", []):
        vocabulary.create_stop_word(w["word"], MatchType(w["match_type_id"]))
        summary.stop_words += 1
    for w in payload.get("key_words", []):
        vocabulary.create_key_word(
            w["word"],
            MatchType(w["match_type_id"]),
            feacn_codes=w.get("feacn_codes", []),
            insert_before=w.get("insert_before"),
            insert_after=w.get("insert_after"),
        )
        summary.key_words += 1

    logger.info(f"Reference data loaded: {summary}")
    return summary


def read_seed(path: Union[str, Path]) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
