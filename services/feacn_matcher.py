# WORKFLOW: FEACN prefix rule matching and catalog checks for declared tariff codes.
# Used by: Parcel classifier, API parcel endpoints
# Functions:
# 1. rule_matches() - Does a single prefix rule (prefix or interval, minus exceptions) match a code
# 2. FeacnPrefixContext - Enabled rules loaded once per job, bucketed by two-digit head
# 3. find_matching_prefixes() - Set-based SQL lookup for one code (standalone classification)
# 4. check_tariff_code() - Well-formedness / existence / validity window against the catalog
# 5. tariff_outcome() - Fuse prefix matches and catalog state into one TariffOutcome
#
# Matching flow: code -> candidate rules -> prefix/interval test -> exception carve-outs -> PrefixMatch
# Rules are independent: a code can match many rules, there is no longest-prefix tie-break.
# Rules of disabled orders are never loaded.

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, exists, func, literal, or_, String
from sqlalchemy.orm import Session, selectinload

from db.models import FeacnCode, FeacnOrder, FeacnPrefix, FeacnPrefixException
from services.decision_table import TariffOutcome

logger = logging.getLogger(__name__)

FEACN_CODE_LENGTH = 10
_FEACN_CODE = re.compile(r"\d{%d}" % FEACN_CODE_LENGTH)
_PAD = "0" * FEACN_CODE_LENGTH


class TariffCodeState(str, Enum):
    KNOWN = "known"
    MALFORMED = "malformed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PrefixRule:
    id: int
    code: str
    interval_code: Optional[str] = None
    order_id: Optional[int] = None
    exceptions: Tuple[str, ...] = ()

    @property
    def is_interval(self) -> bool:
        return bool(self.interval_code)

    def bounds(self) -> Tuple[int, int]:
        return int(pad_code(self.code)), int(pad_code(self.interval_code))


@dataclass
class PrefixMatch:
    order_backed_prefix_ids: List[int] = field(default_factory=list)
    standalone_prefix_ids: List[int] = field(default_factory=list)
    order_ids: List[int] = field(default_factory=list)
    order_by_prefix: Dict[int, int] = field(default_factory=dict)

    @property
    def matched(self) -> bool:
        return bool(self.order_backed_prefix_ids or self.standalone_prefix_ids)

    def prefix_ids(self) -> List[int]:
        return sorted(self.order_backed_prefix_ids + self.standalone_prefix_ids)


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip()


def is_well_formed(code: Optional[str]) -> bool:
    """True if the code is exactly 10 digits."""
    return bool(_FEACN_CODE.fullmatch(normalize_code(code)))


def pad_code(code: str) -> str:
    return (code + _PAD)[:FEACN_CODE_LENGTH]


def rule_matches(code: str, rule: PrefixRule) -> bool:
    """
    Check one rule against a code.

    Interval rules cover the closed range between their zero-padded bounds and
    only apply to well-formed codes; other rules are plain prefixes. An exception
    fragment that prefixes the code cancels the match either way.
    """
    code = normalize_code(code)
    if not code:
        return False
    if rule.is_interval:
        if not is_well_formed(code) or not rule.code.isdigit() or not rule.interval_code.isdigit():
            return False
        left, right = rule.bounds()
        if not left <= int(code) <= right:
            return False
    elif not rule.code or not code.startswith(rule.code):
        return False
    return not any(exc and code.startswith(exc) for exc in rule.exceptions)


def _partition(rules: Iterable[PrefixRule]) -> PrefixMatch:
    result = PrefixMatch()
    orders = set()
    for rule in rules:
        if rule.order_id is None:
            result.standalone_prefix_ids.append(rule.id)
        else:
            result.order_backed_prefix_ids.append(rule.id)
            result.order_by_prefix[rule.id] = rule.order_id
            orders.add(rule.order_id)
    result.order_backed_prefix_ids.sort()
    result.standalone_prefix_ids.sort()
    result.order_ids = sorted(orders)
    return result


def _enabled_rules_query(db: Session):
    return (
        db.query(FeacnPrefix)
        .outerjoin(FeacnOrder, FeacnPrefix.feacn_order_id == FeacnOrder.id)
        .filter(or_(FeacnPrefix.feacn_order_id.is_(None), FeacnOrder.enabled.is_(True)))
    )


def _to_rule(prefix: FeacnPrefix) -> PrefixRule:
    return PrefixRule(
        id=prefix.id,
        code=normalize_code(prefix.code),
        interval_code=normalize_code(prefix.interval_code) or None,
        order_id=prefix.feacn_order_id,
        exceptions=tuple(normalize_code(e.code) for e in prefix.exceptions if normalize_code(e.code)),
    )


class FeacnPrefixContext:
    """Enabled prefix rules bucketed by the first two digits of their code."""

    def __init__(self, rules: Iterable[PrefixRule]):
        self._buckets: Dict[str, List[PrefixRule]] = {}
        self._unbucketed: List[PrefixRule] = []
        self.size = 0
        for rule in rules:
            self.size += 1
            head = rule.code[:2]
            spans_heads = rule.is_interval and rule.interval_code[:2] != head
            if len(head) < 2 or spans_heads:
                self._unbucketed.append(rule)
            else:
                self._buckets.setdefault(head, []).append(rule)

    @classmethod
    def load(cls, db: Session) -> "FeacnPrefixContext":
        """Load every enabled rule with its exceptions in one round-trip."""
        try:
            prefixes = _enabled_rules_query(db).options(selectinload(FeacnPrefix.exceptions)).all()
            context = cls(_to_rule(p) for p in prefixes)
            logger.info(f"Loaded {context.size} enabled FEACN prefix rules")
            return context
        except Exception as e:
            logger.error(f"Failed to load FEACN prefix rules: {e}")
            raise

    def classify(self, code: Optional[str]) -> PrefixMatch:
        code = normalize_code(code)
        if len(code) < 2:
            return PrefixMatch()
        candidates = self._buckets.get(code[:2], []) + self._unbucketed
        return _partition(rule for rule in candidates if rule_matches(code, rule))


def find_matching_prefixes(db: Session, code: Optional[str]) -> PrefixMatch:
    """
    Set-based lookup of the enabled rules matching one code.

    Args:
        db: Database session
        code: Declared tariff code

    Returns:
        PrefixMatch with the same semantics as FeacnPrefixContext.classify
    """
    code = normalize_code(code)
    if len(code) < 2:
        return PrefixMatch()

    code_lit = literal(code, type_=String)
    no_interval = or_(FeacnPrefix.interval_code.is_(None), FeacnPrefix.interval_code == "")
    conditions = [and_(no_interval, FeacnPrefix.code != "", code_lit.like(FeacnPrefix.code + "%"))]
    if is_well_formed(code):
        conditions.append(and_(
            ~no_interval,
            code_lit >= func.substr(FeacnPrefix.code + _PAD, 1, FEACN_CODE_LENGTH),
            code_lit <= func.substr(FeacnPrefix.interval_code + _PAD, 1, FEACN_CODE_LENGTH),
        ))
    carved_out = exists().where(and_(
        FeacnPrefixException.feacn_prefix_id == FeacnPrefix.id,
        FeacnPrefixException.code != "",
        code_lit.like(FeacnPrefixException.code + "%"),
    ))

    rows = (
        _enabled_rules_query(db)
        .with_entities(FeacnPrefix.id, FeacnPrefix.feacn_order_id)
        .filter(or_(*conditions), ~carved_out)
        .all()
    )
    return _partition(PrefixRule(id=row[0], code="", order_id=row[1]) for row in rows)


def check_tariff_code(db: Session, code: Optional[str], today: Optional[date] = None) -> TariffCodeState:
    """
    Check a declared code against the FEACN catalog.

    Args:
        db: Database session
        code: Declared tariff code
        today: Reference date for the validity window (defaults to today)

    Returns:
        MALFORMED if not exactly 10 digits, KNOWN if a currently valid catalog
        entry exists, UNKNOWN otherwise
    """
    code = normalize_code(code)
    if not is_well_formed(code):
        return TariffCodeState.MALFORMED

    today = today or date.today()
    found = db.query(exists().where(and_(
        FeacnCode.code == code,
        or_(FeacnCode.from_date.is_(None), FeacnCode.from_date <= today),
        or_(FeacnCode.to_date.is_(None), FeacnCode.to_date >= today),
    ))).scalar()
    return TariffCodeState.KNOWN if found else TariffCodeState.UNKNOWN


def tariff_outcome(state: TariffCodeState, prefix_match: PrefixMatch) -> TariffOutcome:
    """Prefix prohibition takes precedence over format and existence problems."""
    if prefix_match.matched:
        return TariffOutcome.PROHIBITED_BY_PREFIX
    if state is TariffCodeState.MALFORMED:
        return TariffOutcome.MALFORMED
    if state is TariffCodeState.UNKNOWN:
        return TariffOutcome.UNKNOWN
    return TariffOutcome.OK
