# WORKFLOW: Classification decision table for parcel check statuses.
# Used by: Parcel classifier, approval endpoint, API responses
# Functions:
# 1. decide() - Fuse tariff and word outcomes into one check status
# 2. resolve_status() - Same, but human-asserted statuses are kept
# 3. approve() - Reviewer approval transition
#
# Decision flow: (TariffOutcome, WordOutcome) -> CheckStatus
# Prefix prohibition wins over format/existence problems; stop-word matches
# combine with the tariff outcome instead of replacing it.

from enum import Enum, IntEnum
from typing import Dict, Tuple

from core.exceptions import ParcelApprovalError


class TariffOutcome(str, Enum):
    OK = "ok"
    MALFORMED = "malformed"
    UNKNOWN = "unknown"
    PROHIBITED_BY_PREFIX = "prohibited_by_prefix"


class WordOutcome(str, Enum):
    NO_MATCH = "no_match"
    STOP_WORD_MATCH = "stop_word_match"


class CheckStatus(IntEnum):
    NOT_CHECKED = 1
    BLOCKED_BY_FEACN_CODE = 129
    BLOCKED_BY_STOP_WORD = 130
    BLOCKED_BY_FEACN_CODE_AND_STOP_WORD = 131
    BLOCKED_BY_NONEXISTING_FEACN = 132
    BLOCKED_BY_NONEXISTING_FEACN_AND_STOP_WORD = 134
    BLOCKED_BY_INVALID_FEACN_FORMAT = 136
    BLOCKED_BY_INVALID_FEACN_FORMAT_AND_STOP_WORD = 138
    MARKED_BY_PARTNER = 200
    NO_ISSUES = 201
    APPROVED = 301
    APPROVED_WITH_EXCISE = 399

    @property
    def title(self) -> str:
        return _TITLES[self]

    @property
    def is_blocked(self) -> bool:
        return 128 < self.value < 200


# Set by people, never by automatic classification
HUMAN_ASSERTED = frozenset({
    CheckStatus.MARKED_BY_PARTNER,
    CheckStatus.APPROVED,
    CheckStatus.APPROVED_WITH_EXCISE,
})

DECISION_TABLE: Dict[Tuple[TariffOutcome, WordOutcome], CheckStatus] = {
    (TariffOutcome.OK, WordOutcome.NO_MATCH): CheckStatus.NO_ISSUES,
    (TariffOutcome.OK, WordOutcome.STOP_WORD_MATCH): CheckStatus.BLOCKED_BY_STOP_WORD,
    (TariffOutcome.PROHIBITED_BY_PREFIX, WordOutcome.NO_MATCH): CheckStatus.BLOCKED_BY_FEACN_CODE,
    (TariffOutcome.PROHIBITED_BY_PREFIX, WordOutcome.STOP_WORD_MATCH): CheckStatus.BLOCKED_BY_FEACN_CODE_AND_STOP_WORD,
    (TariffOutcome.UNKNOWN, WordOutcome.NO_MATCH): CheckStatus.BLOCKED_BY_NONEXISTING_FEACN,
    (TariffOutcome.UNKNOWN, WordOutcome.STOP_WORD_MATCH): CheckStatus.BLOCKED_BY_NONEXISTING_FEACN_AND_STOP_WORD,
    (TariffOutcome.MALFORMED, WordOutcome.NO_MATCH): CheckStatus.BLOCKED_BY_INVALID_FEACN_FORMAT,
    (TariffOutcome.MALFORMED, WordOutcome.STOP_WORD_MATCH): CheckStatus.BLOCKED_BY_INVALID_FEACN_FORMAT_AND_STOP_WORD,
}

_TITLES = {
    CheckStatus.NOT_CHECKED: "Not checked",
    CheckStatus.BLOCKED_BY_FEACN_CODE: "Blocked by FEACN code",
    CheckStatus.BLOCKED_BY_STOP_WORD: "Blocked by stop word",
    CheckStatus.BLOCKED_BY_FEACN_CODE_AND_STOP_WORD: "Blocked by FEACN code and stop word",
    CheckStatus.BLOCKED_BY_NONEXISTING_FEACN: "Blocked by non-existing FEACN code",
    CheckStatus.BLOCKED_BY_NONEXISTING_FEACN_AND_STOP_WORD: "Blocked by non-existing FEACN code and stop word",
    CheckStatus.BLOCKED_BY_INVALID_FEACN_FORMAT: "Blocked by invalid FEACN code format",
    CheckStatus.BLOCKED_BY_INVALID_FEACN_FORMAT_AND_STOP_WORD: "Blocked by invalid FEACN code format and stop word",
    CheckStatus.MARKED_BY_PARTNER: "Marked by partner",
    CheckStatus.NO_ISSUES: "No issues",
    CheckStatus.APPROVED: "Approved",
    CheckStatus.APPROVED_WITH_EXCISE: "Approved with excise",
}


def decide(tariff: TariffOutcome, word: WordOutcome) -> CheckStatus:
    """Map an outcome pair to its check status."""
    return DECISION_TABLE[(TariffOutcome(tariff), WordOutcome(word))]


def is_human_asserted(status_id: int) -> bool:
    return status_id in HUMAN_ASSERTED


def resolve_status(current_status_id: int, tariff: TariffOutcome, word: WordOutcome) -> CheckStatus:
    """
    Status a parcel should end up with after an automatic pass.

    Args:
        current_status_id: Status stored on the parcel
        tariff: Tariff outcome of this pass
        word: Word outcome of this pass

    Returns:
        The stored status when it is human-asserted, otherwise the table result
    """
    if is_human_asserted(current_status_id):
        return CheckStatus(current_status_id)
    return decide(tariff, word)


def approve(current_status_id: int, with_excise: bool = False) -> CheckStatus:
    """Reviewer approval; allowed from every status except partner marking."""
    if current_status_id == CheckStatus.MARKED_BY_PARTNER:
        raise ParcelApprovalError("Parcels marked by partner cannot be approved")
    return CheckStatus.APPROVED_WITH_EXCISE if with_excise else CheckStatus.APPROVED
