# WORKFLOW: Decision table tests.
# Test scenarios:
# 1. Every outcome pair maps to exactly one status, no two pairs share a status
# 2. Human-asserted statuses survive automatic passes
# 3. Reviewer approval transitions

import itertools

import pytest

from core.exceptions import ParcelApprovalError
from services.decision_table import (
    DECISION_TABLE,
    HUMAN_ASSERTED,
    CheckStatus,
    TariffOutcome,
    WordOutcome,
    approve,
    decide,
    resolve_status,
)


def test_table_is_total_and_injective():
    pairs = list(itertools.product(TariffOutcome, WordOutcome))
    assert set(DECISION_TABLE) == set(pairs)
    statuses = [decide(t, w) for t, w in pairs]
    assert len(set(statuses)) == len(pairs)
    assert not set(statuses) & HUMAN_ASSERTED


@pytest.mark.parametrize("tariff,word,expected", [
    (TariffOutcome.OK, WordOutcome.NO_MATCH, CheckStatus.NO_ISSUES),
    (TariffOutcome.OK, WordOutcome.STOP_WORD_MATCH, CheckStatus.BLOCKED_BY_STOP_WORD),
    (TariffOutcome.PROHIBITED_BY_PREFIX, WordOutcome.STOP_WORD_MATCH,
     CheckStatus.BLOCKED_BY_FEACN_CODE_AND_STOP_WORD),
    (TariffOutcome.UNKNOWN, WordOutcome.STOP_WORD_MATCH, CheckStatus.BLOCKED_BY_NONEXISTING_FEACN_AND_STOP_WORD),
    (TariffOutcome.MALFORMED, WordOutcome.NO_MATCH, CheckStatus.BLOCKED_BY_INVALID_FEACN_FORMAT),
])
def test_decide(tariff, word, expected):
    assert decide(tariff, word) is expected


def test_only_no_issues_is_unblocked():
    blocked = [s for s in DECISION_TABLE.values() if s.is_blocked]
    assert len(blocked) == len(DECISION_TABLE) - 1
    assert not CheckStatus.NO_ISSUES.is_blocked


@pytest.mark.parametrize("status", sorted(HUMAN_ASSERTED))
def test_human_asserted_status_is_kept(status):
    assert resolve_status(int(status), TariffOutcome.MALFORMED, WordOutcome.STOP_WORD_MATCH) is status


def test_automatic_status_is_recomputed():
    current = int(CheckStatus.BLOCKED_BY_STOP_WORD)
    assert resolve_status(current, TariffOutcome.OK, WordOutcome.NO_MATCH) is CheckStatus.NO_ISSUES


def test_approve_from_blocked_status():
    assert approve(int(CheckStatus.BLOCKED_BY_FEACN_CODE)) is CheckStatus.APPROVED
    assert approve(int(CheckStatus.NO_ISSUES), with_excise=True) is CheckStatus.APPROVED_WITH_EXCISE


def test_partner_marked_parcel_cannot_be_approved():
    with pytest.raises(ParcelApprovalError):
        approve(int(CheckStatus.MARKED_BY_PARTNER))
