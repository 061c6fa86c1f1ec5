# WORKFLOW: Reference data seed validation and loading tests.
# Test scenarios:
# 1. Valid seed loads orders, prefixes, catalog codes and vocabularies
# 2. Invalid codes, empty intervals and unknown match types are reported
# 3. Vocabulary entries from a seed go through the morphology gate

from datetime import date

import pytest

from core.exceptions import InsufficientMorphologySupportError
from db.models import FeacnCode, FeacnOrder, FeacnPrefix, KeyWord, StopWord
from etl.reference_data import load_reference_data, validate_prefix_code, validate_seed
from services.feacn_matcher import FeacnPrefixContext

SEED = {
    "feacn_codes": [
        {"code": "1234567890", "name": "Test goods", "from_date": "2020-01-01", "to_date": "2030-12-31"},
        {"code": "8517620000", "name": "Radio equipment"},
    ],
    "feacn_orders": [
        {
            "title": "Order 1",
            "url": "https://example.org/order-1",
            "prefixes": [
                {"code": "8517", "exceptions": ["851712"]},
                {"code": "0101", "interval_code": "0103"},
            ],
        }
    ],
    "feacn_prefixes": [{"code": "9304", "description": "Weapons"}],
    "stop_words": [{"word": "контрафакт", "match_type_id": 11}],
    "key_words": [{"word": "золото", "match_type_id": 41, "feacn_codes": ["7113190000"]}],
}


def test_valid_seed_passes():
    assert validate_seed(SEED) == (True, [])


def test_invalid_seed_reports_every_problem():
    seed = {
        "feacn_codes": [{"code": "123"}, {"code": "1234567890", "from_date": "2025-01-01", "to_date": "2024-01-01"}],
        "feacn_orders": [{"title": "", "prefixes": [{"code": "0103", "interval_code": "0101"}]}],
        "feacn_prefixes": [{"code": "85a7"}],
        "stop_words": [{"word": "нож", "match_type_id": 99}],
    }
    is_valid, errors = validate_seed(seed)
    assert not is_valid
    assert len(errors) == 6


def test_prefix_codes_allow_fragments():
    assert validate_prefix_code("8")
    assert validate_prefix_code("8517120000")
    assert not validate_prefix_code("85171200001")
    assert not validate_prefix_code(None)


def test_load_reference_data(db, gate):
    summary = load_reference_data(db, SEED, gate)

    assert (summary.feacn_codes, summary.feacn_orders, summary.feacn_prefixes) == (2, 1, 3)
    assert (summary.stop_words, summary.key_words) == (1, 1)
    assert db.query(FeacnCode).filter(FeacnCode.code == "1234567890").one().to_date == date(2030, 12, 31)
    assert db.query(FeacnOrder).one().enabled is True
    assert db.query(FeacnPrefix).filter(FeacnPrefix.feacn_order_id.is_(None)).count() == 1
    assert db.query(StopWord).count() == 1
    assert db.query(KeyWord).one().feacn_codes[0].code == "7113190000"

    context = FeacnPrefixContext.load(db)
    assert context.classify("8517620000").matched
    assert not context.classify("8517120000").matched


def test_seed_vocabulary_is_gated(db, gate):
    seed = {"key_words": [{"word": "золото", "match_type_id": 51}]}
    with pytest.raises(InsufficientMorphologySupportError):
        load_reference_data(db, seed, gate)
    assert db.query(KeyWord).count() == 0
