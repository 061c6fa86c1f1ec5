# WORKFLOW: Vocabulary service and morphology gate tests.
# Test scenarios:
# 1. Morphology match types are gated by the reported support level
# 2. Rejected entries are never persisted
# 3. Non-morphology match types never consult the gate
# 4. Duplicate words (case-insensitive) and key-word FEACN code normalization

import pytest

from conftest import FakeMorphologyGate
from core.exceptions import (
    DuplicateWordError,
    InsufficientMorphologySupportError,
    InvalidFeacnCodeError,
    VocabularyEntryNotFoundError,
)
from db.models import KeyWord, StopWord
from services.morphology import MorphologySupportLevel
from services.vocabulary import VocabularyService, normalize_feacn_code, validate_vocabulary_entry
from services.word_matcher import MatchType


def test_strong_morphology_with_forms_support_is_rejected(db, gate):
    service = VocabularyService(db, gate)

    with pytest.raises(InsufficientMorphologySupportError) as exc_info:
        service.create_key_word("золото", MatchType.STRONG_MORPHOLOGY)

    assert exc_info.value.level is MorphologySupportLevel.FORMS_SUPPORT
    assert exc_info.value.to_detail()["level"] == "FORMS_SUPPORT"
    assert db.query(KeyWord).count() == 0


def test_weak_morphology_with_forms_support_is_accepted(db, gate):
    entry = VocabularyService(db, gate).create_key_word("золото", MatchType.WEAK_MORPHOLOGY)
    assert entry.id is not None
    assert db.query(KeyWord).count() == 1


def test_unknown_word_is_rejected_for_any_morphology_type(db, gate):
    service = VocabularyService(db, gate)
    for match_type in (MatchType.WEAK_MORPHOLOGY, MatchType.STRONG_MORPHOLOGY):
        with pytest.raises(InsufficientMorphologySupportError) as exc_info:
            service.create_stop_word("фыва", match_type)
        assert exc_info.value.level is MorphologySupportLevel.NO_SUPPORT
    assert db.query(StopWord).count() == 0


@pytest.mark.parametrize("match_type", [MatchType.EXACT_SYMBOLS, MatchType.EXACT_WORD, MatchType.PHRASE])
def test_non_morphology_types_skip_the_gate(match_type):
    gate = FakeMorphologyGate()
    assert validate_vocabulary_entry("фыва", match_type, gate) is None
    assert gate.checked == []


def test_full_support_is_reported(gate):
    level = validate_vocabulary_entry("нож", MatchType.STRONG_MORPHOLOGY, gate)
    assert level is MorphologySupportLevel.FULL_SUPPORT


def test_duplicate_words_are_case_insensitive(db, gate):
    service = VocabularyService(db, gate)
    service.create_stop_word("Контрафакт", MatchType.EXACT_WORD)

    with pytest.raises(DuplicateWordError):
        service.create_stop_word("КОНТРАФАКТ", MatchType.EXACT_SYMBOLS)
    assert db.query(StopWord).count() == 1


def test_update_keeps_own_word(db, gate):
    service = VocabularyService(db, gate)
    entry = service.create_stop_word("нож", MatchType.EXACT_WORD)

    updated = service.update_stop_word(entry.id, "Нож", MatchType.STRONG_MORPHOLOGY)
    assert updated.word == "Нож"
    assert updated.match_type_id == MatchType.STRONG_MORPHOLOGY


def test_key_word_codes_are_normalized(db, gate):
    entry = VocabularyService(db, gate).create_key_word(
        "кроссовки", MatchType.EXACT_WORD, feacn_codes=["640411000", "6404110000", " 6403990000 "],
    )
    assert [c.code for c in entry.feacn_codes] == ["0640411000", "6404110000", "6403990000"]


@pytest.mark.parametrize("code", ["123", "12345678901", "64041100ab", ""])
def test_invalid_key_word_codes_are_rejected(code):
    with pytest.raises(InvalidFeacnCodeError):
        normalize_feacn_code(code)


def test_delete_unknown_entry(db, gate):
    with pytest.raises(VocabularyEntryNotFoundError):
        VocabularyService(db, gate).delete_key_word(999)
