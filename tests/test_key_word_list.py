# WORKFLOW: Key-word list spreadsheet import tests.
# Test scenarios:
# 1. Comma-separated names, 9-digit codes and codes merged per word
# 2. Missing columns and malformed codes are rejected
# 3. Match type chosen by word count and morphology support
# 4. Existing key words are merged rather than duplicated

import pytest

from conftest import make_register
from core.exceptions import InvalidKeyWordListError
from db.models import KeyWord, KeyWordFeacnCode
from etl.key_word_list import KeyWordListImporter, choose_match_type, parse_key_word_list
from etl.spreadsheet import read_rows
from services.word_matcher import MatchType

COLUMNS = ["Код", "Наименование", "Перед описанием", "В конце описания"]


def sheet(rows, columns=COLUMNS):
    return make_register(rows, columns=columns)


def test_parse_splits_names_and_merges_codes():
    headers, rows = read_rows(sheet([
        {"Код": "711319000", "Наименование": "Золото, Кухонный нож"},
        {"Код": "8211910000", "Наименование": "нож"},
        {"Код": "8211920000", "Наименование": " , нож ,"},
        {"Код": None, "Наименование": "пропуск"},
    ]), "list.xlsx")

    entries = {e.word: e for e in parse_key_word_list(headers, rows)}

    assert list(entries) == ["золото", "кухонный нож", "нож"]
    assert entries["золото"].feacn_codes == ["0711319000"]
    assert entries["кухонный нож"].feacn_codes == ["0711319000"]
    assert entries["нож"].feacn_codes == ["8211910000", "8211920000"]


def test_parse_keeps_insert_texts():
    headers, rows = read_rows(sheet([
        {"Код": "8211910000", "Наименование": "нож", "Перед описанием": "Изделие:", "В конце описания": None},
    ]), "list.xlsx")

    entry = parse_key_word_list(headers, rows)[0]
    assert entry.insert_before == "Изделие:"
    assert entry.insert_after is None


def test_parse_requires_code_and_name_columns():
    headers, rows = read_rows(sheet([{"Код": "8211910000"}], columns=["Код", "Описание"]), "list.xlsx")
    with pytest.raises(InvalidKeyWordListError):
        parse_key_word_list(headers, rows)


@pytest.mark.parametrize("code", ["82119", "82119100000", "82119100AB"])
def test_parse_rejects_malformed_codes(code):
    headers, rows = read_rows(sheet([{"Код": code, "Наименование": "нож"}]), "list.xlsx")
    with pytest.raises(InvalidKeyWordListError) as exc_info:
        parse_key_word_list(headers, rows)
    assert "row 2" in exc_info.value.message


def test_match_type_follows_word_shape_and_support(gate):
    assert choose_match_type("кухонный нож", gate) is MatchType.PHRASE
    assert choose_match_type("нож", gate) is MatchType.WEAK_MORPHOLOGY
    assert choose_match_type("золото", gate) is MatchType.WEAK_MORPHOLOGY
    assert choose_match_type("контрафакт", gate) is MatchType.EXACT_SYMBOLS


def test_import_creates_key_words(db, gate):
    summary = KeyWordListImporter(db, gate).import_list(sheet([
        {"Код": "8211910000", "Наименование": "нож, кухонный нож, контрафакт"},
    ]), "list.xlsx")

    assert (summary.created, summary.updated) == (3, 0)
    stored = {k.word: k for k in db.query(KeyWord).all()}
    assert stored["нож"].match_type_id == MatchType.WEAK_MORPHOLOGY
    assert stored["кухонный нож"].match_type_id == MatchType.PHRASE
    assert stored["контрафакт"].match_type_id == MatchType.EXACT_SYMBOLS
    assert [c.code for c in stored["нож"].feacn_codes] == ["8211910000"]


def test_import_merges_existing_key_words(db, gate):
    db.add(KeyWord(word="Нож", match_type_id=int(MatchType.EXACT_WORD), insert_before="Старое",
                   feacn_codes=[KeyWordFeacnCode(code="8211910000")]))
    db.commit()

    summary = KeyWordListImporter(db, gate).import_list(sheet([
        {"Код": "8211910000", "Наименование": "нож"},
        {"Код": "8211920000", "Наименование": "нож"},
    ]), "list.xlsx")

    assert (summary.created, summary.updated) == (0, 1)
    db.expire_all()
    key_word = db.query(KeyWord).one()
    assert key_word.word == "Нож"
    assert key_word.match_type_id == MatchType.WEAK_MORPHOLOGY
    assert sorted(c.code for c in key_word.feacn_codes) == ["8211910000", "8211920000"]
    assert key_word.insert_before == "Старое"


def test_unreadable_list_is_rejected(db, gate):
    with pytest.raises(InvalidKeyWordListError):
        KeyWordListImporter(db, gate).import_list(b"not a workbook", "list.xls")
    assert db.query(KeyWord).count() == 0
