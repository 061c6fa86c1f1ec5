# WORKFLOW: Register upload resolution and import tests.
# Test scenarios:
# 1. Upload rejections: empty file, unsupported type, archive without a register
# 2. ZIP archives holding a register
# 3. Header mapping, cell conversion and variant payloads
# 4. Partner-coloured rows and skipped empty rows

import pytest

from conftest import make_register, make_zip
from core.exceptions import (
    EmptyFileError,
    InvalidRegisterError,
    NoSpreadsheetInArchiveError,
    UnsupportedFileTypeError,
)
from db.models import Parcel, Register
from etl.converters import lookup_country_code, to_date, to_decimal
from etl.register_import import RegisterImporter
from etl.spreadsheet import read_rows, resolve_spreadsheet
from services.decision_table import CheckStatus

ROW = {
    "Номер заказа": "WB-1001",
    "Наименование товара": "Сумка",
    "Описание": "Сумка женская кожаная",
    "ТН ВЭД": "4202210000",
    "Страна происхождения": "CN",
    "Количество": "2",
}


def test_upload_rejections_are_distinct():
    errors = []
    for content, name in [
        (b"", "register.xlsx"),
        (b"plain text", "register.txt"),
        (make_zip({"readme.txt": b"nothing here"}), "register.zip"),
    ]:
        with pytest.raises(Exception) as exc_info:
            resolve_spreadsheet(content, name)
        errors.append(exc_info.value)

    assert [type(e) for e in errors] == [EmptyFileError, UnsupportedFileTypeError, NoSpreadsheetInArchiveError]
    assert len({e.code for e in errors}) == 3


def test_broken_zip_is_unsupported():
    with pytest.raises(UnsupportedFileTypeError):
        resolve_spreadsheet(b"not a zip", "register.zip")


def test_zip_resolves_first_register():
    register = make_register([ROW])
    content, name = resolve_spreadsheet(
        make_zip({"docs/readme.txt": b"-", "docs/register.xlsx": register}), "upload.zip"
    )
    assert name == "register.xlsx"
    assert content == register


def test_read_rows_keys_by_header_and_sheet_row():
    headers, rows = read_rows(make_register([ROW, {**ROW, "Описание": None}]), "register.xlsx")
    assert headers[:2] == ["Номер заказа", "Наименование товара"]
    assert rows[0]["ТН ВЭД"] == "4202210000"
    assert rows[0]["__row__"] == 2
    assert rows[1]["Описание"] is None
    assert rows[1]["__row__"] == 3


@pytest.mark.parametrize("content,name", [
    (b"definitely not a spreadsheet", "register.xlsx"),
    (b"definitely not a spreadsheet", "register.xls"),
    (make_register([ROW]), "register.xls"),
])
def test_unreadable_spreadsheet_is_invalid(content, name):
    with pytest.raises(InvalidRegisterError):
        read_rows(content, name)


def test_corrupt_xls_upload_is_rejected_before_import(db, mappings):
    with pytest.raises(InvalidRegisterError):
        RegisterImporter(db, mappings).import_register(b"\xd0\xcf\x11\xe0 broken", "register.xls", "wbr")
    assert db.query(Register).count() == 0


def test_header_only_sheet_is_empty():
    with pytest.raises(EmptyFileError):
        read_rows(make_register([]), "register.xlsx")


def test_converters_follow_russian_locale():
    assert to_decimal("1 234,5") == 1234.5
    assert to_date("31.12.2024").isoformat() == "2024-12-31"
    assert lookup_country_code("Китай") == 156
    assert lookup_country_code("643") == 643
    assert lookup_country_code("Атлантида") is None


def test_import_builds_parcels_with_variant_payload(db, mappings):
    result = RegisterImporter(db, mappings).import_register(make_register([ROW]), "register.xlsx", "wbr")

    assert result.parcel_count == 1
    register = db.get(Register, result.register_id)
    assert register.document_type == "wbr"
    parcel = register.parcels[0]
    assert parcel.check_status_id == CheckStatus.NOT_CHECKED
    assert parcel.tn_ved == "4202210000"
    assert parcel.country_code == 156
    assert parcel.quantity == 2.0
    assert parcel.row_number == 2
    assert parcel.details == {"document_type": "wbr", "order_number": "WB-1001"}


def test_import_marks_coloured_rows_and_skips_empty_rows(db, mappings):
    empty = {column: None for column in ROW}
    content = make_register([ROW, empty, {**ROW, "Номер заказа": "WB-1002"}], colored_rows=[2])

    result = RegisterImporter(db, mappings).import_register(content, "register.xlsx", "wbr")

    assert result.parcel_count == 2
    assert result.marked_by_partner == 1
    parcels = db.query(Parcel).order_by(Parcel.id).all()
    assert [p.check_status_id for p in parcels] == [CheckStatus.NOT_CHECKED, CheckStatus.MARKED_BY_PARTNER]
    assert parcels[1].partner_color == 0xFFFFFF00
    assert parcels[1].row_number == 4


def test_import_rejects_unknown_document_type(db, mappings):
    with pytest.raises(InvalidRegisterError):
        RegisterImporter(db, mappings).import_register(make_register([ROW]), "register.xlsx", "dhl")
    assert db.query(Register).count() == 0


def test_import_rejects_unmapped_headers(db, mappings):
    content = make_register([{"Foo": "1", "Bar": "2"}], columns=["Foo", "Bar"])
    with pytest.raises(InvalidRegisterError):
        RegisterImporter(db, mappings).import_register(content, "register.xlsx", "wbr")
    assert db.query(Register).count() == 0


def test_ozon_register_uses_posting_number(db, mappings):
    content = make_register(
        [{"Номер отправления": "OZ-77", "Наименование товара": "Кружка", "ТН ВЭД": "6912002000"}],
        columns=["Номер отправления", "Наименование товара", "ТН ВЭД"],
    )
    result = RegisterImporter(db, mappings).import_register(content, "ozon.xlsx", "ozon")
    parcel = db.get(Register, result.register_id).parcels[0]
    assert parcel.document_type == "ozon"
    assert parcel.details["posting_number"] == "OZ-77"
