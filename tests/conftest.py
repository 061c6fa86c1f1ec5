# WORKFLOW: Shared fixtures for the Parcel Compliance API test suite.
# Used by: All test modules
# Fixtures:
# 1. engine / session_factory / db - sqlite database under tmp_path with all tables
# 2. gate - FakeMorphologyGate with a small hand-written dictionary
# 3. mappings - Register header mappings loaded from mapping/
# 4. make_register() - In-memory WBR/Ozon spreadsheets (pandas + openpyxl)
# 5. ManualExecutor - Runs pipeline jobs on demand in the test thread

import io
import zipfile
from concurrent.futures import Future
from typing import Dict, Iterable, List, Optional, Set

import pandas as pd
import pytest
from openpyxl import load_workbook
from openpyxl.styles import PatternFill
from sqlalchemy.orm import sessionmaker

from db.session import build_engine, init_db
from etl.register_mapping import load_register_mappings
from services.morphology import MorphologySupportLevel

WBR_COLUMNS = ["Номер заказа", "Наименование товара", "Описание", "ТН ВЭД", "Страна происхождения", "Количество"]


class FakeMorphologyGate:
    """Dictionary stand-in: levels, forms and families are given explicitly."""

    def __init__(self, levels: Optional[Dict[str, MorphologySupportLevel]] = None,
                 forms: Optional[Dict[str, Set[str]]] = None,
                 families: Optional[Dict[str, Set[str]]] = None):
        self.levels = levels or {}
        self.forms = forms or {}
        self.families = families or {}
        self.checked: List[str] = []

    def check_word(self, word: str) -> MorphologySupportLevel:
        self.checked.append(word)
        return self.levels.get(word.casefold(), MorphologySupportLevel.NO_SUPPORT)

    def inflected_forms(self, word: str) -> Set[str]:
        return set(self.forms.get(word.casefold(), set()))

    def stem_family(self, word: str) -> Set[str]:
        return set(self.families.get(word.casefold(), set()))


class ManualExecutor:
    """Collects submitted jobs and runs them when the test says so."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs) -> Future:
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_all(self) -> None:
        pending, self.pending = self.pending, []
        for future, fn, args, kwargs in pending:
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)

    def shutdown(self, wait: bool = True) -> None:
        self.pending = []


def make_register(rows: Iterable[Dict[str, object]], columns: List[str] = WBR_COLUMNS,
                  colored_rows: Iterable[int] = (), color: str = "FFFFFF00") -> bytes:
    """
    Build an .xlsx register.

    Args:
        rows: Cell values keyed by header
        columns: Header row
        colored_rows: 0-based data row indexes whose first cell gets a solid fill
        color: ARGB fill colour

    Returns:
        XLSX bytes
    """
    buffer = io.BytesIO()
    pd.DataFrame(list(rows), columns=columns).to_excel(buffer, index=False, engine="openpyxl")
    colored_rows = list(colored_rows)
    if not colored_rows:
        return buffer.getvalue()

    workbook = load_workbook(io.BytesIO(buffer.getvalue()))
    sheet = workbook.worksheets[0]
    for index in colored_rows:
        sheet.cell(row=index + 2, column=1).fill = PatternFill(fill_type="solid", fgColor=color)
    out = io.BytesIO()
    workbook.save(out)
    return out.getvalue()


def make_zip(members: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in members.items():
            archive.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def gate():
    return FakeMorphologyGate(
        levels={
            "золото": MorphologySupportLevel.FORMS_SUPPORT,
            "нож": MorphologySupportLevel.FULL_SUPPORT,
        },
        forms={
            "золото": {"золото", "золота", "золоту", "золотом", "золоте"},
            "нож": {"нож", "ножа", "ножу", "ножом", "ноже", "ножи", "ножей"},
        },
        families={
            "нож": {"нож", "ножа", "ножи", "ножик", "ножика", "ножичек", "ножевой", "ножевая"},
        },
    )


@pytest.fixture(scope="session")
def mappings():
    return load_register_mappings()
