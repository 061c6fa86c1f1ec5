# WORKFLOW: FEACN code catalog replacement from a spreadsheet export.
# Used by: FEACN catalog upload endpoint, bootstrap script
# Functions:
# 1. parse_catalog_rows() - Sheet rows -> CatalogRow records (rows without an ID are skipped)
# 2. build_catalog() - CatalogRow records -> FeacnCode entities with parent links
# 3. FeacnCatalogLoader.load() - Replace the whole catalog in one transaction
#
# Catalog flow: upload -> header check -> rows -> FeacnCode tree -> delete old catalog -> insert new
# Only one catalog load runs at a time; a second upload is refused while one is in progress.

import logging
import threading
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.exceptions import CatalogLoadInProgressError, InvalidFeacnCatalogError, InvalidRegisterError
from db.models import FeacnCode
from etl.converters import to_date, to_int, to_text
from etl.spreadsheet import read_rows, resolve_spreadsheet

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ("ID", "Child", "Next", "Code", "CodeEx", "Date1", "Date2",
                    "DatePrev", "TextPrev", "Text", "TextEx")
CODE_LENGTH = 10

_load_lock = threading.Lock()


@dataclass
class CatalogRow:
    row_id: int
    child_id: Optional[int]
    code: str
    code_ex: Optional[str]
    from_date: Optional[date]
    to_date: Optional[date]
    old_name_to_date: Optional[date]
    old_name: Optional[str]
    name: Optional[str]
    normalized: Optional[str]


def _column_map(headers: List[str]) -> Dict[str, str]:
    by_name = {header.strip().lower(): header for header in headers if header and header.strip()}
    missing = [h for h in REQUIRED_HEADERS if h.lower() not in by_name]
    if missing:
        raise InvalidFeacnCatalogError(f"Catalog is missing required columns: {', '.join(missing)}")
    return {h: by_name[h.lower()] for h in REQUIRED_HEADERS}


def parse_catalog_rows(headers: List[str], rows: List[Dict[str, Any]]) -> List[CatalogRow]:
    """
    Parse catalog sheet rows.

    Rows without a usable ID are skipped; codes longer than 10 characters are truncated.

    Raises:
        InvalidFeacnCatalogError: a required column is missing
    """
    columns = _column_map(headers)
    parsed: List[CatalogRow] = []

    for row in rows:
        def cell(name: str) -> Optional[str]:
            return to_text(row.get(columns[name]))

        row_id = to_int(cell("ID"))
        if not row_id:
            logger.debug(f"Skipping catalog row {row.get('__row__')}: no ID")
            continue

        code = cell("Code") or ""
        if len(code) > CODE_LENGTH:
            logger.warning(f"Catalog row {row.get('__row__')}: code '{code}' truncated to {CODE_LENGTH} characters")
            code = code[:CODE_LENGTH]

        parsed.append(CatalogRow(
            row_id=row_id,
            child_id=to_int(cell("Child")),
            code=code,
            code_ex=cell("CodeEx"),
            from_date=to_date(cell("Date1")),
            to_date=to_date(cell("Date2")),
            old_name_to_date=to_date(cell("DatePrev")),
            old_name=cell("TextPrev"),
            name=cell("Text"),
            normalized=cell("TextEx"),
        ))

    return parsed


def build_catalog(rows: List[CatalogRow]) -> List[FeacnCode]:
    """A row naming a Child ID becomes the parent of that row."""
    codes = [
        FeacnCode(
            code=r.code,
            code_ex=r.code_ex,
            name=r.name,
            normalized=r.normalized,
            from_date=r.from_date,
            to_date=r.to_date,
            old_name=r.old_name,
            old_name_to_date=r.old_name_to_date,
        )
        for r in rows
    ]
    by_row_id = {r.row_id: code for r, code in zip(rows, codes)}

    for r, code in zip(rows, codes):
        if r.child_id is not None and r.child_id in by_row_id:
            by_row_id[r.child_id].parent = code

    roots = sum(1 for code in codes if code.parent is None)
    logger.info(f"Built catalog of {len(codes)} codes with {roots} root nodes")
    return codes


class FeacnCatalogLoader:
    """Replaces the FEACN code catalog with a spreadsheet export."""

    def __init__(self, db: Session):
        self.db = db

    def load(self, content: bytes, file_name: str) -> int:
        """
        Replace the catalog with the codes of an uploaded export.

        Args:
            content: Uploaded bytes (.xlsx, .xls or .zip holding one of them)
            file_name: Uploaded file name

        Returns:
            Number of catalog codes stored

        Raises:
            CatalogLoadInProgressError: another catalog load is running
            InvalidFeacnCatalogError: unreadable sheet or missing columns
        """
        if not _load_lock.acquire(blocking=False):
            raise CatalogLoadInProgressError()
        try:
            logger.info(f"Loading FEACN catalog from {file_name}")
            spreadsheet, sheet_name = resolve_spreadsheet(content, file_name)
            try:
                headers, rows = read_rows(spreadsheet, sheet_name)
            except InvalidRegisterError as e:
                raise InvalidFeacnCatalogError(e.message) from e

            codes = build_catalog(parse_catalog_rows(headers, rows))
            return self._replace(codes)
        finally:
            _load_lock.release()

    def _replace(self, codes: List[FeacnCode]) -> int:
        try:
            removed = self.db.query(FeacnCode).delete(synchronize_session=False)
            self.db.add_all(codes)
            self.db.commit()
        except Exception as e:
            logger.error(f"FEACN catalog replacement failed, rolling back: {e}")
            self.db.rollback()
            raise
        logger.info(f"Replaced {removed} catalog codes with {len(codes)}")
        return len(codes)


def create_feacn_catalog_loader(db: Session) -> FeacnCatalogLoader:
    """Create FEACN catalog loader instance."""
    return FeacnCatalogLoader(db)
