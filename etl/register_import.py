# WORKFLOW: Register import from uploaded spreadsheets into parcels.
# Used by: Import pipeline (start_import), bootstrap script
# Functions:
# 1. import_register() - Upload bytes -> new Register with its parcels
# 2. _build_parcel() - One mapped row -> Parcel (shared columns + variant payload)
#
# Import flow: upload -> resolve spreadsheet -> read rows -> map headers -> convert cells
#              -> partner colours -> bulk insert under a new Register
# Input problems are raised before anything is written; the insert is one transaction.

"""
Register import from uploaded spreadsheets into parcels.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import EmptyFileError, InvalidRegisterError
from db.models import Parcel, Register
from etl.converters import convert_value, to_text
from etl.excel_colors import row_fill_colors
from etl.register_mapping import RegisterMappings, map_headers
from etl.spreadsheet import file_extension, read_rows, resolve_spreadsheet
from services.decision_table import CheckStatus
from services.parcel_variants import COMMON_FIELDS, DOCUMENT_TYPES, build_details

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    register_id: int
    document_type: str
    file_name: str
    parcel_count: int
    marked_by_partner: int


class RegisterImporter:
    """Creates a register and its parcels from an uploaded spreadsheet or archive."""

    def __init__(self, db: Session, mappings: RegisterMappings):
        self.db = db
        self.mappings = mappings

    def import_register(self, content: bytes, file_name: str,
                        document_type: Optional[str] = None) -> ImportResult:
        """
        Import an uploaded register.

        Args:
            content: Uploaded bytes (.xlsx, .xls or .zip holding one of them)
            file_name: Uploaded file name
            document_type: wbr or ozon, defaults to settings.default_document_type

        Returns:
            ImportResult with the new register id and parcel count

        Raises:
            EmptyFileError, UnsupportedFileTypeError, NoSpreadsheetInArchiveError,
            InvalidRegisterError
        """
        document_type = (document_type or settings.default_document_type).lower()
        if document_type not in DOCUMENT_TYPES:
            raise InvalidRegisterError(f"Unknown register document type '{document_type}'")
        mapping = self.mappings.get(document_type)
        if not mapping:
            raise InvalidRegisterError(f"No header mapping configured for '{document_type}' registers")

        logger.info(f"Importing {document_type} register {file_name} ({len(content or b'')} bytes)")
        spreadsheet, sheet_name = resolve_spreadsheet(content, file_name)
        headers, rows = read_rows(spreadsheet, sheet_name)

        column_map = map_headers(headers, mapping)
        if not column_map:
            raise InvalidRegisterError(f"None of the headers in {sheet_name} match the {document_type} register mapping")

        colors = row_fill_colors(spreadsheet) if file_extension(sheet_name) == ".xlsx" else {}

        parcels: List[Parcel] = []
        for row in rows:
            sheet_row = row.get("__row__")
            if all(to_text(row.get(header)) is None for header in headers):
                logger.info(f"Skipping empty row [{sheet_row}]")
                continue
            parcels.append(self._build_parcel(document_type, row, column_map, colors.get(sheet_row)))

        if not parcels:
            raise EmptyFileError("Excel file is empty")

        register = Register(file_name=file_name, document_type=document_type)
        register.parcels = parcels
        try:
            self.db.add(register)
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to store register {file_name}: {e}")
            self.db.rollback()
            raise

        marked = sum(1 for p in parcels if p.check_status_id == CheckStatus.MARKED_BY_PARTNER)
        logger.info(f"Imported register {register.id}: {len(parcels)} parcels, {marked} marked by partner")
        return ImportResult(
            register_id=register.id,
            document_type=document_type,
            file_name=file_name,
            parcel_count=len(parcels),
            marked_by_partner=marked,
        )

    def _build_parcel(self, document_type: str, row: Dict[str, Any],
                      column_map: Dict[str, str], color: Optional[int]) -> Parcel:
        values: Dict[str, Any] = {}
        for header, field in column_map.items():
            value = convert_value(field, row.get(header))
            if value is not None:
                values[field] = value

        details = build_details(document_type, values)
        common = {field: values.get(field) for field in COMMON_FIELDS}
        if common["row_number"] is None:
            common["row_number"] = row.get("__row__")

        return Parcel(
            document_type=document_type,
            check_status_id=int(CheckStatus.MARKED_BY_PARTNER if color else CheckStatus.NOT_CHECKED),
            partner_color=color,
            details=details.model_dump(mode="json", exclude_none=True),
            **common,
        )


def create_register_importer(db: Session, mappings: RegisterMappings) -> RegisterImporter:
    """Create register importer instance."""
    return RegisterImporter(db, mappings)
