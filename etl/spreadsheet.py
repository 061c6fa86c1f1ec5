# WORKFLOW: Uploaded register payload resolution and sheet reading.
# Used by: Register importer, bootstrap script
# Functions:
# 1. resolve_spreadsheet() - Upload bytes -> single XLSX/XLS payload (archives are searched)
# 2. extract_spreadsheet_from_zip() - First .xlsx/.xls member of a ZIP archive
# 3. read_rows() - Spreadsheet bytes -> header list + row dicts (first sheet)
#
# Ingestion flow: upload bytes -> extension check -> (ZIP -> first XLSX) -> pandas DataFrame -> rows
# Rejections are raised before anything is persisted.

"""
Uploaded register payload resolution and sheet reading.
"""

import io
import zipfile
import logging
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
import xlrd
from openpyxl.utils.exceptions import InvalidFileException

from core.exceptions import (
    EmptyFileError,
    InvalidRegisterError,
    NoSpreadsheetInArchiveError,
    UnsupportedFileTypeError,
)

logger = logging.getLogger(__name__)

SPREADSHEET_EXTENSIONS = (".xlsx", ".xls")
ARCHIVE_EXTENSIONS = (".zip",)


def file_extension(file_name: str) -> str:
    return PurePosixPath((file_name or "").replace("\\", "/")).suffix.lower()


def extract_spreadsheet_from_zip(content: bytes, archive_name: str) -> Optional[Tuple[bytes, str]]:
    """
    Find the first spreadsheet inside a ZIP archive.

    Args:
        content: Archive bytes
        archive_name: Uploaded archive name (for logging)

    Returns:
        (spreadsheet bytes, member name) or None if the archive holds no spreadsheet
    """
    try:
        with zipfile.ZipFile(io.BytesIO(content), 'r') as zip_ref:
            for member in zip_ref.infolist():
                if member.is_dir() or file_extension(member.filename) not in SPREADSHEET_EXTENSIONS:
                    continue
                logger.info(f"Found register {member.filename} in {archive_name}")
                return zip_ref.read(member), PurePosixPath(member.filename).name
    except zipfile.BadZipFile as e:
        logger.error(f"Failed to open ZIP archive {archive_name}: {e}")
        raise UnsupportedFileTypeError(".zip") from e
    return None


def resolve_spreadsheet(content: bytes, file_name: str) -> Tuple[bytes, str]:
    """
    Resolve an upload to a single spreadsheet payload.

    Args:
        content: Uploaded bytes
        file_name: Uploaded file name

    Returns:
        (spreadsheet bytes, spreadsheet file name)

    Raises:
        EmptyFileError: no bytes were uploaded
        UnsupportedFileTypeError: extension is neither a spreadsheet nor an archive
        NoSpreadsheetInArchiveError: archive without .xlsx/.xls members
    """
    if not content:
        raise EmptyFileError()

    extension = file_extension(file_name)
    if extension in SPREADSHEET_EXTENSIONS:
        return content, file_name
    if extension in ARCHIVE_EXTENSIONS:
        found = extract_spreadsheet_from_zip(content, file_name)
        if found is None:
            raise NoSpreadsheetInArchiveError(file_name)
        spreadsheet, member_name = found
        if not spreadsheet:
            raise EmptyFileError(f"Register {member_name} in {file_name} is empty")
        return spreadsheet, member_name
    raise UnsupportedFileTypeError(extension)


def read_rows(content: bytes, file_name: str) -> Tuple[List[str], List[Dict[str, Any]]]:
    """
    Read the first sheet of a spreadsheet into rows keyed by header.

    Cells are read as text; blank cells become None. Row dicts carry the
    1-based sheet row in "__row__".

    Raises:
        EmptyFileError: the sheet has no data rows
        InvalidRegisterError: the bytes are not a readable spreadsheet
    """
    engine = "xlrd" if file_extension(file_name) == ".xls" else "openpyxl"
    try:
        df = pd.read_excel(io.BytesIO(content), sheet_name=0, dtype=str, header=0, engine=engine)
    except (ValueError, zipfile.BadZipFile, xlrd.XLRDError, InvalidFileException) as e:
        logger.error(f"Failed to read register {file_name}: {e}")
        raise InvalidRegisterError(f"Register {file_name} could not be read: {e}") from e

    if df.empty:
        raise EmptyFileError("Excel file is empty")

    headers = [str(column).strip() for column in df.columns]
    df.columns = headers
    df = df.astype(object).where(pd.notna(df), None)

    rows: List[Dict[str, Any]] = []
    for index, record in enumerate(df.to_dict(orient="records")):
        record["__row__"] = index + 2  # header occupies sheet row 1
        rows.append(record)

    logger.info(f"Read {len(rows)} rows from {file_name}")
    return headers, rows
