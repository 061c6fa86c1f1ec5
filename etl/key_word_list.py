# WORKFLOW: Key-word list import from spreadsheets.
# Used by: Key-word upload endpoint, bootstrap script
# Functions:
# 1. parse_key_word_list() - Sheet rows -> one entry per word with its merged FEACN codes
# 2. choose_match_type() - Phrase for multi-word entries, otherwise decided by the morphology gate
# 3. KeyWordListImporter.import_list() - Merge parsed entries into the key-word vocabulary
#
# Sheet layout: "код" and "наименование" columns (required), "перед описанием" and
# "в конце описания" (optional). Names hold comma-separated words; 9-digit codes
# lost their leading zero and are padded back.
#
# Import flow: upload -> spreadsheet rows -> words + codes -> match type -> gate check
#              -> new key words added, existing ones get the match type and any new codes

"""
Key-word list import from spreadsheets.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from core.exceptions import InvalidKeyWordListError, InvalidRegisterError
from db.models import KeyWord, KeyWordFeacnCode
from etl.converters import to_text
from etl.spreadsheet import read_rows, resolve_spreadsheet
from services.morphology import MorphologyGate, MorphologySupportLevel, get_morphology_gate
from services.vocabulary import normalize_feacn_code, validate_vocabulary_entry
from services.word_matcher import MatchType

logger = logging.getLogger(__name__)

CODE_HEADER = "код"
NAME_HEADER = "наименование"
INSERT_BEFORE_HEADER = "перед описанием"
INSERT_AFTER_HEADER = "в конце описания"

_LIST_CODE = re.compile(r"^\d{9,10}$")


@dataclass
class KeyWordListEntry:
    word: str
    feacn_codes: List[str] = field(default_factory=list)
    insert_before: Optional[str] = None
    insert_after: Optional[str] = None


@dataclass
class KeyWordListSummary:
    created: int = 0
    updated: int = 0
    words: List[str] = field(default_factory=list)


def _find_columns(headers: List[str]) -> Dict[str, str]:
    columns = {}
    for header in headers:
        name = header.strip().lower()
        if name in (CODE_HEADER, NAME_HEADER, INSERT_BEFORE_HEADER, INSERT_AFTER_HEADER):
            columns.setdefault(name, header)
    return columns


def parse_key_word_list(headers: List[str], rows: List[Dict[str, Any]]) -> List[KeyWordListEntry]:
    """
    Collect key words and their FEACN codes from sheet rows.

    Args:
        headers: Sheet headers
        rows: Row dicts from read_rows()

    Returns:
        One entry per distinct (lower-cased) word in first-seen order

    Raises:
        InvalidKeyWordListError: required columns missing or a code is not 9-10 digits
    """
    columns = _find_columns(headers)
    if CODE_HEADER not in columns or NAME_HEADER not in columns:
        raise InvalidKeyWordListError(f"Columns '{CODE_HEADER}' and '{NAME_HEADER}' were not found")

    entries: Dict[str, KeyWordListEntry] = {}
    for row in rows:
        code = to_text(row.get(columns[CODE_HEADER]))
        name = to_text(row.get(columns[NAME_HEADER]))
        if code is None or name is None:
            continue
        if not _LIST_CODE.match(code):
            raise InvalidKeyWordListError(f"Code '{code}' in row {row.get('__row__')} must have 10 digits")
        code = normalize_feacn_code(code)

        insert_before = to_text(row.get(columns[INSERT_BEFORE_HEADER])) if INSERT_BEFORE_HEADER in columns else None
        insert_after = to_text(row.get(columns[INSERT_AFTER_HEADER])) if INSERT_AFTER_HEADER in columns else None

        for part in name.split(","):
            word = part.strip().lower()
            if not word:
                continue
            entry = entries.setdefault(word, KeyWordListEntry(word=word))
            if code not in entry.feacn_codes:
                entry.feacn_codes.append(code)
            if insert_before or insert_after:
                entry.insert_before = insert_before
                entry.insert_after = insert_after

    return list(entries.values())


def choose_match_type(word: str, gate: MorphologyGate) -> MatchType:
    """Phrases match as phrases; single words use weak morphology when the dictionary knows them."""
    if any(ch.isspace() for ch in word):
        return MatchType.PHRASE
    if gate.check_word(word) == MorphologySupportLevel.NO_SUPPORT:
        return MatchType.EXACT_SYMBOLS
    return MatchType.WEAK_MORPHOLOGY


class KeyWordListImporter:
    """Merges spreadsheet key-word lists into the key-word vocabulary."""

    def __init__(self, db: Session, gate: Optional[MorphologyGate] = None):
        self.db = db
        self.gate = gate

    def import_list(self, content: bytes, file_name: str) -> KeyWordListSummary:
        """
        Import a key-word list upload.

        Args:
            content: Uploaded bytes (.xlsx, .xls or .zip holding one of them)
            file_name: Uploaded file name

        Returns:
            KeyWordListSummary with created and updated counts

        Raises:
            EmptyFileError, UnsupportedFileTypeError, NoSpreadsheetInArchiveError,
            InvalidKeyWordListError, InsufficientMorphologySupportError
        """
        spreadsheet, sheet_name = resolve_spreadsheet(content, file_name)
        try:
            headers, rows = read_rows(spreadsheet, sheet_name)
        except InvalidRegisterError as e:
            raise InvalidKeyWordListError(e.message) from e

        entries = parse_key_word_list(headers, rows)
        gate = self.gate or get_morphology_gate()
        match_types = {}
        for entry in entries:
            match_type = choose_match_type(entry.word, gate)
            validate_vocabulary_entry(entry.word, match_type, gate)
            match_types[entry.word] = match_type

        summary = KeyWordListSummary()
        try:
            existing = {
                k.word.casefold(): k
                for k in self.db.query(KeyWord).options(selectinload(KeyWord.feacn_codes))
            }
            for entry in entries:
                match_type = match_types[entry.word]
                key_word = existing.get(entry.word.casefold())
                if key_word is None:
                    key_word = KeyWord(
                        word=entry.word,
                        match_type_id=int(match_type),
                        insert_before=entry.insert_before,
                        insert_after=entry.insert_after,
                        feacn_codes=[KeyWordFeacnCode(code=code) for code in entry.feacn_codes],
                    )
                    self.db.add(key_word)
                    existing[entry.word.casefold()] = key_word
                    summary.created += 1
                else:
                    key_word.match_type_id = int(match_type)
                    known = {c.code for c in key_word.feacn_codes}
                    key_word.feacn_codes.extend(
                        KeyWordFeacnCode(code=code) for code in entry.feacn_codes if code not in known
                    )
                    if entry.insert_before or entry.insert_after:
                        key_word.insert_before = entry.insert_before
                        key_word.insert_after = entry.insert_after
                    summary.updated += 1
                summary.words.append(entry.word)
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to import key-word list {file_name}: {e}")
            self.db.rollback()
            raise

        logger.info(f"Key-word list {file_name}: {summary.created} created, {summary.updated} updated")
        return summary


def create_key_word_list_importer(db: Session, gate: Optional[MorphologyGate] = None) -> KeyWordListImporter:
    """Create key-word list importer instance."""
    return KeyWordListImporter(db, gate)
