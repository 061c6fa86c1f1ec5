# WORKFLOW: Stop-word and key-word vocabulary management with the morphology gate.
# Used by: Vocabulary API endpoints, bootstrap script
# Functions:
# 1. validate_vocabulary_entry() - Check a word can back its match type
# 2. normalize_feacn_code() - Key-word FEACN codes -> 10 digits
# 3. VocabularyService - Create / update / delete stop-words and key-words
#
# Entry flow: word + match type -> morphology gate (morphology types only) -> duplicate check -> persist
# A rejected entry is never written.

from typing import Iterable, List, Optional, Type
import logging

from sqlalchemy.orm import Session, selectinload

from core.exceptions import (
    DuplicateWordError,
    InsufficientMorphologySupportError,
    InvalidFeacnCodeError,
    VocabularyEntryNotFoundError,
)
from db.models import KeyWord, KeyWordFeacnCode, StopWord
from services.morphology import MorphologyGate, MorphologySupportLevel, get_morphology_gate
from services.word_matcher import MatchType

logger = logging.getLogger(__name__)


def validate_vocabulary_entry(word: str, match_type: MatchType,
                              gate: Optional[MorphologyGate] = None) -> Optional[MorphologySupportLevel]:
    """
    Check that a word can be matched with the requested match type.

    Args:
        word: Vocabulary word
        match_type: Requested match type
        gate: Morphology gate (the process-wide one when omitted)

    Returns:
        The reported support level, or None when the match type needs no morphology

    Raises:
        InsufficientMorphologySupportError: NO_SUPPORT for any morphology type,
            FORMS_SUPPORT for strong morphology
    """
    match_type = MatchType(match_type)
    required = match_type.required_support
    if required is None:
        return None

    gate = gate or get_morphology_gate()
    level = MorphologySupportLevel(gate.check_word(word))
    if level < required:
        logger.info(f"Rejected '{word}' for {match_type.name}: support level {level.name}")
        raise InsufficientMorphologySupportError(word, level)
    return level


def normalize_feacn_code(code: str) -> str:
    """Key-word codes are 10 digits; 9-digit codes lost their leading zero in spreadsheets."""
    code = (code or "").strip()
    if len(code) == 9 and code.isdigit():
        code = "0" + code
    if len(code) != 10 or not code.isdigit():
        raise InvalidFeacnCodeError(code)
    return code


class VocabularyService:
    """Stop-word and key-word persistence guarded by the morphology gate."""

    def __init__(self, db: Session, gate: Optional[MorphologyGate] = None):
        self.db = db
        self.gate = gate

    # Stop words

    def list_stop_words(self) -> List[StopWord]:
        return self.db.query(StopWord).order_by(StopWord.id).all()

    def get_stop_word(self, stop_word_id: int) -> StopWord:
        entry = self.db.get(StopWord, stop_word_id)
        if entry is None:
            raise VocabularyEntryNotFoundError("Stop word", stop_word_id)
        return entry

    def create_stop_word(self, word: str, match_type: MatchType) -> StopWord:
        word = word.strip()
        self._check(StopWord, word, match_type)
        entry = StopWord(word=word, match_type_id=int(match_type))
        self._save(entry)
        logger.info(f"Created stop word {entry.id} '{word}' ({MatchType(match_type).name})")
        return entry

    def update_stop_word(self, stop_word_id: int, word: str, match_type: MatchType) -> StopWord:
        entry = self.get_stop_word(stop_word_id)
        word = word.strip()
        self._check(StopWord, word, match_type, exclude_id=stop_word_id)
        entry.word = word
        entry.match_type_id = int(match_type)
        self._save(entry)
        return entry

    def delete_stop_word(self, stop_word_id: int) -> None:
        self._delete(self.get_stop_word(stop_word_id))

    # Key words

    def list_key_words(self) -> List[KeyWord]:
        return self.db.query(KeyWord).options(selectinload(KeyWord.feacn_codes)).order_by(KeyWord.id).all()

    def get_key_word(self, key_word_id: int) -> KeyWord:
        entry = self.db.get(KeyWord, key_word_id)
        if entry is None:
            raise VocabularyEntryNotFoundError("Key word", key_word_id)
        return entry

    def create_key_word(self, word: str, match_type: MatchType, feacn_codes: Iterable[str] = (),
                        insert_before: Optional[str] = None, insert_after: Optional[str] = None) -> KeyWord:
        word = word.strip()
        codes = self._normalize_codes(feacn_codes)
        self._check(KeyWord, word, match_type)
        entry = KeyWord(
            word=word,
            match_type_id=int(match_type),
            insert_before=insert_before,
            insert_after=insert_after,
            feacn_codes=[KeyWordFeacnCode(code=code) for code in codes],
        )
        self._save(entry)
        logger.info(f"Created key word {entry.id} '{word}' ({MatchType(match_type).name}, {len(codes)} codes)")
        return entry

    def update_key_word(self, key_word_id: int, word: str, match_type: MatchType,
                        feacn_codes: Iterable[str] = (), insert_before: Optional[str] = None,
                        insert_after: Optional[str] = None) -> KeyWord:
        entry = self.get_key_word(key_word_id)
        word = word.strip()
        codes = self._normalize_codes(feacn_codes)
        self._check(KeyWord, word, match_type, exclude_id=key_word_id)
        entry.word = word
        entry.match_type_id = int(match_type)
        entry.insert_before = insert_before
        entry.insert_after = insert_after
        entry.feacn_codes = [KeyWordFeacnCode(code=code) for code in codes]
        self._save(entry)
        return entry

    def delete_key_word(self, key_word_id: int) -> None:
        self._delete(self.get_key_word(key_word_id))

    # Helpers

    def _normalize_codes(self, feacn_codes: Iterable[str]) -> List[str]:
        codes: List[str] = []
        for code in feacn_codes or ():
            normalized = normalize_feacn_code(code)
            if normalized not in codes:
                codes.append(normalized)
        return codes

    def _check(self, model: Type, word: str, match_type: MatchType, exclude_id: Optional[int] = None) -> None:
        validate_vocabulary_entry(word, match_type, self.gate)
        # sqlite lower() only folds ASCII, so compare in Python
        query = self.db.query(model.id, model.word)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        folded = word.casefold()
        if any(existing.casefold() == folded for _, existing in query):
            raise DuplicateWordError(word)

    def _save(self, entry) -> None:
        try:
            self.db.add(entry)
            self.db.commit()
            self.db.refresh(entry)
        except Exception as e:
            logger.error(f"Failed to save vocabulary entry '{entry.word}': {e}")
            self.db.rollback()
            raise

    def _delete(self, entry) -> None:
        try:
            self.db.delete(entry)
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to delete vocabulary entry {entry.id}: {e}")
            self.db.rollback()
            raise


def create_vocabulary_service(db: Session, gate: Optional[MorphologyGate] = None) -> VocabularyService:
    """Create vocabulary service instance."""
    return VocabularyService(db, gate)
