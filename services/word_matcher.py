# WORKFLOW: Word/phrase matcher for stop-word and key-word vocabularies.
# Used by: Parcel classifier, vocabulary gate (required support per match type)
# Functions:
# 1. tokenize() - Case-folded letter/digit tokens of a text
# 2. matches() - Pure predicate: does a vocabulary entry match a text
# 3. WordsLookupContext - Vocabulary precompiled once per classification job
#
# Matching flow: Text -> tokens -> entry matcher (substring / token / token run / morphology set) -> bool
# Morphology match types need a gate; a missing or failing gate means no match.

import logging
import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from services.morphology import MorphologyGate, MorphologySupportLevel

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"[^\W_]+")


class MatchType(IntEnum):
    EXACT_SYMBOLS = 1
    EXACT_WORD = 11
    PHRASE = 21
    WEAK_MORPHOLOGY = 41
    STRONG_MORPHOLOGY = 51

    @property
    def required_support(self) -> Optional[MorphologySupportLevel]:
        """Minimum morphology support the word needs for this match type."""
        if self is MatchType.WEAK_MORPHOLOGY:
            return MorphologySupportLevel.FORMS_SUPPORT
        if self is MatchType.STRONG_MORPHOLOGY:
            return MorphologySupportLevel.FULL_SUPPORT
        return None

    @property
    def is_morphology(self) -> bool:
        return self.required_support is not None


def tokenize(text: Optional[str]) -> List[str]:
    """Split text into case-folded tokens; separators are anything but letters and digits."""
    if not text:
        return []
    return _TOKEN.findall(text.casefold())


def contains_run(tokens: Sequence[str], run: Sequence[str]) -> bool:
    """True if `run` appears in `tokens` contiguously and in order."""
    size = len(run)
    if size == 0 or size > len(tokens):
        return False
    first = run[0]
    for start in range(len(tokens) - size + 1):
        if tokens[start] == first and list(tokens[start:start + size]) == list(run):
            return True
    return False


def _morphology_set(word: str, match_type: MatchType, gate: Optional[MorphologyGate]) -> FrozenSet[str]:
    if gate is None:
        logger.warning(f"No morphology gate available for '{word}' ({match_type.name}), treating as no match")
        return frozenset()
    try:
        if match_type is MatchType.WEAK_MORPHOLOGY:
            words = gate.inflected_forms(word)
        else:
            words = gate.stem_family(word)
    except Exception as e:
        logger.warning(f"Morphology gate failed for '{word}' ({match_type.name}): {e}")
        return frozenset()
    return frozenset(w.casefold() for w in words or ())


def matches(target_text: Optional[str], entry_word: str, match_type: MatchType,
            gate: Optional[MorphologyGate] = None) -> bool:
    """
    Decide whether a vocabulary entry matches a text.

    Args:
        target_text: Declared text to scan (product name, description)
        entry_word: Vocabulary word or phrase
        match_type: How the word is matched
        gate: Morphology gate, only consulted for morphology match types

    Returns:
        True if the entry matches the text
    """
    if not target_text or not entry_word:
        return False
    match_type = MatchType(match_type)

    if match_type is MatchType.EXACT_SYMBOLS:
        return entry_word.casefold() in target_text.casefold()

    tokens = tokenize(target_text)
    if match_type in (MatchType.EXACT_WORD, MatchType.PHRASE):
        return contains_run(tokens, tokenize(entry_word))

    candidates = _morphology_set(entry_word, match_type, gate)
    return any(token in candidates for token in tokens)


@dataclass(frozen=True)
class _CompiledEntry:
    entry_id: int
    match_type: MatchType
    needle: str
    run: Tuple[str, ...]
    candidates: FrozenSet[str]

    def matches(self, text: str, tokens: List[str], token_set: FrozenSet[str]) -> bool:
        if self.match_type is MatchType.EXACT_SYMBOLS:
            return bool(self.needle) and self.needle in text
        if self.match_type in (MatchType.EXACT_WORD, MatchType.PHRASE):
            if len(self.run) == 1:
                return self.run[0] in token_set
            return contains_run(tokens, self.run)
        return not self.candidates.isdisjoint(token_set)


class WordsLookupContext:
    """
    Vocabulary compiled once per job.

    Morphology expansions are fetched from the gate when the context is built,
    so the per-parcel scan never calls the dictionary.
    """

    def __init__(self, entries: Iterable[Any], gate: Optional[MorphologyGate] = None):
        self._entries: List[_CompiledEntry] = []
        for entry in entries:
            entry_id, word, match_type = _entry_fields(entry)
            if not word:
                continue
            match_type = MatchType(match_type)
            candidates: FrozenSet[str] = frozenset()
            if match_type.is_morphology:
                candidates = _morphology_set(word, match_type, gate)
            self._entries.append(_CompiledEntry(
                entry_id=entry_id,
                match_type=match_type,
                needle=word.casefold(),
                run=tuple(tokenize(word)),
                candidates=candidates,
            ))

    def __len__(self) -> int:
        return len(self._entries)

    def matching_ids(self, *texts: Optional[str]) -> List[int]:
        """Ids of entries matching any of the texts (union), sorted."""
        found = set()
        for text in texts:
            if not text:
                continue
            folded = text.casefold()
            tokens = tokenize(text)
            token_set = frozenset(tokens)
            for entry in self._entries:
                if entry.entry_id not in found and entry.matches(folded, tokens, token_set):
                    found.add(entry.entry_id)
        return sorted(found)


def _entry_fields(entry: Any) -> Tuple[int, str, int]:
    if isinstance(entry, tuple):
        return entry
    return entry.id, entry.word, entry.match_type_id
