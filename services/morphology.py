# WORKFLOW: Russian morphology gate for vocabulary words.
# Used by: Vocabulary service (creation-time gate), word matcher (morphology match types)
# Functions:
# 1. check_word() - Report how far the dictionary can expand a word
# 2. inflected_forms() - All inflected forms of the word's lexeme
# 3. stem_family() - Inflected forms of every dictionary word sharing the word's stem
#
# Morphology flow: Word -> pymorphy3 parse -> lexeme forms
#                  Word -> normal form -> snowball stem -> dictionary words with that stem
# Support levels: unknown word -> NO_SUPPORT, lexeme only -> FORMS_SUPPORT,
#                 lexeme plus related lexemes -> FULL_SUPPORT

import logging
import re
import threading
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, FrozenSet, Optional, Protocol, Set

import pymorphy3
import snowballstemmer

logger = logging.getLogger(__name__)

_SINGLE_WORD = re.compile(r"[^\W\d_]+(?:-[^\W\d_]+)*")

# Stems shorter than this match too many unrelated dictionary words
MIN_STEM_LENGTH = 3


class MorphologySupportLevel(IntEnum):
    NO_SUPPORT = 0
    FORMS_SUPPORT = 1
    FULL_SUPPORT = 2


class MorphologyGate(Protocol):
    """Dictionary capability consumed by the matcher and the vocabulary gate."""

    def check_word(self, word: str) -> MorphologySupportLevel:
        ...

    def inflected_forms(self, word: str) -> Set[str]:
        ...

    def stem_family(self, word: str) -> Set[str]:
        ...


@dataclass(frozen=True)
class WordMorphology:
    level: MorphologySupportLevel
    forms: FrozenSet[str] = field(default_factory=frozenset)
    family: FrozenSet[str] = field(default_factory=frozenset)


class RussianMorphologyGate:
    """pymorphy3 dictionary plus snowball stemmer, memoised per word."""

    def __init__(self, analyzer: Optional[pymorphy3.MorphAnalyzer] = None):
        self.analyzer = analyzer
        self.stemmer = snowballstemmer.stemmer("russian")
        self._cache: Dict[str, WordMorphology] = {}
        self._lock = threading.Lock()
        if self.analyzer is None:
            self._load_analyzer()

    def _load_analyzer(self):
        """Load the pymorphy3 dictionaries."""
        try:
            logger.info("Loading pymorphy3 Russian dictionaries")
            self.analyzer = pymorphy3.MorphAnalyzer(lang="ru")
            logger.info("Morphology dictionaries loaded successfully")
        except Exception as e:
            logger.error(f"Failed to load morphology dictionaries: {e}")
            raise

    def check_word(self, word: str) -> MorphologySupportLevel:
        return self._analyze(word).level

    def inflected_forms(self, word: str) -> Set[str]:
        return set(self._analyze(word).forms)

    def stem_family(self, word: str) -> Set[str]:
        return set(self._analyze(word).family)

    def _analyze(self, word: str) -> WordMorphology:
        key = (word or "").strip().casefold()
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        result = self._build(key)
        with self._lock:
            self._cache[key] = result
        return result

    def _build(self, word: str) -> WordMorphology:
        if not _SINGLE_WORD.fullmatch(word) or not self.analyzer.word_is_known(word):
            return WordMorphology(MorphologySupportLevel.NO_SUPPORT)

        parses = [p for p in self.analyzer.parse(word) if p.is_known]
        forms: Set[str] = {word}
        normal_forms: Set[str] = set()
        for parse in parses:
            normal_forms.add(parse.normal_form)
            forms.update(form.word for form in parse.lexeme)

        family: Set[str] = set(forms)
        lemmas: Set[str] = set(normal_forms)
        for normal_form in normal_forms:
            stem = self.stemmer.stemWord(normal_form)
            if len(stem) < MIN_STEM_LENGTH:
                continue
            for parse in self.analyzer.iter_known_word_parses(prefix=stem):
                if self.stemmer.stemWord(parse.normal_form) == stem:
                    family.add(parse.word)
                    lemmas.add(parse.normal_form)

        level = MorphologySupportLevel.FULL_SUPPORT if len(lemmas) > 1 else MorphologySupportLevel.FORMS_SUPPORT
        logger.debug(f"Morphology for '{word}': {level.name}, {len(forms)} forms, {len(family)} family words")
        return WordMorphology(level, frozenset(forms), frozenset(family))


# Global morphology gate instance
_morphology_gate = None


def get_morphology_gate() -> RussianMorphologyGate:
    """Get the global morphology gate instance (lazy-loaded)."""
    global _morphology_gate
    if _morphology_gate is None:
        _morphology_gate = RussianMorphologyGate()
    return _morphology_gate
