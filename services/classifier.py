# WORKFLOW: Parcel classification against vocabularies, FEACN rules and the FEACN catalog.
# Used by: Import pipeline (per-parcel loop), parcel endpoints (standalone re-classification)
# Functions:
# 1. build_classification_context() - Load vocabularies and enabled prefix rules once per job
# 2. ParcelClassifier.classify_parcel() - Classify one parcel and persist the result
# 3. _replace_links() - Swap the parcel's match links for the new result
#
# Classification flow: Parcel -> stop/key-word scan (product name + description)
#                      -> prefix rules + catalog check -> TariffOutcome
#                      -> decision table -> links + check status (one transaction)
# Human-asserted statuses (partner marking, approval) are never overwritten.

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from db.models import KeyWord, Parcel, ParcelFeacnPrefix, ParcelKeyWord, ParcelStopWord, StopWord
from services.decision_table import CheckStatus, TariffOutcome, WordOutcome, is_human_asserted, resolve_status
from services.feacn_matcher import (
    FeacnPrefixContext,
    PrefixMatch,
    check_tariff_code,
    find_matching_prefixes,
    tariff_outcome,
)
from services.morphology import MorphologyGate
from services.word_matcher import WordsLookupContext

logger = logging.getLogger(__name__)


@dataclass
class ClassificationContext:
    stop_words: WordsLookupContext
    key_words: WordsLookupContext
    prefixes: Optional[FeacnPrefixContext] = None


@dataclass
class ClassificationResult:
    parcel_id: int
    check_status: CheckStatus
    stop_word_ids: List[int] = field(default_factory=list)
    key_word_ids: List[int] = field(default_factory=list)
    order_backed_prefix_ids: List[int] = field(default_factory=list)
    standalone_prefix_ids: List[int] = field(default_factory=list)
    order_ids: List[int] = field(default_factory=list)
    tariff_outcome: Optional[TariffOutcome] = None
    word_outcome: Optional[WordOutcome] = None
    skipped: bool = False


def build_classification_context(db: Session, gate: Optional[MorphologyGate] = None,
                                 with_prefixes: bool = True) -> ClassificationContext:
    """
    Load everything a classification pass needs, once.

    Args:
        db: Database session
        gate: Morphology gate used to expand morphology entries
        with_prefixes: Load prefix rules into memory; without them each parcel
            uses a set-based SQL lookup

    Returns:
        ClassificationContext shared by every parcel of a job
    """
    try:
        stop_words = WordsLookupContext(db.query(StopWord).all(), gate)
        key_words = WordsLookupContext(db.query(KeyWord).all(), gate)
        prefixes = FeacnPrefixContext.load(db) if with_prefixes else None
        logger.info(f"Classification context: {len(stop_words)} stop words, {len(key_words)} key words")
        return ClassificationContext(stop_words=stop_words, key_words=key_words, prefixes=prefixes)
    except Exception as e:
        logger.error(f"Failed to build classification context: {e}")
        raise


class ParcelClassifier:
    """Classifies parcels and stores their match links and check status."""

    def __init__(self, db: Session, gate: Optional[MorphologyGate] = None, today: Optional[date] = None):
        self.db = db
        self.gate = gate
        self.today = today

    def classify_parcel(self, parcel: Parcel, context: Optional[ClassificationContext] = None,
                        persist: bool = True) -> ClassificationResult:
        """
        Classify one parcel.

        Args:
            parcel: Parcel to classify
            context: Job-wide context; built on the fly for standalone calls
            persist: Write links and status (commits the session)

        Returns:
            ClassificationResult; `skipped` is set for human-asserted parcels,
            which are returned unchanged
        """
        if is_human_asserted(parcel.check_status_id):
            return ClassificationResult(
                parcel_id=parcel.id,
                check_status=CheckStatus(parcel.check_status_id),
                skipped=True,
            )

        if context is None:
            context = build_classification_context(self.db, self.gate, with_prefixes=False)

        texts = (parcel.product_name, parcel.description)
        stop_word_ids = context.stop_words.matching_ids(*texts)
        key_word_ids = context.key_words.matching_ids(*texts)

        if context.prefixes is not None:
            prefix_match = context.prefixes.classify(parcel.tn_ved)
        else:
            prefix_match = find_matching_prefixes(self.db, parcel.tn_ved)
        code_state = check_tariff_code(self.db, parcel.tn_ved, self.today)

        tariff = tariff_outcome(code_state, prefix_match)
        word = WordOutcome.STOP_WORD_MATCH if stop_word_ids else WordOutcome.NO_MATCH
        status = resolve_status(parcel.check_status_id, tariff, word)

        result = ClassificationResult(
            parcel_id=parcel.id,
            check_status=status,
            stop_word_ids=stop_word_ids,
            key_word_ids=key_word_ids,
            order_backed_prefix_ids=prefix_match.order_backed_prefix_ids,
            standalone_prefix_ids=prefix_match.standalone_prefix_ids,
            order_ids=prefix_match.order_ids,
            tariff_outcome=tariff,
            word_outcome=word,
        )
        logger.debug(f"Parcel {parcel.id}: tariff={tariff.value}, words={word.value} -> {status.name}")

        if persist:
            self._store(parcel, result, prefix_match)
        return result

    def _store(self, parcel: Parcel, result: ClassificationResult, prefix_match: PrefixMatch) -> None:
        try:
            self._replace_links(parcel, result, prefix_match)
            parcel.check_status_id = int(result.check_status)
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to store classification of parcel {parcel.id}: {e}")
            self.db.rollback()
            raise

    def _replace_links(self, parcel: Parcel, result: ClassificationResult, prefix_match: PrefixMatch) -> None:
        for model in (ParcelStopWord, ParcelKeyWord, ParcelFeacnPrefix):
            self.db.query(model).filter(model.parcel_id == parcel.id).delete(synchronize_session="fetch")
        self.db.expire(parcel, ["stop_word_links", "key_word_links", "feacn_prefix_links"])

        self.db.add_all(ParcelStopWord(parcel_id=parcel.id, stop_word_id=i) for i in result.stop_word_ids)
        self.db.add_all(ParcelKeyWord(parcel_id=parcel.id, key_word_id=i) for i in result.key_word_ids)
        self.db.add_all(
            ParcelFeacnPrefix(
                parcel_id=parcel.id,
                feacn_prefix_id=prefix_id,
                feacn_order_id=prefix_match.order_by_prefix.get(prefix_id),
            )
            for prefix_id in prefix_match.prefix_ids()
        )


def create_parcel_classifier(db: Session, gate: Optional[MorphologyGate] = None) -> ParcelClassifier:
    """Create parcel classifier instance."""
    return ParcelClassifier(db, gate)
