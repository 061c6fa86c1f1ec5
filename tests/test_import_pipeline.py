# WORKFLOW: Import pipeline and parcel classification tests.
# Test scenarios:
# 1. Stop-word upload scenario (unknown and known tariff code)
# 2. Malformed tariff code gets its own status
# 3. Partner marking and approval survive re-validation; re-validation is idempotent
# 4. Cooperative cancellation before start and between parcels
# 5. Per-parcel failures, failure threshold and job-fatal storage errors
# 6. Background execution on the real worker pool

from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

import services.import_pipeline as import_pipeline
from conftest import ManualExecutor, make_register
from core.exceptions import RegisterNotFoundError
from db.models import FeacnCode, FeacnPrefix, Parcel, Register, StopWord
from services.classifier import ParcelClassifier
from services.decision_table import CheckStatus, TariffOutcome
from services.import_pipeline import ImportPipeline
from services.job_registry import JobRegistry, JobState
from services.word_matcher import MatchType

TODAY = date(2024, 6, 1)


def row(description, code="1234567890", number="WB-1"):
    return {
        "Номер заказа": number,
        "Наименование товара": "Товар",
        "Описание": description,
        "ТН ВЭД": code,
        "Страна происхождения": "CN",
        "Количество": "1",
    }


@pytest.fixture
def executor():
    return ManualExecutor()


@pytest.fixture
def pipeline(session_factory, mappings, gate, executor):
    pipeline = ImportPipeline(
        registry=JobRegistry(),
        session_factory=session_factory,
        mappings=mappings,
        gate=gate,
        executor=executor,
        today=TODAY,
    )
    yield pipeline
    pipeline.shutdown()


@pytest.fixture
def stop_word(db):
    entry = StopWord(word="контрафакт", match_type_id=int(MatchType.EXACT_WORD))
    db.add(entry)
    db.commit()
    return entry


def run_import(pipeline, executor, rows, **kwargs):
    handle = pipeline.start_import(make_register(rows, **kwargs), "register.xlsx", "wbr")
    executor.run_all()
    return pipeline.get_progress(handle)


def parcels_of(db, register_id):
    db.expire_all()
    return db.query(Parcel).filter(Parcel.register_id == register_id).order_by(Parcel.id).all()


def test_stop_word_with_unknown_code(db, pipeline, executor, stop_word):
    progress = run_import(pipeline, executor, [row("контрафакт")])

    assert progress.state is JobState.FINISHED
    assert progress.processed == progress.total == 1
    parcel = parcels_of(db, progress.register_id)[0]
    assert parcel.check_status_id == CheckStatus.BLOCKED_BY_NONEXISTING_FEACN_AND_STOP_WORD
    assert [link.stop_word_id for link in parcel.stop_word_links] == [stop_word.id]
    assert parcel.feacn_prefix_links == []


def test_stop_word_with_known_code(db, pipeline, executor, stop_word):
    db.add(FeacnCode(code="1234567890", name="Test goods"))
    db.commit()

    progress = run_import(pipeline, executor, [row("Сумка (Контрафакт)")])

    parcel = parcels_of(db, progress.register_id)[0]
    assert parcel.check_status_id == CheckStatus.BLOCKED_BY_STOP_WORD
    assert [link.stop_word_id for link in parcel.stop_word_links] == [stop_word.id]
    assert parcel.feacn_prefix_links == []


def test_malformed_code_has_distinct_status(db, pipeline, executor):
    db.add(FeacnCode(code="1234567890", name="Test goods"))
    db.commit()

    progress = run_import(pipeline, executor, [
        row("чистый товар", code="123", number="WB-1"),
        row("чистый товар", code="1234567890", number="WB-2"),
        row("чистый товар", code="9999999999", number="WB-3"),
    ])

    statuses = [p.check_status_id for p in parcels_of(db, progress.register_id)]
    assert statuses == [
        CheckStatus.BLOCKED_BY_INVALID_FEACN_FORMAT,
        CheckStatus.NO_ISSUES,
        CheckStatus.BLOCKED_BY_NONEXISTING_FEACN,
    ]


def test_prefix_rule_links_are_recorded(db, pipeline, executor):
    prefix = FeacnPrefix(code="1234")
    db.add(prefix)
    db.commit()

    progress = run_import(pipeline, executor, [row("чистый товар")])

    parcel = parcels_of(db, progress.register_id)[0]
    assert parcel.check_status_id == CheckStatus.BLOCKED_BY_FEACN_CODE
    assert [(l.feacn_prefix_id, l.feacn_order_id) for l in parcel.feacn_prefix_links] == [(prefix.id, None)]


def test_partner_marked_rows_are_not_classified(db, pipeline, executor, stop_word):
    progress = run_import(pipeline, executor, [row("контрафакт"), row("контрафакт")], colored_rows=[1])

    assert progress.total == 1
    statuses = [p.check_status_id for p in parcels_of(db, progress.register_id)]
    assert statuses == [CheckStatus.BLOCKED_BY_NONEXISTING_FEACN_AND_STOP_WORD, CheckStatus.MARKED_BY_PARTNER]


def test_revalidation_is_idempotent_and_keeps_approval(db, pipeline, executor, stop_word):
    progress = run_import(pipeline, executor, [row("контрафакт", number="WB-1"), row("товар", number="WB-2")])
    first, second = parcels_of(db, progress.register_id)
    second.check_status_id = int(CheckStatus.APPROVED)
    db.commit()
    before = [(p.check_status_id, sorted(l.stop_word_id for l in p.stop_word_links))
              for p in parcels_of(db, progress.register_id)]

    handle = pipeline.start_validation(progress.register_id)
    executor.run_all()

    assert pipeline.get_progress(handle).state is JobState.FINISHED
    after = [(p.check_status_id, sorted(l.stop_word_id for l in p.stop_word_links))
             for p in parcels_of(db, progress.register_id)]
    assert after == before
    assert after[1][0] == CheckStatus.APPROVED


def test_validation_of_unknown_register(pipeline):
    with pytest.raises(RegisterNotFoundError):
        pipeline.start_validation(12345)


def test_running_validation_is_reused(pipeline, executor):
    progress = run_import(pipeline, executor, [row("товар")])
    first = pipeline.start_validation(progress.register_id)
    second = pipeline.start_validation(progress.register_id)
    assert first == second
    assert len(executor.pending) == 1


def test_cancel_before_start(db, pipeline, executor):
    handle = pipeline.start_import(make_register([row("товар")]), "register.xlsx", "wbr")
    assert pipeline.cancel(handle) is True
    executor.run_all()

    progress = pipeline.get_progress(handle)
    assert progress.state is JobState.CANCELLED
    assert progress.processed == 0
    assert pipeline.cancel(handle) is False
    assert parcels_of(db, progress.register_id)[0].check_status_id == CheckStatus.NOT_CHECKED


def test_cancel_between_parcels(db, pipeline, executor, monkeypatch):
    handle = pipeline.start_import(
        make_register([row("товар", number=f"WB-{i}") for i in range(3)]), "register.xlsx", "wbr"
    )

    class CancellingClassifier(ParcelClassifier):
        def classify_parcel(self, parcel, context=None, persist=True):
            result = super().classify_parcel(parcel, context, persist)
            pipeline.cancel(handle)
            return result

    monkeypatch.setattr(import_pipeline, "ParcelClassifier", CancellingClassifier)
    executor.run_all()

    progress = pipeline.get_progress(handle)
    assert progress.state is JobState.CANCELLED
    assert progress.total == 3
    assert progress.processed == 1
    statuses = [p.check_status_id for p in parcels_of(db, progress.register_id)]
    assert statuses.count(CheckStatus.NOT_CHECKED) == 2


class FailingClassifier(ParcelClassifier):
    def classify_parcel(self, parcel, context=None, persist=True):
        raise ValueError(f"cannot classify parcel {parcel.id}")


def test_parcel_failures_are_counted(pipeline, executor, monkeypatch):
    monkeypatch.setattr(import_pipeline, "ParcelClassifier", FailingClassifier)
    progress = run_import(pipeline, executor, [row("товар", number=f"WB-{i}") for i in range(3)])

    assert progress.state is JobState.FINISHED
    assert progress.processed == 3
    assert progress.failed_parcels == 3


def test_failure_threshold_fails_job(session_factory, mappings, gate, executor, monkeypatch):
    monkeypatch.setattr(import_pipeline, "ParcelClassifier", FailingClassifier)
    pipeline = ImportPipeline(JobRegistry(), session_factory, mappings, gate,
                              executor=executor, max_parcel_failures=1, today=TODAY)

    progress = run_import(pipeline, executor, [row("товар", number=f"WB-{i}") for i in range(4)])

    assert progress.state is JobState.FAILED
    assert progress.failed_parcels == 2
    assert progress.processed == 2
    assert "2 parcels failed" in progress.error


def test_storage_error_is_fatal(pipeline, executor, monkeypatch):
    class StorageDownClassifier(ParcelClassifier):
        def classify_parcel(self, parcel, context=None, persist=True):
            raise OperationalError("UPDATE parcels", {}, Exception("database is locked"))

    monkeypatch.setattr(import_pipeline, "ParcelClassifier", StorageDownClassifier)
    progress = run_import(pipeline, executor, [row("товар", number=f"WB-{i}") for i in range(3)])

    assert progress.state is JobState.FAILED
    assert progress.processed == 0
    assert "database is locked" in progress.error


def test_standalone_classification_uses_sql_lookup(db, gate, stop_word):
    prefix = FeacnPrefix(code="1234")
    parcel = Parcel(document_type="wbr", check_status_id=int(CheckStatus.NOT_CHECKED),
                    description="контрафакт", tn_ved="1234567890", details={})
    db.add_all([prefix, Register(file_name="manual.xlsx", document_type="wbr", parcels=[parcel])])
    db.commit()

    result = ParcelClassifier(db, gate, TODAY).classify_parcel(parcel)
    assert result.tariff_outcome is TariffOutcome.PROHIBITED_BY_PREFIX
    assert result.check_status is CheckStatus.BLOCKED_BY_FEACN_CODE_AND_STOP_WORD
    assert result.standalone_prefix_ids == [prefix.id]
    assert result.stop_word_ids == [stop_word.id]


def test_jobs_run_on_worker_pool(db, session_factory, mappings, gate, stop_word):
    pipeline = ImportPipeline(JobRegistry(), session_factory, mappings, gate, today=TODAY)
    try:
        handle = pipeline.start_import(make_register([row("контрафакт")]), "register.xlsx", "wbr")
        progress = pipeline.wait(handle, timeout=30)
    finally:
        pipeline.shutdown()

    assert progress.state is JobState.FINISHED
    assert parcels_of(db, progress.register_id)[0].check_status_id == \
        CheckStatus.BLOCKED_BY_NONEXISTING_FEACN_AND_STOP_WORD
