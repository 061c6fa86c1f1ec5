# WORKFLOW: Register import and validation pipeline with background classification jobs.
# Used by: Register endpoints, bootstrap script
# Functions:
# 1. start_import() - Import an upload synchronously, classify its parcels in the background
# 2. start_validation() - Re-classify an existing register in the background
# 3. get_progress() / cancel() - Handle lookups through the injected JobRegistry
# 4. _run() - Per-parcel classification loop with cooperative cancellation
#
# Pipeline flow: upload -> RegisterImporter (input errors raised here) -> job handle
#                worker: context -> parcel ids -> [cancel check -> classify -> advance]* -> terminal state
# Per-parcel errors are rolled back and counted; storage errors fail the job.

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from datetime import date
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import RegisterNotFoundError
from db.models import Parcel, Register
from etl.register_import import create_register_importer
from etl.register_mapping import RegisterMappings
from services.classifier import ParcelClassifier, build_classification_context
from services.decision_table import HUMAN_ASSERTED
from services.job_registry import JobKind, JobProgress, JobRegistry, ValidationJob
from services.morphology import MorphologyGate

logger = logging.getLogger(__name__)


class ImportPipeline:
    """Starts, tracks and cancels classification jobs over registers."""

    def __init__(self, registry: JobRegistry, session_factory: Callable[[], Session],
                 mappings: RegisterMappings, gate: Optional[MorphologyGate] = None,
                 executor: Optional[ThreadPoolExecutor] = None,
                 max_parcel_failures: Optional[int] = None, today: Optional[date] = None):
        self.registry = registry
        self.session_factory = session_factory
        self.mappings = mappings
        self.gate = gate
        self.today = today
        self.max_parcel_failures = (
            settings.max_parcel_failures if max_parcel_failures is None else max_parcel_failures
        )
        self.executor = executor or ThreadPoolExecutor(
            max_workers=settings.max_concurrent_jobs, thread_name_prefix="classification"
        )
        self._futures: Dict[str, Future] = {}
        self._futures_lock = threading.Lock()

    def start_import(self, content: bytes, file_name: str, document_type: Optional[str] = None) -> str:
        """
        Import an uploaded register and start classifying its parcels.

        Args:
            content: Uploaded bytes
            file_name: Uploaded file name
            document_type: Register document type (wbr, ozon)

        Returns:
            Handle id of the classification job

        Raises:
            EmptyFileError, UnsupportedFileTypeError, NoSpreadsheetInArchiveError,
            InvalidRegisterError - synchronously, nothing is persisted
        """
        db = self.session_factory()
        try:
            result = create_register_importer(db, self.mappings).import_register(content, file_name, document_type)
        finally:
            db.close()

        job, _ = self.registry.create(result.register_id, JobKind.IMPORT)
        self._submit(job)
        return job.handle_id

    def start_validation(self, register_id: int) -> str:
        """
        Re-classify the parcels of an existing register.

        A validation already running for the register is reused.

        Raises:
            RegisterNotFoundError: the register does not exist
            JobConflictError: an import job is still running for the register
        """
        db = self.session_factory()
        try:
            if db.get(Register, register_id) is None:
                raise RegisterNotFoundError(register_id)
        finally:
            db.close()

        job, created = self.registry.create(register_id, JobKind.VALIDATION)
        if created:
            self._submit(job)
        return job.handle_id

    def get_progress(self, handle_id: str) -> Optional[JobProgress]:
        return self.registry.progress(handle_id)

    def cancel(self, handle_id: str) -> bool:
        return self.registry.cancel(handle_id)

    def wait(self, handle_id: str, timeout: Optional[float] = None) -> Optional[JobProgress]:
        """Block until the job is terminal (or the timeout passes) and return its progress."""
        with self._futures_lock:
            future = self._futures.get(handle_id)
        if future is not None:
            try:
                future.result(timeout=timeout)
            except FutureTimeoutError:
                logger.warning(f"Timed out waiting for job {handle_id}")
        return self.get_progress(handle_id)

    def shutdown(self, wait: bool = True) -> None:
        for handle_id in self.registry.handles():
            self.registry.cancel(handle_id)
        self.executor.shutdown(wait=wait)

    def _submit(self, job: ValidationJob) -> None:
        future = self.executor.submit(self._run, job)
        with self._futures_lock:
            self._futures[job.handle_id] = future
        future.add_done_callback(lambda _: self._forget(job.handle_id))

    def _forget(self, handle_id: str) -> None:
        with self._futures_lock:
            self._futures.pop(handle_id, None)

    def _eligible_parcel_ids(self, db: Session, register_id: int) -> List[int]:
        rows = (
            db.query(Parcel.id)
            .filter(Parcel.register_id == register_id)
            .filter(Parcel.check_status_id.notin_([int(s) for s in HUMAN_ASSERTED]))
            .order_by(Parcel.id)
            .all()
        )
        return [row[0] for row in rows]

    def _run(self, job: ValidationJob) -> None:
        db = self.session_factory()
        try:
            if job.token.is_cancelled:
                job.mark_cancelled()
                return

            context = build_classification_context(db, self.gate)
            parcel_ids = self._eligible_parcel_ids(db, job.register_id)
            job.start(len(parcel_ids))
            logger.info(f"Job {job.handle_id}: classifying {len(parcel_ids)} parcels of register {job.register_id}")

            classifier = ParcelClassifier(db, self.gate, self.today)
            for parcel_id in parcel_ids:
                if job.token.is_cancelled:
                    job.mark_cancelled()
                    logger.info(f"Job {job.handle_id} cancelled after {job.snapshot().processed} parcels")
                    return
                try:
                    parcel = db.get(Parcel, parcel_id)
                    if parcel is not None:
                        classifier.classify_parcel(parcel, context)
                    job.advance()
                except OperationalError:
                    raise
                except Exception as e:
                    db.rollback()
                    job.advance(failed=True)
                    logger.warning(f"Job {job.handle_id}: parcel {parcel_id} classification failed: {e}")
                    failures = job.failed_parcels()
                    if self.max_parcel_failures is not None and failures > self.max_parcel_failures:
                        job.fail(f"{failures} parcels failed classification, last error: {e}")
                        logger.error(f"Job {job.handle_id} stopped: too many parcel failures")
                        return

            job.finish()
            logger.info(f"Job {job.handle_id} finished")

        except Exception as e:
            logger.error(f"Job {job.handle_id} failed: {e}", exc_info=True)
            job.fail(str(e))
        finally:
            db.close()
            self.registry.release(job)


def create_import_pipeline(registry: JobRegistry, session_factory: Callable[[], Session],
                           mappings: RegisterMappings, gate: Optional[MorphologyGate] = None,
                           max_parcel_failures: Optional[int] = None) -> ImportPipeline:
    """Create import pipeline instance."""
    return ImportPipeline(registry, session_factory, mappings, gate, max_parcel_failures=max_parcel_failures)
