# WORKFLOW: Shared dependencies for API endpoints.
# Used by: Register, parcel and vocabulary routers
# Functions:
# 1. get_job_registry() - Process-wide job registry (lazy-loaded)
# 2. get_register_mappings() - Header mappings loaded once
# 3. get_gate() - Morphology gate
# 4. get_pipeline() - Import pipeline bound to the shared registry and session factory
#
# Tests replace these through app.dependency_overrides.

import logging

from db.session import get_session_factory
from etl.register_mapping import RegisterMappings, load_register_mappings
from services.import_pipeline import ImportPipeline, create_import_pipeline
from services.job_registry import JobRegistry
from services.morphology import MorphologyGate, get_morphology_gate

logger = logging.getLogger(__name__)

# Lazy-loaded process-wide instances
_job_registry = None
_register_mappings = None
_pipeline = None


def get_job_registry() -> JobRegistry:
    global _job_registry
    if _job_registry is None:
        _job_registry = JobRegistry()
    return _job_registry


def get_register_mappings() -> RegisterMappings:
    global _register_mappings
    if _register_mappings is None:
        _register_mappings = load_register_mappings()
    return _register_mappings


def get_gate() -> MorphologyGate:
    return get_morphology_gate()


def get_pipeline() -> ImportPipeline:
    """Get the global import pipeline instance (lazy-loaded)."""
    global _pipeline
    if _pipeline is None:
        _pipeline = create_import_pipeline(
            registry=get_job_registry(),
            session_factory=get_session_factory(),
            mappings=get_register_mappings(),
            gate=get_morphology_gate(),
        )
        logger.info("Import pipeline initialized")
    return _pipeline


def shutdown_pipeline() -> None:
    global _pipeline
    if _pipeline is not None:
        _pipeline.shutdown(wait=False)
        _pipeline = None
