# WORKFLOW: Bootstrap script for Parcel Compliance API setup and register processing.
# Used by: Initial setup, local runs, deployment seeding
# Functions:
# 1. setup_database() - Create tables
# 2. load_seed() - Validate and load FEACN catalog, prefix rules and vocabularies
# 3. load_spreadsheet_lists() - Load the FEACN catalog and key-word lists from spreadsheets
# 4. import_register() - Import a register file and wait for its classification job
# 5. validate_setup() - Verify database connectivity and register mappings
#
# Bootstrap flow: Tables -> Seed JSON -> Catalog / key-word spreadsheets -> Register import -> Job progress -> Summary

"""
Bootstrap script for Parcel Compliance API setup.
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.config import settings  # noqa: E402
from db.session import check_db_connection, get_session_factory, init_db  # noqa: E402
from etl.feacn_catalog import create_feacn_catalog_loader  # noqa: E402
from etl.key_word_list import create_key_word_list_importer  # noqa: E402
from etl.reference_data import load_reference_data, read_seed, validate_seed  # noqa: E402
from etl.register_mapping import load_register_mappings  # noqa: E402
from services.import_pipeline import create_import_pipeline  # noqa: E402
from services.job_registry import JobRegistry, JobState  # noqa: E402
from services.morphology import get_morphology_gate  # noqa: E402

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.5


def setup_database() -> None:
    """
    Create database tables.
    """
    logger.info(f"Initializing database at {settings.database_url}")
    init_db()


def load_seed(seed_path: Path) -> None:
    """
    Validate and load a reference data seed.

    Args:
        seed_path: Path to the seed JSON file
    """
    payload = read_seed(seed_path)
    is_valid, errors = validate_seed(payload)
    if not is_valid:
        for error in errors:
            logger.error(f"Seed error: {error}")
        raise SystemExit(f"Seed {seed_path} is invalid ({len(errors)} errors)")

    db = get_session_factory()()
    try:
        summary = load_reference_data(db, payload, get_morphology_gate())
        logger.info(f"Seed loaded: {summary}")
    finally:
        db.close()


def load_spreadsheet_lists(catalog_path: Optional[Path] = None, key_words_path: Optional[Path] = None) -> None:
    """
    Load the FEACN catalog and a key-word list from spreadsheet exports.

    Args:
        catalog_path: FEACN catalog export (.xlsx, .xls or .zip)
        key_words_path: Key-word list (.xlsx, .xls or .zip)
    """
    db = get_session_factory()()
    try:
        if catalog_path:
            stored = create_feacn_catalog_loader(db).load(catalog_path.read_bytes(), catalog_path.name)
            logger.info(f"FEACN catalog loaded: {stored} codes")
        if key_words_path:
            summary = create_key_word_list_importer(db, get_morphology_gate()).import_list(
                key_words_path.read_bytes(), key_words_path.name
            )
            logger.info(f"Key-word list loaded: {summary.created} created, {summary.updated} updated")
    finally:
        db.close()


def import_register(file_path: Path, document_type: Optional[str] = None) -> bool:
    """
    Import a register and wait for its classification job.

    Args:
        file_path: Register file (.xlsx, .xls or .zip)
        document_type: wbr or ozon (defaults to settings.default_document_type)

    Returns:
        True if the job finished, False otherwise
    """
    pipeline = create_import_pipeline(
        registry=JobRegistry(),
        session_factory=get_session_factory(),
        mappings=load_register_mappings(),
        gate=get_morphology_gate(),
        max_parcel_failures=settings.max_parcel_failures,
    )
    try:
        handle_id = pipeline.start_import(file_path.read_bytes(), file_path.name, document_type)
        logger.info(f"Import job {handle_id} started for {file_path.name}")

        while True:
            progress = pipeline.get_progress(handle_id)
            if progress is None or progress.finished:
                break
            print(f"  {progress.state.value}: {progress.processed}/{progress.total}")
            time.sleep(POLL_INTERVAL_SECONDS)

        progress = pipeline.wait(handle_id)
        if progress is None:
            logger.error(f"Job {handle_id} disappeared before completion")
            return False
        print(f"Register {progress.register_id}: {progress.state.value}, "
              f"{progress.processed}/{progress.total} parcels, {progress.failed_parcels} failed")
        if progress.error:
            logger.error(f"Job {handle_id} failed: {progress.error}")
        return progress.state == JobState.FINISHED
    finally:
        pipeline.shutdown()


def validate_setup() -> bool:
    """
    Verify the database is reachable and register mappings load.

    Returns:
        True if validation passes, False otherwise
    """
    if not check_db_connection():
        logger.error("Database is not reachable")
        return False
    try:
        mappings = load_register_mappings()
    except Exception as e:
        logger.error(f"Register mappings failed to load: {e}")
        return False
    logger.info(f"Setup valid: mappings for {sorted(mappings)}")
    return True


def main():
    """
    Main bootstrap function.
    """
    parser = argparse.ArgumentParser(description='Bootstrap Parcel Compliance API')
    parser.add_argument('--seed', type=Path, help='Reference data JSON (catalog, prefix rules, vocabularies)')
    parser.add_argument('--feacn-catalog', type=Path, help='FEACN catalog spreadsheet export')
    parser.add_argument('--key-words', type=Path, help='Key-word list spreadsheet')
    parser.add_argument('--register', type=Path, help='Register file to import and classify')
    parser.add_argument('--document-type', choices=['wbr', 'ozon'], help='Register document type')
    parser.add_argument('--validate-only', action='store_true', help='Only validate existing setup')

    args = parser.parse_args()

    if args.validate_only:
        sys.exit(0 if validate_setup() else 1)

    logger.info("Starting Parcel Compliance API bootstrap")
    setup_database()
    if args.seed:
        load_seed(args.seed)
    if args.feacn_catalog or args.key_words:
        load_spreadsheet_lists(args.feacn_catalog, args.key_words)
    ok = validate_setup()
    if ok and args.register:
        ok = import_register(args.register, args.document_type)

    logger.info("Bootstrap completed" if ok else "Bootstrap finished with errors")
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
