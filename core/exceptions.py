# WORKFLOW: Domain exceptions raised by the classification services.
# Used by: ETL import, vocabulary service, import pipeline, API routers
# Exceptions:
# 1. Upload rejection - EmptyFileError, UnsupportedFileTypeError, NoSpreadsheetInArchiveError
# 2. Vocabulary rejection - InsufficientMorphologySupportError, DuplicateWordError, InvalidKeyWordListError
# 3. Reference data - InvalidFeacnCatalogError, CatalogLoadInProgressError
# 4. Lookups - RegisterNotFoundError, ParcelNotFoundError, VocabularyEntryNotFoundError
# 5. Configuration - MappingNotFoundError
# 6. Jobs - JobConflictError
#
# Error flow: Service raises -> Router maps `code`/`http_status` -> HTTPException

from typing import Any, Dict, Optional


class ComplianceError(Exception):
    """Base class for all domain errors."""

    code = "compliance_error"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class EmptyFileError(ComplianceError):
    code = "empty_file"
    http_status = 400

    def __init__(self, message: str = "Uploaded file is empty"):
        super().__init__(message)


class UnsupportedFileTypeError(ComplianceError):
    code = "unsupported_file_type"
    http_status = 400

    def __init__(self, extension: str):
        super().__init__(f"Unsupported file type: '{extension or '<none>'}'")
        self.extension = extension


class NoSpreadsheetInArchiveError(ComplianceError):
    code = "no_spreadsheet_in_archive"
    http_status = 400

    def __init__(self, archive_name: str):
        super().__init__(f"Archive '{archive_name}' does not contain an .xlsx or .xls register")
        self.archive_name = archive_name


class InvalidRegisterError(ComplianceError):
    """Register rows could not be mapped (missing headers, unknown document type)."""

    code = "invalid_register"
    http_status = 400


class MappingNotFoundError(ComplianceError):
    code = "mapping_not_found"
    http_status = 500

    def __init__(self, path: str):
        super().__init__(f"Register mapping file not found: {path}")
        self.path = path


class InsufficientMorphologySupportError(ComplianceError):
    """
    Raised when a vocabulary word cannot back the requested morphology match type.

    `level` carries the support level the dictionary reported, so callers can
    fall back to a non-morphological match type.
    """

    code = "insufficient_morphology_support"
    http_status = 418

    def __init__(self, word: str, level: Any):
        super().__init__(f"Word '{word}' has insufficient morphology support: {getattr(level, 'name', level)}")
        self.word = word
        self.level = level

    def to_detail(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "word": self.word,
            "level": getattr(self.level, "name", str(self.level)),
        }


class DuplicateWordError(ComplianceError):
    code = "duplicate_word"
    http_status = 409

    def __init__(self, word: str):
        super().__init__(f"Vocabulary already contains '{word}'")
        self.word = word


class InvalidFeacnCodeError(ComplianceError):
    code = "invalid_feacn_code"
    http_status = 400

    def __init__(self, code: str):
        super().__init__(f"FEACN code must contain exactly 10 digits: '{code}'")
        self.feacn_code = code


class NotFoundError(ComplianceError):
    code = "not_found"
    http_status = 404

    def __init__(self, entity: str, entity_id: Optional[Any]):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity_id = entity_id


class RegisterNotFoundError(NotFoundError):
    code = "register_not_found"

    def __init__(self, register_id: Any):
        super().__init__("Register", register_id)


class ParcelNotFoundError(NotFoundError):
    code = "parcel_not_found"

    def __init__(self, parcel_id: Any):
        super().__init__("Parcel", parcel_id)


class VocabularyEntryNotFoundError(NotFoundError):
    code = "vocabulary_entry_not_found"

    def __init__(self, kind: str, entry_id: Any):
        super().__init__(kind, entry_id)


class ParcelApprovalError(ComplianceError):
    code = "approval_not_allowed"
    http_status = 409


class FeacnOrderNotFoundError(NotFoundError):
    code = "feacn_order_not_found"

    def __init__(self, order_id: Any):
        super().__init__("FEACN order", order_id)


class JobConflictError(ComplianceError):
    code = "job_conflict"
    http_status = 409

    def __init__(self, register_id: int, running_kind: str):
        super().__init__(f"Register {register_id} already has a running {running_kind} job")
        self.register_id = register_id
        self.running_kind = running_kind


class InvalidKeyWordListError(ComplianceError):
    """Key-word list spreadsheet is unreadable, lacks its columns or holds a malformed code."""

    code = "invalid_key_word_list"
    http_status = 400


class InvalidFeacnCatalogError(ComplianceError):
    """FEACN catalog spreadsheet is unreadable or lacks required columns."""

    code = "invalid_feacn_catalog"
    http_status = 400


class CatalogLoadInProgressError(ComplianceError):
    code = "catalog_load_in_progress"
    http_status = 409

    def __init__(self):
        super().__init__("FEACN catalog upload is already in progress")
