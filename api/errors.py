# WORKFLOW: Translation of domain errors into HTTP errors.
# Used by: All routers
# Functions:
# 1. to_http_exception() - ComplianceError -> HTTPException with {"code", "message"} detail
#
# Error flow: service raises ComplianceError -> router catches -> HTTPException(status, detail)

from fastapi import HTTPException
import logging

from core.exceptions import ComplianceError

logger = logging.getLogger(__name__)


def to_http_exception(error: ComplianceError) -> HTTPException:
    """Map a domain error to the HTTP status it declares."""
    if error.http_status >= 500:
        logger.error(f"{type(error).__name__}: {error.message}")
    else:
        logger.info(f"Rejected request: {error.code} - {error.message}")
    return HTTPException(status_code=error.http_status, detail=error.to_detail())
