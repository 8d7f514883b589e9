"""
Commission Engine - Shared FastAPI Dependencies

The carrier registry and report storage are built once in the application
lifespan and kept on app.state; routes receive them through these helpers.
"""
import logging

from fastapi import HTTPException, Request

from .services.carriers.registry import CarrierFormatRegistry
from .services.errors import (
    CommissionEngineError, HierarchyCycle, HierarchyIncomplete, PersistenceError, RowError, StorageError,
)
from .services.ingestion.storage import ReportStorage

logger = logging.getLogger(__name__)


def get_registry(request: Request) -> CarrierFormatRegistry:
    return request.app.state.carrier_registry


def get_storage(request: Request) -> ReportStorage:
    return request.app.state.report_storage


def to_http_exception(error: CommissionEngineError) -> HTTPException:
    """Map a domain error to the HTTP status the API reports for it."""
    if isinstance(error, (StorageError, PersistenceError)):
        status_code = 500
    elif isinstance(error, HierarchyCycle):
        status_code = 409
    elif isinstance(error, (HierarchyIncomplete, RowError)):
        status_code = 422
    else:
        status_code = 400

    if status_code == 500:
        logger.error(f"{error.code}: {error.message}")
    return HTTPException(
        status_code=status_code,
        detail={"error": error.message, "code": error.code, **error.details},
    )
