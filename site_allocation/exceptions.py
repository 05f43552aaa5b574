from fastapi import Request
from fastapi.responses import JSONResponse

from site_allocation.services.exceptions import (
    AllocationDomainError,
    EligibilityRejected,
    InvalidTransition,
    RecordNotFound,
    SnapshotNotLoaded,
    StoreUnavailable,
    ValidationError,
)

# Most specific classes first: RecordNotFound is also a ValidationError
STATUS_CODES = (
    (RecordNotFound, 404),
    (ValidationError, 422),
    (EligibilityRejected, 409),
    (InvalidTransition, 409),
    (SnapshotNotLoaded, 409),
    (StoreUnavailable, 503),
)


def status_code_for(exc: AllocationDomainError) -> int:
    for error_class, status_code in STATUS_CODES:
        if isinstance(exc, error_class):
            return status_code
    return 400


async def allocation_exception_handler(request: Request, exc: AllocationDomainError):
    return JSONResponse(
        status_code=status_code_for(exc),
        content={
            "success": False,
            "error_type": exc.__class__.__name__,
            "message": str(exc),
            "retryable": isinstance(exc, StoreUnavailable),
        },
    )
