from site_allocation.core.retry import NonRetryableError, RetryableError


class AllocationDomainError(Exception):
    """Base class for all allocation domain errors."""


class ValidationError(AllocationDomainError, NonRetryableError):
    """Raised when input is malformed, e.g. a site without a name."""


class RecordNotFound(ValidationError):
    """Raised when an engineer, site or allocation id is not in the snapshot."""


class EligibilityRejected(AllocationDomainError, NonRetryableError):
    """Raised when the engineer may not take the work, or lost a race for it."""


class InvalidTransition(AllocationDomainError, NonRetryableError):
    """Raised when a lifecycle guard fails, e.g. completing a completed allocation."""


class SnapshotNotLoaded(AllocationDomainError, NonRetryableError):
    """Raised when a command is issued before the first successful snapshot load."""


class StoreUnavailable(AllocationDomainError, RetryableError):
    """Raised when the entity store cannot be reached or fails mid-operation."""
