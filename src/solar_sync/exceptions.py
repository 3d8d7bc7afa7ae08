"""
Error taxonomy for the sync subsystem.

Every error carries a short machine-readable ``code`` so summaries and logs
can group failures without parsing messages.
"""

from typing import Any, Optional


class SolarSyncError(Exception):
    """Base class for all sync errors."""

    code = "SYNC_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class AuthenticationFailure(SolarSyncError):
    """Credentials missing/invalid, or the vendor rejected login after retries."""

    code = "AUTHENTICATION_FAILURE"


class UpstreamError(SolarSyncError):
    """Non-success response or malformed payload from a vendor API."""

    code = "UPSTREAM_ERROR"

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class CapabilityUnsupported(SolarSyncError):
    """An adapter does not implement an optional operation."""

    code = "CAPABILITY_UNSUPPORTED"

    def __init__(self, vendor_type: str, operation: str):
        super().__init__(f"{operation} is not supported for vendor type {vendor_type}")
        self.vendor_type = vendor_type
        self.operation = operation


class PersistenceBatchFailure(SolarSyncError):
    """A chunked write failed as a whole."""

    code = "PERSISTENCE_BATCH_FAILURE"

    def __init__(self, message: str, batch_size: int = 0):
        super().__init__(message)
        self.batch_size = batch_size


class ValidationError(SolarSyncError):
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConflictError(SolarSyncError):
    code = "CONFLICT"


class NotFoundError(SolarSyncError):
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")


class SyncRunFailed(SolarSyncError):
    """Raised by scheduler triggers when at least one vendor failed."""

    code = "SYNC_RUN_FAILED"

    def __init__(self, summary: Any):
        super().__init__(
            f"{summary.failed} vendors failed during {summary.pipeline} sync. Check logs for details."
        )
        self.summary = summary
