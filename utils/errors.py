"""
Error Taxonomy - Typed Failures for the Sync Pipeline

Every failure the pipeline can raise derives from SyncError. Fatal errors
abort a run and surface as a single RunFailed; UpdateFailure is the only
non-fatal kind and is recorded in the run summary instead of being raised
out of the dispatcher.
"""

from typing import Any, Optional


class SyncError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigError(SyncError):
    """Required configuration is missing or invalid."""


class AuthFailure(SyncError):
    """Credential or token acquisition failed."""


class SourceUnavailable(SyncError):
    """A page fetch returned a non-success response or could not be sent."""

    def __init__(
        self,
        message: str,
        page_index: int,
        status: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.page_index = page_index
        self.status = status
        super().__init__(message, details={"page_index": page_index, "status": status, **(details or {})})


class SchemaError(SourceUnavailable):
    """A page payload did not match the expected record schema."""

    def __init__(self, message: str, page_index: int, errors: Optional[list[Any]] = None) -> None:
        self.errors = errors or []
        super().__init__(message, page_index=page_index, details={"errors": self.errors})


class UpdateFailure(SyncError):
    """A single record update was rejected or could not be sent."""

    def __init__(self, record_id: str, last_status: Optional[int], reason: str = "") -> None:
        self.record_id = record_id
        self.last_status = last_status
        self.reason = reason
        super().__init__(
            f"Update failed for record {record_id} (status={last_status}): {reason}",
            details={"record_id": record_id, "last_status": last_status},
        )


class EncodingError(SyncError):
    """The export could not be written."""


class PublishFailure(SyncError):
    """The archive upload failed."""


class RunFailed(SyncError):
    """A run ended in the Failed state at the given stage."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(
            f"Run failed during {stage}: {cause}",
            details={"stage": stage, "cause": type(cause).__name__},
        )
