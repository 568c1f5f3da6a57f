"""Operation status enumeration.

Classifies the outcome of store, provider and pipeline operations so callers
can decide whether to count a failure, give up, or report a lost race.
"""

from enum import Enum


class OperationStatus(Enum):
    """Status codes for operation results.

    Attributes:
        SUCCESS: Operation completed successfully
        TRANSIENT_ERROR: Network, timeout or provider throttling failure
        PERMANENT_ERROR: Validation, credential or malformed data failure
        UNAUTHORIZED: Provider rejected the credentials
        NOT_FOUND: Referenced record does not exist
        CONFLICT: A conditional write lost against a concurrent writer
    """

    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"

    @property
    def is_retryable(self) -> bool:
        """Only transient failures are worth retrying on a later run."""
        return self is OperationStatus.TRANSIENT_ERROR
