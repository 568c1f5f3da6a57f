"""Operation result dataclass.

Every boundary in the reminder pipeline (stores, providers, resolvers)
returns an ``OperationResult`` instead of raising, so an empty result and a
genuine failure are always distinguishable by the caller.
"""

from typing import Optional, Any
from dataclasses import dataclass

from infrastructure.operations.status import OperationStatus


@dataclass
class OperationResult:
    """Uniform result returned from operations.

    Attributes:
        status: OperationStatus -- high-level outcome
        message: str -- human-friendly message for logs and run summaries
        data: Optional[Any] -- optional payload
        error_code: Optional[str] -- optional machine error code
        retry_after: Optional[int] -- seconds until retry when throttled
    """

    status: OperationStatus
    message: str
    data: Optional[Any] = None
    error_code: Optional[str] = None
    retry_after: Optional[int] = None

    @property
    def is_success(self) -> bool:
        """True if status is SUCCESS."""
        return self.status == OperationStatus.SUCCESS

    @classmethod
    def success(
        cls, data: Optional[Any] = None, message: str = "ok"
    ) -> "OperationResult":
        """Create a SUCCESS OperationResult with optional data."""
        return cls(status=OperationStatus.SUCCESS, message=message, data=data)

    @classmethod
    def error(
        cls,
        status: OperationStatus,
        message: str,
        error_code: Optional[str] = None,
        retry_after: Optional[int] = None,
        data: Optional[Any] = None,
    ) -> "OperationResult":
        """Create an error OperationResult.

        Args:
            status: OperationStatus indicating error type
            message: Human-friendly error message
            error_code: Optional machine error code
            retry_after: Optional seconds until retry (for throttling)
            data: Optional payload to include with the error

        Returns:
            OperationResult with the given error status
        """
        return cls(
            status=status,
            message=message,
            error_code=error_code,
            retry_after=retry_after,
            data=data,
        )

    @classmethod
    def transient_error(
        cls,
        message: str,
        error_code: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> "OperationResult":
        """Create a transient error result (timeouts, 5xx, throttling)."""
        return cls.error(
            OperationStatus.TRANSIENT_ERROR, message, error_code, retry_after
        )

    @classmethod
    def permanent_error(
        cls, message: str, error_code: Optional[str] = None
    ) -> "OperationResult":
        """Create a permanent error result (bad input, bad credentials)."""
        return cls.error(OperationStatus.PERMANENT_ERROR, message, error_code)

    @classmethod
    def not_found(
        cls, message: str, error_code: Optional[str] = "NOT_FOUND"
    ) -> "OperationResult":
        """Create a NOT_FOUND result for a missing record."""
        return cls.error(OperationStatus.NOT_FOUND, message, error_code)

    @classmethod
    def conflict(
        cls, message: str, error_code: Optional[str] = "CONDITION_FAILED"
    ) -> "OperationResult":
        """Create a CONFLICT result for a lost conditional write."""
        return cls.error(OperationStatus.CONFLICT, message, error_code)
