"""Operation result types and status enums.

Standardized result types shared by stores, delivery adapters and the
orchestrator, plus classifiers for provider exceptions.
"""

from infrastructure.operations.classifiers import (
    classify_aws_error,
    classify_http_error,
    classify_http_response,
)
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
    "classify_aws_error",
    "classify_http_error",
    "classify_http_response",
]
