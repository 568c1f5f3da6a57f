"""Error classifiers for provider exceptions and responses.

Converts ``requests`` failures, HTTP responses from delivery providers, and
AWS SDK errors into ``OperationResult`` objects so adapters and stores share
one classification.

Usage:
    from infrastructure.operations.classifiers import classify_http_response

    response = requests.post(url, json=payload, timeout=10)
    result = classify_http_response(response, provider="sendgrid")
    if not result.is_success:
        ...
"""

from typing import Optional

import requests
from botocore.exceptions import ClientError

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus


def _retry_after(response: requests.Response, default: int = 60) -> int:
    header_value = response.headers.get("Retry-After")
    if not header_value:
        return default
    try:
        return int(header_value)
    except (TypeError, ValueError):
        return default


def classify_http_response(
    response: requests.Response,
    provider: str,
    success_codes: tuple = (200, 201, 202),
) -> OperationResult:
    """Classify a provider HTTP response into OperationResult.

    Status Code Mapping:
    - success_codes: SUCCESS with the decoded JSON body (if any) as data
    - 429: TRANSIENT_ERROR with retry_after from the Retry-After header
    - 401/403: UNAUTHORIZED
    - 404: NOT_FOUND
    - 5xx: TRANSIENT_ERROR
    - other 4xx: PERMANENT_ERROR

    Args:
        response: Response returned by ``requests``
        provider: Provider name used in messages
        success_codes: Status codes treated as accepted

    Returns:
        OperationResult describing the response
    """
    status_code = response.status_code

    if status_code in success_codes:
        data = None
        if response.content:
            try:
                data = response.json()
            except ValueError:
                data = None
        return OperationResult.success(
            data=data, message=f"{provider} accepted request"
        )

    if status_code == 429:
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            f"{provider} rate limited",
            error_code="RATE_LIMITED",
            retry_after=_retry_after(response),
        )

    if status_code in (401, 403):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            f"{provider} rejected credentials ({status_code})",
            error_code="UNAUTHORIZED",
        )

    if status_code == 404:
        return OperationResult.not_found(f"{provider} endpoint not found")

    if 500 <= status_code < 600:
        return OperationResult.transient_error(
            f"{provider} server error ({status_code})",
            error_code="SERVER_ERROR",
        )

    return OperationResult.permanent_error(
        f"{provider} client error ({status_code}): {response.text[:200]}",
        error_code=f"HTTP_{status_code}",
    )


def classify_http_error(exc: Exception, provider: Optional[str] = None) -> OperationResult:
    """Classify an exception raised while calling a provider over HTTP.

    Timeouts and connection failures are transient; anything else raised by
    ``requests`` is treated as a permanent request error.

    Args:
        exc: Exception raised by ``requests`` (or the adapter)
        provider: Optional provider name used in messages

    Returns:
        OperationResult with TRANSIENT_ERROR or PERMANENT_ERROR status
    """
    label = provider or "provider"

    if isinstance(exc, requests.Timeout):
        return OperationResult.transient_error(
            f"{label} request timed out", error_code="TIMEOUT"
        )

    if isinstance(exc, requests.ConnectionError):
        return OperationResult.transient_error(
            f"{label} connection error: {exc}", error_code="CONNECTION_ERROR"
        )

    if isinstance(exc, requests.RequestException):
        return OperationResult.permanent_error(
            f"{label} request error: {exc}", error_code="REQUEST_ERROR"
        )

    return OperationResult.transient_error(
        f"{label} error: {type(exc).__name__}: {exc}",
        error_code="UNEXPECTED_ERROR",
    )


def classify_aws_error(exc: Exception) -> OperationResult:
    """Classify AWS SDK errors into OperationResult.

    Error Code Mapping:
    - ConditionalCheckFailedException: CONFLICT (lost conditional write)
    - ThrottlingException / ProvisionedThroughputExceededException:
      TRANSIENT_ERROR with retry_after
    - AccessDeniedException: UNAUTHORIZED
    - ResourceNotFoundException: NOT_FOUND
    - ValidationException: PERMANENT_ERROR
    - Other: TRANSIENT_ERROR

    The original AWS error code is preserved as ``error_code`` so callers can
    match on it.
    """
    if not isinstance(exc, ClientError):
        return OperationResult.transient_error(
            f"AWS connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    error_code = exc.response.get("Error", {}).get("Code", "Unknown")

    if error_code == "ConditionalCheckFailedException":
        return OperationResult.conflict(
            "Conditional check failed", error_code=error_code
        )

    if error_code in ("ThrottlingException", "ProvisionedThroughputExceededException"):
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            "AWS API throttled",
            error_code=error_code,
            retry_after=60,
        )

    if error_code == "AccessDeniedException":
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            "AWS API access denied",
            error_code=error_code,
        )

    if error_code == "ResourceNotFoundException":
        return OperationResult.not_found("AWS resource not found", error_code=error_code)

    if error_code == "ValidationException":
        return OperationResult.permanent_error(
            f"AWS validation error: {exc}", error_code=error_code
        )

    return OperationResult.transient_error(
        f"AWS client error: {error_code}", error_code=error_code
    )
