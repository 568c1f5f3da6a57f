"""AWS API call helpers.

Centralized client creation, retry on throttling, pagination and error
classification for AWS calls. Every call returns an ``OperationResult``.

Usage:
    result = execute_aws_api_call(
        service_name="dynamodb",
        method="get_item",
        TableName="reminders-events",
        Key={"event_id": {"S": "evt-1"}},
    )
    if result.is_success:
        item = result.data.get("Item")
"""

import time
from typing import Any, Callable, List, Optional

import boto3  # type: ignore
from botocore.client import BaseClient  # type: ignore
from botocore.exceptions import BotoCoreError, ClientError  # type: ignore

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, classify_aws_error
from infrastructure.services.providers import get_settings

logger = get_module_logger()

BACKOFF_FACTOR = 0.5


def get_aws_client(service_name: str) -> BaseClient:
    """Create a boto3 client for the configured region and endpoint."""
    aws = get_settings().aws
    session = boto3.Session(region_name=aws.AWS_REGION)
    client_config = {}
    if aws.ENDPOINT_URL:
        client_config["endpoint_url"] = aws.ENDPOINT_URL
    return session.client(service_name, **client_config)


def _error_code(error: Exception) -> Optional[str]:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    return None


def _paginate_all_results(
    client: BaseClient, method: str, keys: Optional[List[str]] = None, **kwargs
) -> List[dict]:
    paginator = client.get_paginator(method)
    results: List[dict] = []
    for page in paginator.paginate(**kwargs):
        for key in keys or []:
            results.extend(page.get(key, []))
    return results


def execute_api_call(
    func_name: str,
    api_call: Callable[[], Any],
    max_retries: Optional[int] = None,
) -> OperationResult:
    """Run an AWS call, retrying throttling errors with exponential backoff.

    Args:
        func_name: Name used in logs, e.g. ``dynamodb_update_item``
        api_call: Zero-argument callable performing the request
        max_retries: Override for settings.aws.MAX_RETRIES

    Returns:
        OperationResult with the raw response as data, or a classified error.
        Conditional-check failures come back as CONFLICT and are logged at
        debug level since they are expected under concurrency.
    """
    aws = get_settings().aws
    retries = max_retries if max_retries is not None else aws.MAX_RETRIES

    for attempt in range(retries + 1):
        try:
            result = api_call()
            if attempt > 0:
                logger.info("aws_api_retry_success", function=func_name, attempt=attempt + 1)
            return OperationResult.success(data=result, message=f"{func_name} succeeded")
        except (BotoCoreError, ClientError) as e:
            code = _error_code(e)
            if code in aws.THROTTLING_ERRS and attempt < retries:
                delay = BACKOFF_FACTOR * (2**attempt)
                logger.warning(
                    "aws_api_retrying",
                    function=func_name,
                    attempt=attempt + 1,
                    error_code=code,
                    delay=delay,
                )
                time.sleep(delay)
                continue

            classified = classify_aws_error(e)
            if code == "ConditionalCheckFailedException":
                logger.debug("aws_api_condition_failed", function=func_name)
            else:
                logger.error(
                    "aws_api_error_final",
                    function=func_name,
                    error=str(e),
                    error_code=code,
                )
            return classified

    return OperationResult.transient_error(
        f"{func_name} failed after {retries + 1} attempts", error_code="RETRIES_EXHAUSTED"
    )


def execute_aws_api_call(
    service_name: str,
    method: str,
    keys: Optional[List[str]] = None,
    force_paginate: bool = False,
    max_retries: Optional[int] = None,
    **kwargs,
) -> OperationResult:
    """Call ``method`` on a ``service_name`` client.

    Args:
        service_name: AWS service, e.g. ``dynamodb``
        method: Client method name
        keys: Keys collected across pages when paginating
        force_paginate: Collect every page into a list of items
        max_retries: Override for the throttling retry count
        **kwargs: Arguments for the API call

    Returns:
        OperationResult with the response (or the collected items)
    """

    def api_call():
        client = get_aws_client(service_name)
        if force_paginate:
            return _paginate_all_results(client, method, keys, **kwargs)
        return getattr(client, method)(**kwargs)

    return execute_api_call(f"{service_name}_{method}", api_call, max_retries=max_retries)
