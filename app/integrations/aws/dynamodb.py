"""DynamoDB helpers.

Thin wrappers over ``execute_aws_api_call`` plus conversion between plain
Python dicts and DynamoDB's attribute-value format.

Usage:
    result = dynamodb.update_item(
        table_name="reminders-event-notifications",
        Key=dynamodb.serialize({"obligation_id": "evt-1:1_day_before"}),
        UpdateExpression="SET #status = :sending",
        ConditionExpression="#status = :scheduled",
        ...
    )
"""

import time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer  # type: ignore

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult
from infrastructure.services.providers import get_settings
from integrations.aws.client import BACKOFF_FACTOR, execute_aws_api_call

logger = get_module_logger()

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def _to_dynamo_value(value: Any) -> Any:
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_dynamo_value(v) for v in value]
    return value


def _from_dynamo_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo_value(v) for k, v in value.items()}
    if isinstance(value, (list, set)):
        return [_from_dynamo_value(v) for v in value]
    return value


def serialize(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a plain dict into DynamoDB attribute values. ``None`` values are dropped."""
    return {
        key: _serializer.serialize(_to_dynamo_value(value))
        for key, value in item.items()
        if value is not None
    }


def deserialize(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert DynamoDB attribute values into a plain dict."""
    return {
        key: _from_dynamo_value(_deserializer.deserialize(value))
        for key, value in item.items()
    }


def get_item(table_name: str, Key: Dict[str, Any], **kwargs) -> OperationResult:
    """Get an item; ``data["Item"]`` is absent when it does not exist."""
    return execute_aws_api_call(
        service_name="dynamodb",
        method="get_item",
        TableName=table_name,
        Key=Key,
        **kwargs,
    )


def put_item(table_name: str, Item: Dict[str, Any], **kwargs) -> OperationResult:
    return execute_aws_api_call(
        service_name="dynamodb",
        method="put_item",
        TableName=table_name,
        Item=Item,
        **kwargs,
    )


def update_item(table_name: str, Key: Dict[str, Any], **kwargs) -> OperationResult:
    """Update an item. A failed ``ConditionExpression`` returns CONFLICT."""
    return execute_aws_api_call(
        service_name="dynamodb",
        method="update_item",
        TableName=table_name,
        Key=Key,
        **kwargs,
    )


def delete_item(table_name: str, Key: Dict[str, Any], **kwargs) -> OperationResult:
    return execute_aws_api_call(
        service_name="dynamodb",
        method="delete_item",
        TableName=table_name,
        Key=Key,
        **kwargs,
    )


def query(table_name: str, KeyConditionExpression: str, **kwargs) -> OperationResult:
    """Query with automatic pagination; ``data`` is the list of raw items."""
    return execute_aws_api_call(
        service_name="dynamodb",
        method="query",
        TableName=table_name,
        KeyConditionExpression=KeyConditionExpression,
        keys=["Items"],
        force_paginate=True,
        **kwargs,
    )


def batch_get_items(
    table_name: str, keys: List[Dict[str, Any]], max_retries: Optional[int] = None
) -> OperationResult:
    """Fetch up to 100 items by key; ``data`` is the list of raw items.

    ``UnprocessedKeys`` are requested again with exponential backoff. Keys
    still unprocessed after ``max_retries`` (default settings.aws.MAX_RETRIES)
    make the whole call a transient error, never a partial result.
    """
    retries = max_retries if max_retries is not None else get_settings().aws.MAX_RETRIES
    items: List[Dict[str, Any]] = []
    pending = keys

    for attempt in range(retries + 1):
        result = execute_aws_api_call(
            service_name="dynamodb",
            method="batch_get_item",
            RequestItems={table_name: {"Keys": pending}},
        )
        if not result.is_success:
            return result
        response = result.data or {}
        items.extend(response.get("Responses", {}).get(table_name, []))
        pending = response.get("UnprocessedKeys", {}).get(table_name, {}).get("Keys", [])
        if not pending:
            return OperationResult.success(data=items)
        if attempt < retries:
            delay = BACKOFF_FACTOR * (2**attempt)
            logger.warning(
                "dynamodb_unprocessed_keys_retrying",
                table=table_name,
                unprocessed=len(pending),
                attempt=attempt + 1,
                delay=delay,
            )
            time.sleep(delay)

    logger.error(
        "dynamodb_unprocessed_keys_exhausted",
        table=table_name,
        unprocessed=len(pending),
        attempts=retries + 1,
    )
    return OperationResult.transient_error(
        f"batch_get_item left {len(pending)} key(s) unprocessed after {retries + 1} attempts",
        error_code="UNPROCESSED_KEYS",
    )
