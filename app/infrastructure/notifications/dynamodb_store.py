"""DynamoDB-backed notification store.

Tables (names from ``StorageSettings.table_name``):

- ``event-notifications``: key ``obligation_id``; GSIs ``event_id-index``
  and ``status-scheduled_ts-index`` (``status`` hash, ``scheduled_ts`` range)
- ``events``: key ``event_id``
- ``registrations``: key ``registration_id``; GSI ``event_id-index``
- ``integration-contacts``: key ``contact_id``
- ``integrations``: key ``integration_id``
- ``integration-usage-logs``: key ``log_id``

``claim`` and ``complete`` are conditional updates on ``status``, so a lost
race surfaces as ``ConditionalCheckFailedException`` and never as a second
delivery.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel

from infrastructure.configuration.infrastructure.server import StorageSettings
from infrastructure.logging import get_module_logger
from infrastructure.notifications.models import (
    Event,
    Integration,
    IntegrationContact,
    IntegrationUsageLog,
    NotificationObligation,
    ObligationStatus,
    Registration,
    ensure_utc,
    utc_now,
)
from infrastructure.operations import OperationResult, OperationStatus
from integrations.aws import dynamodb
from integrations.aws.client import execute_aws_api_call

logger = get_module_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)

OBLIGATIONS_TABLE = "event-notifications"
EVENTS_TABLE = "events"
REGISTRATIONS_TABLE = "registrations"
CONTACTS_TABLE = "integration-contacts"
INTEGRATIONS_TABLE = "integrations"
USAGE_LOGS_TABLE = "integration-usage-logs"

EVENT_ID_INDEX = "event_id-index"
DUE_INDEX = "status-scheduled_ts-index"

BATCH_GET_LIMIT = 100


def _to_item(model: BaseModel, key_name: str) -> Dict[str, Any]:
    data = model.model_dump(mode="json")
    data[key_name] = data.pop("id")
    return data


def _from_item(raw: Dict[str, Any], model: Type[ModelT], key_name: str) -> ModelT:
    data = dynamodb.deserialize(raw)
    data["id"] = data.pop(key_name)
    return model.model_validate(data)


def _obligation_item(obligation: NotificationObligation) -> Dict[str, Any]:
    item = _to_item(obligation, "obligation_id")
    item["scheduled_ts"] = obligation.scheduled_time.timestamp()
    return item


def _stamp(now: Optional[datetime]) -> str:
    return (ensure_utc(now) if now else utc_now()).isoformat()


class DynamoDBNotificationStore:
    """Notification store backed by DynamoDB tables.

    Args:
        storage: Storage settings supplying the table names
    """

    def __init__(self, storage: StorageSettings):
        self._storage = storage

    def _table(self, name: str) -> str:
        return self._storage.table_name(name)

    def _put(self, table: str, item: Dict[str, Any], **kwargs) -> OperationResult:
        return dynamodb.put_item(
            table_name=self._table(table), Item=dynamodb.serialize(item), **kwargs
        )

    def _get(self, table: str, key_name: str, key: str) -> OperationResult:
        result = dynamodb.get_item(
            table_name=self._table(table), Key=dynamodb.serialize({key_name: key})
        )
        if not result.is_success:
            return result
        item = (result.data or {}).get("Item")
        if not item:
            return OperationResult.not_found(f"{table} item {key} not found")
        return OperationResult.success(data=item)

    def _query_event_index(self, table: str, event_id: str) -> OperationResult:
        return dynamodb.query(
            table_name=self._table(table),
            KeyConditionExpression="event_id = :event_id",
            IndexName=EVENT_ID_INDEX,
            ExpressionAttributeValues=dynamodb.serialize({":event_id": event_id}),
        )

    # Events and recipients

    def save_event(self, event: Event) -> OperationResult:
        result = self._put(EVENTS_TABLE, _to_item(event, "event_id"))
        return OperationResult.success(data=event.id) if result.is_success else result

    def get_event(self, event_id: str) -> OperationResult:
        result = self._get(EVENTS_TABLE, "event_id", event_id)
        if not result.is_success:
            return result
        return OperationResult.success(data=_from_item(result.data, Event, "event_id"))

    def save_registration(self, registration: Registration) -> OperationResult:
        result = self._put(
            REGISTRATIONS_TABLE, _to_item(registration, "registration_id")
        )
        return (
            OperationResult.success(data=registration.id) if result.is_success else result
        )

    def list_registrations(self, event_id: str) -> OperationResult:
        result = self._query_event_index(REGISTRATIONS_TABLE, event_id)
        if not result.is_success:
            return result
        return OperationResult.success(
            data=[
                _from_item(raw, Registration, "registration_id")
                for raw in result.data or []
            ]
        )

    def save_contact(self, contact: IntegrationContact) -> OperationResult:
        result = self._put(CONTACTS_TABLE, _to_item(contact, "contact_id"))
        return OperationResult.success(data=contact.id) if result.is_success else result

    def list_contacts(
        self, integration_id: str, contact_ids: Sequence[str]
    ) -> OperationResult:
        """Contacts by id, keeping only those owned by ``integration_id``."""
        unique_ids = list(dict.fromkeys(contact_ids))
        found: Dict[str, IntegrationContact] = {}
        for start in range(0, len(unique_ids), BATCH_GET_LIMIT):
            keys = [
                dynamodb.serialize({"contact_id": cid})
                for cid in unique_ids[start : start + BATCH_GET_LIMIT]
            ]
            result = dynamodb.batch_get_items(self._table(CONTACTS_TABLE), keys)
            if not result.is_success:
                return result
            for raw in result.data or []:
                contact = _from_item(raw, IntegrationContact, "contact_id")
                if contact.integration_id == integration_id:
                    found[contact.id] = contact
        return OperationResult.success(
            data=[found[cid] for cid in unique_ids if cid in found]
        )

    def save_integration(self, integration: Integration) -> OperationResult:
        result = self._put(INTEGRATIONS_TABLE, _to_item(integration, "integration_id"))
        return (
            OperationResult.success(data=integration.id) if result.is_success else result
        )

    def get_active_integration(self, integration_id: str) -> OperationResult:
        result = self._get(INTEGRATIONS_TABLE, "integration_id", integration_id)
        if not result.is_success:
            return result
        integration = _from_item(result.data, Integration, "integration_id")
        if not integration.is_active:
            return OperationResult.not_found(
                f"Active integration {integration_id} not found"
            )
        return OperationResult.success(data=integration)

    # Obligations

    def save_obligations(
        self, obligations: Sequence[NotificationObligation]
    ) -> OperationResult:
        """Insert obligations in one transaction; any existing id aborts it."""
        if not obligations:
            return OperationResult.success(data=[])
        table = self._table(OBLIGATIONS_TABLE)
        result = execute_aws_api_call(
            service_name="dynamodb",
            method="transact_write_items",
            TransactItems=[
                {
                    "Put": {
                        "TableName": table,
                        "Item": dynamodb.serialize(_obligation_item(o)),
                        "ConditionExpression": "attribute_not_exists(obligation_id)",
                    }
                }
                for o in obligations
            ],
        )
        if result.error_code == "TransactionCanceledException":
            return OperationResult.conflict(
                "An obligation for one of these stages already exists",
                error_code="DUPLICATE_OBLIGATION",
            )
        if not result.is_success:
            return result
        return OperationResult.success(data=[o.id for o in obligations])

    def replace_schedule(
        self, event_id: str, obligations: Sequence[NotificationObligation]
    ) -> OperationResult:
        """Delete the event's scheduled rows, then insert the new obligations.

        Rows that left ``scheduled`` (including ones claimed while this runs)
        are kept, and new obligations for their stages are skipped.
        """
        existing = self.list_obligations(event_id)
        if not existing.is_success:
            return existing

        table = self._table(OBLIGATIONS_TABLE)
        kept_stages = set()
        for obligation in existing.data:
            if obligation.status != ObligationStatus.SCHEDULED:
                kept_stages.add(obligation.timing_stage)
                continue
            deleted = dynamodb.delete_item(
                table_name=table,
                Key=dynamodb.serialize({"obligation_id": obligation.id}),
                ConditionExpression="#status = :scheduled",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues=dynamodb.serialize(
                    {":scheduled": ObligationStatus.SCHEDULED.value}
                ),
            )
            if deleted.status == OperationStatus.CONFLICT:
                kept_stages.add(obligation.timing_stage)
            elif not deleted.is_success:
                return deleted

        saved: List[str] = []
        for obligation in obligations:
            if obligation.timing_stage in kept_stages:
                continue
            result = self._put(
                OBLIGATIONS_TABLE,
                _obligation_item(obligation),
                ConditionExpression="attribute_not_exists(obligation_id)",
            )
            if result.status == OperationStatus.CONFLICT:
                continue
            if not result.is_success:
                return result
            saved.append(obligation.id)
        return OperationResult.success(data=saved)

    def list_obligations(self, event_id: str) -> OperationResult:
        result = self._query_event_index(OBLIGATIONS_TABLE, event_id)
        if not result.is_success:
            return result
        obligations = [
            _from_item(raw, NotificationObligation, "obligation_id")
            for raw in result.data or []
        ]
        obligations.sort(key=lambda o: o.scheduled_time)
        return OperationResult.success(data=obligations)

    def fetch_due(self, cutoff: datetime) -> OperationResult:
        result = dynamodb.query(
            table_name=self._table(OBLIGATIONS_TABLE),
            IndexName=DUE_INDEX,
            KeyConditionExpression="#status = :scheduled AND scheduled_ts <= :cutoff",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues=dynamodb.serialize(
                {
                    ":scheduled": ObligationStatus.SCHEDULED.value,
                    ":cutoff": ensure_utc(cutoff).timestamp(),
                }
            ),
            ScanIndexForward=True,
        )
        if not result.is_success:
            return result
        due = [
            _from_item(raw, NotificationObligation, "obligation_id")
            for raw in result.data or []
        ]
        due.sort(key=lambda o: o.scheduled_time)
        return OperationResult.success(data=due)

    def claim(self, obligation_id: str, now: Optional[datetime] = None) -> bool:
        result = dynamodb.update_item(
            table_name=self._table(OBLIGATIONS_TABLE),
            Key=dynamodb.serialize({"obligation_id": obligation_id}),
            UpdateExpression="SET #status = :sending, updated_at = :now",
            ConditionExpression="#status = :scheduled",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues=dynamodb.serialize(
                {
                    ":sending": ObligationStatus.SENDING.value,
                    ":scheduled": ObligationStatus.SCHEDULED.value,
                    ":now": _stamp(now),
                }
            ),
        )
        if result.is_success:
            return True
        if result.status == OperationStatus.CONFLICT:
            logger.debug("obligation_claim_lost", obligation_id=obligation_id)
        else:
            logger.error(
                "obligation_claim_failed",
                obligation_id=obligation_id,
                error=result.message,
                error_code=result.error_code,
            )
        return False

    def complete(
        self,
        obligation_id: str,
        status: ObligationStatus,
        recipients_count: int,
        sent_count: int,
        failed_count: int,
        error_details: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        if not status.is_terminal:
            return OperationResult.permanent_error(
                f"Cannot complete obligation with status {status.value}",
                error_code="INVALID_STATUS",
            )

        values: Dict[str, Any] = {
            ":status": status.value,
            ":sending": ObligationStatus.SENDING.value,
            ":recipients": recipients_count,
            ":sent": sent_count,
            ":failed": failed_count,
            ":now": _stamp(now),
        }
        update = (
            "SET #status = :status, recipients_count = :recipients, "
            "sent_count = :sent, failed_count = :failed, updated_at = :now"
        )
        if error_details is not None:
            update += ", error_details = :error_details"
            values[":error_details"] = error_details
        else:
            update += " REMOVE error_details"

        result = dynamodb.update_item(
            table_name=self._table(OBLIGATIONS_TABLE),
            Key=dynamodb.serialize({"obligation_id": obligation_id}),
            UpdateExpression=update,
            ConditionExpression="#status = :sending",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues=dynamodb.serialize(values),
        )
        if result.status == OperationStatus.CONFLICT:
            return OperationResult.conflict(
                f"Obligation {obligation_id} is not sending"
            )
        if not result.is_success:
            return result
        return OperationResult.success(data=obligation_id)

    # Outcome counters

    def record_integration_usage(
        self, log: IntegrationUsageLog, now: Optional[datetime] = None
    ) -> OperationResult:
        updated = dynamodb.update_item(
            table_name=self._table(INTEGRATIONS_TABLE),
            Key=dynamodb.serialize({"integration_id": log.integration_id}),
            UpdateExpression="ADD total_sent :count SET last_used_at = :now",
            ConditionExpression="attribute_exists(integration_id)",
            ExpressionAttributeValues=dynamodb.serialize(
                {":count": log.success_count, ":now": _stamp(now)}
            ),
        )
        if updated.status == OperationStatus.CONFLICT:
            return OperationResult.not_found(
                f"Integration {log.integration_id} not found"
            )
        if not updated.is_success:
            return updated

        result = self._put(USAGE_LOGS_TABLE, _to_item(log, "log_id"))
        return OperationResult.success(data=log.id) if result.is_success else result

    def increment_event_notifications_sent(
        self, event_id: str, count: int
    ) -> OperationResult:
        result = dynamodb.update_item(
            table_name=self._table(EVENTS_TABLE),
            Key=dynamodb.serialize({"event_id": event_id}),
            UpdateExpression="ADD notifications_sent :count",
            ConditionExpression="attribute_exists(event_id)",
            ExpressionAttributeValues=dynamodb.serialize({":count": count}),
            ReturnValues="UPDATED_NEW",
        )
        if result.status == OperationStatus.CONFLICT:
            return OperationResult.not_found(f"Event {event_id} not found")
        if not result.is_success:
            return result
        attributes = dynamodb.deserialize((result.data or {}).get("Attributes", {}))
        return OperationResult.success(data=attributes.get("notifications_sent"))
