"""
DynamoDB-backed durable store for credential records.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import StorageSettings
from app.models.credentials import CredentialRecord
from app.services.errors import StoreError, StorePersistError

_TOKEN_PREFIX = "token#"
_IDENTITY_PREFIX = "identity#"
_SORT_KEY = "credential"
_LATEST_SORT_KEY = "latest"


def _identity_pk(provider_id: str, user_id: Optional[str]) -> str:
    return f"{_IDENTITY_PREFIX}{provider_id}#{user_id or ''}"


class DynamoDBCredentialRepository:
    """
    Credential records keyed by access token.

    Items use ``pk = token#<access_token>`` with a fixed sort key. Writes are
    conditional on the item not existing, so an access token is recorded at
    most once and a rotation always lands in a new partition.

    A second item per identity (``pk = identity#<provider_id>#<user_id>``,
    ``sk = latest``) mirrors the newest record so the current credential of a
    user can be read without a secondary index.
    """

    def __init__(self, settings: StorageSettings, *, table: Any | None = None) -> None:
        if table is None:
            if not settings.dynamodb_table_name:
                raise ValueError("DYNAMODB_TABLE_NAME must be configured.")
            resource = boto3.resource("dynamodb", region_name=settings.region_name)
            table = resource.Table(settings.dynamodb_table_name)
        self._table = table

    @staticmethod
    def _to_item(record: CredentialRecord) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            "pk": f"{_TOKEN_PREFIX}{record.access_token}",
            "sk": _SORT_KEY,
            "access_token": record.access_token,
            "refresh_token": record.refresh_token,
            "expires_at": record.expires_at.isoformat(),
            "provider_id": record.provider_id,
            "created_at": record.created_at.isoformat(),
        }
        if record.user_id is not None:
            item["user_id"] = record.user_id
        return item

    @staticmethod
    def _from_item(item: Dict[str, Any]) -> CredentialRecord:
        return CredentialRecord(
            access_token=item["access_token"],
            refresh_token=item["refresh_token"],
            expires_at=datetime.fromisoformat(item["expires_at"]),
            provider_id=item["provider_id"],
            user_id=item.get("user_id"),
            created_at=datetime.fromisoformat(item["created_at"]),
        )

    def create(self, record: CredentialRecord) -> None:
        """Put a new item, refusing to overwrite an existing access token."""
        item = self._to_item(record)
        try:
            self._table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(pk)",
            )
        except (ClientError, BotoCoreError) as exc:
            raise StorePersistError(str(exc)) from exc
        self._advance_identity(record, item)

    def _advance_identity(self, record: CredentialRecord, item: Dict[str, Any]) -> None:
        latest = dict(item, pk=_identity_pk(record.provider_id, record.user_id), sk=_LATEST_SORT_KEY)
        try:
            self._table.put_item(
                Item=latest,
                ConditionExpression="attribute_not_exists(pk) OR created_at <= :created_at",
                ExpressionAttributeValues={":created_at": item["created_at"]},
            )
        except ClientError as exc:
            # An older record never moves the pointer backwards.
            if exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return
            raise StorePersistError(str(exc)) from exc
        except BotoCoreError as exc:
            raise StorePersistError(str(exc)) from exc

    def find_latest(self, access_token: str) -> Optional[CredentialRecord]:
        """Query the token partition newest first."""
        try:
            response = self._table.query(
                KeyConditionExpression=Key("pk").eq(f"{_TOKEN_PREFIX}{access_token}"),
                ScanIndexForward=False,
                Limit=1,
            )
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(str(exc)) from exc
        items = response.get("Items", [])
        if not items:
            return None
        return self._from_item(items[0])

    def find_latest_for_identity(
        self, provider_id: str, user_id: Optional[str]
    ) -> Optional[CredentialRecord]:
        """Read the identity's mirror of its newest record."""
        try:
            response = self._table.get_item(
                Key={"pk": _identity_pk(provider_id, user_id), "sk": _LATEST_SORT_KEY},
                ConsistentRead=True,
            )
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(str(exc)) from exc
        item = response.get("Item")
        if not item:
            return None
        return self._from_item(item)


__all__ = ["DynamoDBCredentialRepository"]
