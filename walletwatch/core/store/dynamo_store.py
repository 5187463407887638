"""DynamoDB implementation of the item store (single table, ``pk``/``sk`` string keys)."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from walletwatch.core.store.base import Item, ItemStore, Page
from walletwatch.core.utils.validation import StoreUnavailable

logger = logging.getLogger(__name__)


def to_dynamo(value: Any) -> Any:
    """boto3 rejects floats; send them as Decimal."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamo(v) for v in value]
    return value


def from_dynamo(value: Any) -> Any:
    """Turn boto3 Decimals back into ints/floats."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_dynamo(v) for v in value]
    return value


class DynamoItemStore(ItemStore):
    def __init__(
        self,
        table_name: str,
        *,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        table=None,
    ) -> None:
        self.table_name = table_name
        if table is None:
            resource = boto3.resource("dynamodb", region_name=region_name, endpoint_url=endpoint_url)
            table = resource.Table(table_name)
        self.table = table

    def get_item(self, pk: str, sk: str) -> Optional[Item]:
        try:
            response = self.table.get_item(Key={"pk": pk, "sk": sk})
        except (BotoCoreError, ClientError) as exc:
            logger.exception("DynamoDB get_item failed on %s", self.table_name)
            raise StoreUnavailable("item lookup failed") from exc
        item = response.get("Item")
        return from_dynamo(item) if item else None

    def put_item(self, item: Item) -> None:
        try:
            self.table.put_item(Item=to_dynamo(item))
        except (BotoCoreError, ClientError) as exc:
            logger.exception("DynamoDB put_item failed on %s", self.table_name)
            raise StoreUnavailable("item write failed") from exc

    def query_prefix(
        self,
        pk: str,
        sk_prefix: str,
        *,
        limit: int,
        descending: bool = True,
        start_key: Optional[Dict[str, str]] = None,
    ) -> Page:
        kwargs: Dict[str, Any] = {
            "KeyConditionExpression": Key("pk").eq(pk) & Key("sk").begins_with(sk_prefix),
            "ScanIndexForward": not descending,
            "Limit": limit,
        }
        if start_key:
            kwargs["ExclusiveStartKey"] = start_key
        try:
            response = self.table.query(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            logger.exception("DynamoDB query failed on %s", self.table_name)
            raise StoreUnavailable("prefix query failed") from exc
        items = [from_dynamo(item) for item in response.get("Items", [])]
        # DynamoDB may hand back a key on an exactly-full last page; the next
        # query then returns an empty page with no key.
        last_key = response.get("LastEvaluatedKey")
        return Page(items=items, last_key=from_dynamo(last_key) if last_key else None)

    def ensure_table(self) -> None:
        client = self.table.meta.client
        try:
            client.create_table(
                TableName=self.table_name,
                KeySchema=[
                    {"AttributeName": "pk", "KeyType": "HASH"},
                    {"AttributeName": "sk", "KeyType": "RANGE"},
                ],
                AttributeDefinitions=[
                    {"AttributeName": "pk", "AttributeType": "S"},
                    {"AttributeName": "sk", "AttributeType": "S"},
                ],
                BillingMode="PAY_PER_REQUEST",
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ResourceInUseException":
                return
            raise StoreUnavailable("table creation failed") from exc
        client.get_waiter("table_exists").wait(TableName=self.table_name)


__all__ = ["DynamoItemStore", "from_dynamo", "to_dynamo"]
