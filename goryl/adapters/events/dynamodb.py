"""DynamoDB event store adapter."""

import asyncio
import logging
import uuid
from datetime import datetime
from decimal import Decimal
from functools import partial
from typing import Any

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from goryl.adapters.clock import as_utc
from goryl.domain.entities import InteractionEvent, InteractionType
from goryl.domain.errors import UpstreamUnavailable
from goryl.ports.event_store import EventStorePort, check_query_target

logger = logging.getLogger(__name__)

USER_INDEX = "userId-timestamp-index"
ITEM_INDEX = "itemId-timestamp-index"


class DynamoEventStore(EventStorePort):
    """
    Store interactions in a DynamoDB table.

    Expected layout: partition key ``pk`` (``USER#<id>#<ts>#<item>#<uuid>``) with two
    global secondary indexes, one on ``userId``/``timestamp`` and one on
    ``itemId``/``timestamp``. Timestamps are ISO-8601 strings so range
    queries sort lexicographically.
    """

    def __init__(
        self,
        table_name: str,
        region: str,
        endpoint_url: str | None = None,
        table: Any | None = None,
    ) -> None:
        if table is None:
            resource = boto3.resource(
                "dynamodb", region_name=region, endpoint_url=endpoint_url
            )
            table = resource.Table(table_name)
        self._table = table
        logger.info("DynamoEventStore initialized: table=%s, region=%s", table_name, region)

    async def _call(self, fn, **kwargs) -> dict:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(fn, **kwargs))
        except (ClientError, BotoCoreError) as exc:
            logger.error("DynamoDB call failed: %s", exc)
            raise UpstreamUnavailable("DynamoDB event store unavailable") from exc

    async def append_interaction(self, event: InteractionEvent) -> None:
        ts = event.timestamp.isoformat()
        item = {
            "pk": f"USER#{event.user_id}#{ts}#{event.item_id}#{uuid.uuid4().hex}",
            "userId": event.user_id,
            "itemId": event.item_id,
            "type": event.type.value,
            "weight": Decimal(str(event.weight)),
            "timestamp": ts,
        }
        if event.category:
            item["category"] = event.category
        await self._call(
            self._table.put_item,
            Item=item,
            ConditionExpression="attribute_not_exists(pk)",
        )
        logger.debug("Put interaction %s", item["pk"])

    async def query_interactions(
        self,
        user_id: str | None = None,
        item_id: str | None = None,
        since: datetime | None = None,
    ) -> list[InteractionEvent]:
        check_query_target(user_id, item_id)
        if user_id is not None:
            index, condition = USER_INDEX, Key("userId").eq(user_id)
        else:
            index, condition = ITEM_INDEX, Key("itemId").eq(item_id)
        if since is not None:
            condition = condition & Key("timestamp").gte(as_utc(since).isoformat())

        kwargs: dict[str, Any] = {
            "IndexName": index,
            "KeyConditionExpression": condition,
            "ScanIndexForward": True,
        }
        rows: list[dict] = []
        while True:
            resp = await self._call(self._table.query, **kwargs)
            rows.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key

        return [
            InteractionEvent(
                user_id=row["userId"],
                item_id=row["itemId"],
                type=InteractionType(row["type"]),
                weight=float(row["weight"]),
                timestamp=as_utc(datetime.fromisoformat(row["timestamp"])),
                category=row.get("category"),
            )
            for row in rows
        ]
