from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, AbstractSet, Dict, Optional, Sequence

import clickhouse_connect

from funnel_analytics.core.concurrency import run_blocking
from funnel_analytics.core.config import settings
from funnel_analytics.core.errors import AdapterQueryError
from funnel_analytics.core.logger import get_logger
from funnel_analytics.domain.events import EventRecord

from .base import EventStoreAdapter

logger = get_logger("event_store.clickhouse")


class ClickHouseEventStore(EventStoreAdapter):
    """Reads raw events from ClickHouse over the HTTP interface.

    Expected table:
      analytics_events(event_type String, timestamp DateTime64(3, 'UTC'),
                       user_id String, is_anonymous UInt8, properties String)
    """

    def __init__(self, client=None, table: str | None = None):
        self.client = client or clickhouse_connect.get_client(
            host=settings.clickhouse_host,
            port=settings.clickhouse_port,
            database=settings.clickhouse_db,
            username=settings.clickhouse_user,
            password=settings.clickhouse_password,
            interface="http",
        )
        self.table = table or settings.clickhouse_events_table

    async def query(
        self,
        start: datetime,
        end: datetime,
        kinds: Optional[AbstractSet[str]] = None,
    ) -> Sequence[EventRecord]:
        where_conditions = [
            "timestamp >= %(start_time)s",
            "timestamp <= %(end_time)s",
        ]
        params: Dict[str, Any] = {"start_time": start, "end_time": end}
        if kinds is not None:
            where_conditions.append("event_type IN %(kinds)s")
            params["kinds"] = sorted(kinds)

        query = f"""
        SELECT event_type, timestamp, user_id, is_anonymous, properties
        FROM {self.table}
        WHERE {' AND '.join(where_conditions)}
        ORDER BY timestamp ASC
        """

        try:
            result = await run_blocking(self.client.query, query, parameters=params)
        except Exception as e:
            logger.error(
                "Failed to query events",
                extra={"error": str(e), "start_time": start, "end_time": end},
            )
            raise AdapterQueryError(str(e)) from e

        events = [self._row_to_event(row) for row in result.result_rows]
        logger.debug(
            "Fetched events",
            extra={"count": len(events), "start_time": start, "end_time": end},
        )
        return events

    async def ping(self) -> bool:
        return bool(await run_blocking(self.client.ping))

    @staticmethod
    def _row_to_event(row) -> EventRecord:
        event_type, ts, user_id, is_anonymous, properties = row
        if isinstance(properties, str):
            try:
                properties = json.loads(properties) if properties else {}
            except json.JSONDecodeError:
                properties = {}
        elif properties is None:
            properties = {}
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return EventRecord(
            kind=str(event_type),
            timestamp=ts,
            user_id=str(user_id),
            is_anonymous=bool(is_anonymous),
            properties=properties,
        )

    def close(self):
        try:
            self.client.close()
        except Exception as e:
            logger.warning("Error closing ClickHouse client", extra={"error": str(e)})
