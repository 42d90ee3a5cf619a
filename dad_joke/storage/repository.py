"""
Repository pattern for data access.

Records generated jokes and maintains the per-day request counter.
"""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional

from .models import DailyCounter, JokeRecord, StatsSnapshot
from .tables import (
    EntityExists,
    EntityNotFound,
    ETagMismatch,
    StoreUnavailable,
    TableEntity,
    TableStore,
    TableStoreError,
    open_table_store,
)

logger = logging.getLogger(__name__)

COUNTER_TABLE = "JokeCounters"
COUNTER_PARTITION = "daily"
JOKE_TABLE = "JokeLog"
JOKE_PARTITION = "joke"

# Returned as requestCount whenever the counter could not be advanced
PLACEHOLDER_REQUEST_COUNT = 1

MAX_INCREMENT_ATTEMPTS = 3
RECENT_JOKES_LIMIT = 5

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MAX_MICROS = 10 ** 16 - 1


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def joke_row_key(created_at: datetime, record_id: str) -> str:
    """Row key whose ascending order is newest first."""
    micros = (created_at - _EPOCH) // timedelta(microseconds=1)
    return f"{_MAX_MICROS - micros:016d}_{record_id}"


class CounterConflict(TableStoreError):
    """Every conditional increment attempt lost to a concurrent writer."""


class UsageStore:
    """Joke log and daily counter on top of a table store.

    Every public operation degrades instead of raising: without a store,
    or when the store fails, jokes are still returned to callers with a
    placeholder count.
    """

    def __init__(
        self,
        table_store: Optional[TableStore] = None,
        clock: Callable[[], datetime] = utc_now,
        max_attempts: int = MAX_INCREMENT_ATTEMPTS,
    ):
        """Initialize the usage store.

        Args:
            table_store: Backing store, or None when storage is not configured
            clock: Source of the current UTC time
            max_attempts: Conditional update attempts before giving up
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.table_store = table_store
        self.clock = clock
        self.max_attempts = max_attempts
        self._initialized = False

    @property
    def available(self) -> bool:
        return self.table_store is not None

    def initialize(self) -> None:
        """Create the counter and joke tables if they don't exist.

        Raises:
            StoreUnavailable: If the store is not configured or unreachable
        """
        if self.table_store is None:
            raise StoreUnavailable("Table storage is not configured")
        self.table_store.create_table(COUNTER_TABLE)
        self.table_store.create_table(JOKE_TABLE)
        self._initialized = True

    def record_joke(self, text: str, keywords: Optional[str] = None) -> JokeRecord:
        """Append a joke to the log.

        The record is returned even when it could not be persisted.
        """
        record = JokeRecord(
            id=str(uuid.uuid4()),
            text=text,
            created_at=self.clock(),
            keywords=keywords,
        )
        if self.table_store is None:
            return record

        try:
            self._ensure_tables()
            self.table_store.create_entity(
                JOKE_TABLE,
                JOKE_PARTITION,
                joke_row_key(record.created_at, record.id),
                {
                    "id": record.id,
                    "text": record.text,
                    "keywords": record.keywords or "",
                    "createdAt": record.created_at.isoformat(),
                },
            )
        except TableStoreError as e:
            logger.warning("Failed to record joke %s: %s", record.id, e)
        return record

    def increment_daily_counter(self) -> int:
        """Increment today's counter and return the new count.

        Returns PLACEHOLDER_REQUEST_COUNT without touching the store when
        storage is not configured, when it fails, or when every attempt
        lost to a concurrent writer. In that last case the increment is
        lost and the day's count undercounts by one.
        """
        if self.table_store is None:
            return PLACEHOLDER_REQUEST_COUNT

        try:
            self._ensure_tables()
            return self._increment_or_create(self.clock())
        except CounterConflict as e:
            logger.warning("Daily counter increment lost: %s", e)
        except TableStoreError as e:
            logger.warning("Failed to update daily counter: %s", e)
        return PLACEHOLDER_REQUEST_COUNT

    def get_daily_counter(self, day: date) -> Optional[DailyCounter]:
        """Read one day's counter, or None if no joke was told that day."""
        if self.table_store is None:
            return None
        entity = self.table_store.get_entity(COUNTER_TABLE, COUNTER_PARTITION, day.isoformat())
        if entity is None:
            return None
        return self._to_counter(entity)

    def get_daily_counters(self) -> List[DailyCounter]:
        if self.table_store is None:
            return []
        entities = self.table_store.query_entities(COUNTER_TABLE, COUNTER_PARTITION)
        return [self._to_counter(entity) for entity in entities]

    def get_recent_jokes(self, limit: int = RECENT_JOKES_LIMIT) -> List[JokeRecord]:
        """Get recent jokes ordered newest first."""
        if self.table_store is None:
            return []
        entities = self.table_store.query_entities(JOKE_TABLE, JOKE_PARTITION, limit=limit)
        return [self._to_record(entity) for entity in entities]

    def query_stats(self) -> StatsSnapshot:
        """Get today's count, the running total and the latest jokes."""
        if self.table_store is None:
            return StatsSnapshot(available=False)

        try:
            self._ensure_tables()
            counters = self.get_daily_counters()
            today = self.clock().date()
            today_requests = sum(c.count for c in counters if c.day == today)
            return StatsSnapshot(
                total_requests=sum(c.count for c in counters),
                today_requests=today_requests,
                recent_jokes=self.get_recent_jokes(),
            )
        except TableStoreError as e:
            logger.warning("Failed to query usage stats: %s", e)
            return StatsSnapshot(available=False)

    def _ensure_tables(self) -> None:
        if not self._initialized:
            self.initialize()

    def _increment_or_create(self, now: datetime) -> int:
        row_key = now.date().isoformat()
        for attempt in range(1, self.max_attempts + 1):
            entity = self.table_store.get_entity(COUNTER_TABLE, COUNTER_PARTITION, row_key)
            try:
                if entity is None:
                    self.table_store.create_entity(
                        COUNTER_TABLE, COUNTER_PARTITION, row_key,
                        {"count": 1, "lastUpdated": now.isoformat()},
                    )
                    return 1

                count = int(entity.properties.get("count", 0)) + 1
                self.table_store.update_entity(
                    COUNTER_TABLE, COUNTER_PARTITION, row_key,
                    {"count": count, "lastUpdated": now.isoformat()},
                    etag=entity.etag,
                )
                return count
            except (EntityExists, EntityNotFound, ETagMismatch) as e:
                logger.info(
                    "Counter %s changed concurrently (attempt %d/%d): %s",
                    row_key, attempt, self.max_attempts, e,
                )
        raise CounterConflict(
            f"Counter {row_key} not updated after {self.max_attempts} attempts"
        )

    @staticmethod
    def _to_counter(entity: TableEntity) -> DailyCounter:
        props = entity.properties
        return DailyCounter(
            day=date.fromisoformat(entity.row_key),
            count=int(props.get("count", 0)),
            last_updated=datetime.fromisoformat(props["lastUpdated"]),
        )

    @staticmethod
    def _to_record(entity: TableEntity) -> JokeRecord:
        props = entity.properties
        return JokeRecord(
            id=props["id"],
            text=props["text"],
            created_at=datetime.fromisoformat(props["createdAt"]),
            keywords=props.get("keywords") or None,
        )


# Global store instance
_default_store: Optional[UsageStore] = None


def get_usage_store(connection: Optional[str] = None) -> UsageStore:
    """Get a usage store instance.

    This function provides a singleton instance of the UsageStore. An
    unparseable connection setting yields a store with no backend.

    Args:
        connection: Store connection setting

    Returns:
        An instance of UsageStore
    """
    global _default_store
    if _default_store is None:
        try:
            table_store = open_table_store(connection)
        except ValueError as e:
            logger.error("Invalid storage connection setting: %s", e)
            table_store = None
        _default_store = UsageStore(table_store)
    return _default_store


def reset_usage_store() -> None:
    global _default_store
    _default_store = None
