"""
Publisher adapter over the SQL outbox used as the event bus
"""
import asyncio
import re
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import (JSON, Column, DateTime, Integer, MetaData, String,
                        Table, Text, insert)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from reminder.core.config import SQLEventConfig
from reminder.core.database import create_db_engine
from reminder.core.errors import PublishError
from reminder.core.logging_config import LoggingConfig
from reminder.services.messages import Message

logger = LoggingConfig.get_logger(__name__)


class Publisher(ABC):
    """Event bus as seen by the reminder"""

    @abstractmethod
    async def publish(self, topic: str, *messages: Message) -> None:
        """Enqueue messages; returning means they are durably stored"""

    @abstractmethod
    def close(self) -> None:
        """Release the bus connection; later calls are no-ops"""


class PostgreSQLSchema:
    """
    One outbox table per topic, laid out like watermill's default Postgres schema
    """

    TABLE_PREFIX = "watermill_"

    def __init__(self):
        self.metadata = MetaData()
        self._tables: Dict[str, Table] = {}

    def table_name(self, topic: str) -> str:
        return self.TABLE_PREFIX + re.sub(r"[^A-Za-z0-9_]", "_", topic)

    def table(self, topic: str) -> Table:
        name = self.table_name(topic)
        if name not in self._tables:
            self._tables[name] = Table(
                name,
                self.metadata,
                Column("offset", Integer, primary_key=True, autoincrement=True),
                Column("uuid", String(36), nullable=False),
                Column("created_at", DateTime(timezone=True), nullable=False),
                Column("payload", Text, nullable=True),
                Column("metadata", JSON, nullable=True),
            )
        return self._tables[name]


SCHEMA_ADAPTERS = {
    "postgres": PostgreSQLSchema,
}


class SQLPublisher(Publisher):
    """
    Writes messages into outbox tables in a single transaction per publish call
    """

    def __init__(
        self,
        engine: Engine,
        schema: Optional[PostgreSQLSchema] = None,
        auto_initialize_schema: bool = True
    ):
        self._engine = engine
        self._schema = schema or PostgreSQLSchema()
        self._auto_initialize_schema = auto_initialize_schema
        self._initialized_topics = set()
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def from_config(cls, config: SQLEventConfig) -> "SQLPublisher":
        """Construct the publisher and its engine from the events configuration"""
        engine = create_db_engine(config.connection)
        schema = SCHEMA_ADAPTERS[config.schema_adapter]()
        return cls(engine, schema=schema, auto_initialize_schema=config.auto_initialize_schema)

    @property
    def closed(self) -> bool:
        return self._closed

    async def publish(self, topic: str, *messages: Message) -> None:
        if not messages:
            return
        await asyncio.to_thread(self._publish, topic, list(messages))

    def _publish(self, topic: str, messages: List[Message]) -> None:
        # Held for the whole write so close() cannot dispose the engine under it
        with self._lock:
            if self._closed:
                raise PublishError("publisher is closed")
            self._write(topic, messages)

    def _write(self, topic: str, messages: List[Message]) -> None:
        table = self._schema.table(topic)
        created_at = datetime.now(timezone.utc)
        rows = [
            {
                "uuid": msg.uuid,
                "created_at": created_at,
                "payload": msg.payload.decode("utf-8"),
                "metadata": dict(msg.metadata),
            }
            for msg in messages
        ]

        try:
            self._ensure_table(topic, table)
            with self._engine.begin() as conn:
                conn.execute(insert(table), rows)
        except SQLAlchemyError as e:
            raise PublishError(f"error publishing {len(rows)} messages to {topic}: {e}") from e

        logger.debug(f"published {len(rows)} messages to {table.name}")

    def _ensure_table(self, topic: str, table: Table) -> None:
        if not self._auto_initialize_schema or topic in self._initialized_topics:
            return
        table.create(bind=self._engine, checkfirst=True)
        self._initialized_topics.add(topic)
        logger.info(f"initialized outbox table {table.name}")

    def close(self) -> None:
        """Close the publisher, waiting for a write that is already in progress"""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._engine.dispose()
        logger.info("event publisher closed")
