"""
Batch fetcher: pulls the next page of repositories and moves the cursor
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List
from uuid import UUID

from reminder.core.logging_config import LoggingConfig
from reminder.models import EntityType
from reminder.services.cursor import Cursor
from reminder.services.freshness import Clock, filter_eligible, utc_now
from reminder.services.store import Entity, Store

logger = LoggingConfig.get_logger(__name__)


@dataclass
class Batch:
    """Result of one fetch"""
    entities: List[Entity] = field(default_factory=list)
    eligible: List[Entity] = field(default_factory=list)
    last_updated: Dict[UUID, datetime] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=utc_now)


class BatchFetcher:
    """
    Reads up to `batch_size` repositories after the cursor and filters them

    The cursor only moves once the batch has been filtered, so a failing store
    call leaves it in place and the next tick retries the same range.
    """

    def __init__(
        self,
        store: Store,
        cursor: Cursor,
        batch_size: int,
        min_elapsed: timedelta,
        clock: Clock = utc_now
    ):
        self.store = store
        self.cursor = cursor
        self.batch_size = batch_size
        self.min_elapsed = min_elapsed
        self.clock = clock

    async def next_batch(self) -> Batch:
        entities = await self.store.list_entities_after_id(
            EntityType.REPOSITORY,
            self.cursor.position,
            self.batch_size,
        )
        logger.debug(f"fetched {len(entities)} repositories after {self.cursor.position}")

        now = self.clock()
        eligible, last_updated = await filter_eligible(self.store, entities, self.min_elapsed, now=now)

        await self._update_cursor(entities)

        return Batch(entities=entities, eligible=eligible, last_updated=last_updated, fetched_at=now)

    async def _update_cursor(self, entities: List[Entity]) -> None:
        if not entities:
            logger.debug("no repositories after cursor, resetting")
            self.cursor.reset()
            return

        self.cursor.advance(entities)

        try:
            more = await self.store.entity_exists_after_id(EntityType.REPOSITORY, self.cursor.position)
        except Exception as e:
            logger.error(f"error checking for repositories after cursor, resetting: {e}")
            self.cursor.reset()
            return

        if not more:
            logger.debug("reached end of repository catalog, resetting cursor")
            self.cursor.reset()
        else:
            logger.debug(f"cursor advanced to {self.cursor.position}")
