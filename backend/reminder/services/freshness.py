"""
Freshness filter: picks the entities whose oldest evaluation is past the threshold
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from reminder.services.store import Entity, Store

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def filter_eligible(
    store: Store,
    entities: Sequence[Entity],
    min_elapsed: timedelta,
    now: Optional[datetime] = None
) -> Tuple[List[Entity], Dict[UUID, datetime]]:
    """
    Keep the entities whose oldest evaluation is strictly before now - min_elapsed

    Args:
        store: Store used to look up evaluation timestamps
        entities: Batch to filter; its order is preserved in the result
        min_elapsed: Freshness threshold
        now: Reference time (defaults to the current UTC time)

    Returns:
        (eligible entities, entity id -> oldest evaluation time of each eligible entity)

    Entities that were never evaluated have no timestamp and are never eligible.
    Store errors propagate so the caller can drop the whole batch.
    """
    if not entities:
        return [], {}

    evaluations = await store.list_oldest_rule_evaluations_by_entity_id([e.id for e in entities])
    oldest = {ev.entity_id: ev.oldest_last_updated for ev in evaluations}

    cutoff = (now or utc_now()) - min_elapsed

    eligible = []
    last_updated = {}
    for entity in entities:
        ts = oldest.get(entity.id)
        if ts is not None and ts < cutoff:
            eligible.append(entity)
            last_updated[entity.id] = ts
    return eligible, last_updated
