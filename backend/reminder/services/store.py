"""
Read-side store contract used by the reminder, plus its SQLAlchemy implementation
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Sequence
from uuid import UUID

from sqlalchemy import exists, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from reminder.core.errors import StoreError
from reminder.core.logging_config import LoggingConfig
from reminder.models import (EntityInstance, EntityType, EvaluationRuleEntity,
                             EvaluationStatus, LatestEvaluationStatus)

logger = LoggingConfig.get_logger(__name__)


@dataclass(frozen=True)
class Entity:
    """A registered entity as seen by the reminder"""
    id: UUID
    type: EntityType
    project_id: UUID
    provider_id: UUID
    name: str


@dataclass(frozen=True)
class OldestEvaluation:
    """Oldest of the latest rule evaluations recorded for an entity"""
    entity_id: UUID
    oldest_last_updated: datetime


class Store(ABC):
    """
    The store operations the reminder depends on

    Implementations must be safe to call from the event loop; blocking drivers
    should hand their work to a thread.
    """

    @abstractmethod
    async def list_entities_after_id(
        self,
        entity_type: EntityType,
        after_id: UUID,
        limit: int
    ) -> List[Entity]:
        """Entities of a type with id > after_id, ascending by id, at most `limit`"""

    @abstractmethod
    async def entity_exists_after_id(self, entity_type: EntityType, after_id: UUID) -> bool:
        """Whether any entity of the type has id > after_id"""

    @abstractmethod
    async def list_oldest_rule_evaluations_by_entity_id(
        self,
        entity_ids: Sequence[UUID]
    ) -> List[OldestEvaluation]:
        """Oldest evaluation per entity; entities never evaluated are omitted"""


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SQLAlchemyStore(Store):
    """Store backed by the evaluation history tables"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    async def list_entities_after_id(
        self,
        entity_type: EntityType,
        after_id: UUID,
        limit: int
    ) -> List[Entity]:
        return await self._run(self._list_entities_after_id, entity_type, after_id, limit)

    async def entity_exists_after_id(self, entity_type: EntityType, after_id: UUID) -> bool:
        return await self._run(self._entity_exists_after_id, entity_type, after_id)

    async def list_oldest_rule_evaluations_by_entity_id(
        self,
        entity_ids: Sequence[UUID]
    ) -> List[OldestEvaluation]:
        if not entity_ids:
            return []
        return await self._run(self._list_oldest_rule_evaluations, list(entity_ids))

    async def _run(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as e:
            raise StoreError(f"{fn.__name__.lstrip('_')}: {e}") from e

    def _list_entities_after_id(self, entity_type: EntityType, after_id: UUID, limit: int) -> List[Entity]:
        stmt = (
            select(EntityInstance)
            .where(EntityInstance.entity_type == entity_type.value)
            .where(EntityInstance.id > after_id)
            .order_by(EntityInstance.id)
            .limit(limit)
        )
        with self._session_factory() as session:
            rows = session.execute(stmt).scalars().all()
            return [
                Entity(
                    id=row.id,
                    type=EntityType(row.entity_type),
                    project_id=row.project_id,
                    provider_id=row.provider_id,
                    name=row.name,
                )
                for row in rows
            ]

    def _entity_exists_after_id(self, entity_type: EntityType, after_id: UUID) -> bool:
        stmt = select(
            exists()
            .where(EntityInstance.entity_type == entity_type.value)
            .where(EntityInstance.id > after_id)
        )
        with self._session_factory() as session:
            return bool(session.execute(stmt).scalar())

    def _list_oldest_rule_evaluations(self, entity_ids: List[UUID]) -> List[OldestEvaluation]:
        stmt = (
            select(
                EvaluationRuleEntity.entity_instance_id,
                func.min(EvaluationStatus.evaluation_time).label("oldest_last_updated"),
            )
            .join(LatestEvaluationStatus, LatestEvaluationStatus.rule_entity_id == EvaluationRuleEntity.id)
            .join(EvaluationStatus, EvaluationStatus.id == LatestEvaluationStatus.evaluation_history_id)
            .where(EvaluationRuleEntity.entity_instance_id.in_(entity_ids))
            .group_by(EvaluationRuleEntity.entity_instance_id)
        )
        with self._session_factory() as session:
            rows = session.execute(stmt).all()
            return [
                OldestEvaluation(entity_id=entity_id, oldest_last_updated=_as_utc(oldest))
                for entity_id, oldest in rows
                if oldest is not None
            ]
