"""
Tests for the SQLAlchemy store against in-memory SQLite
"""
from datetime import timedelta

import pytest
from sqlalchemy import text

from reminder.core.errors import StoreError
from reminder.models import (EntityInstance, EntityType, EvaluationRuleEntity,
                             EvaluationStatus, LatestEvaluationStatus)
from reminder.services.cursor import ZERO_UUID
from reminder.services.store import SQLAlchemyStore

from fakes import NOW, uuid_from_num


def add_entity(session, num, entity_type=EntityType.REPOSITORY):
    entity = EntityInstance(
        id=uuid_from_num(num),
        entity_type=entity_type.value,
        name=f"entity-{num}",
        project_id=uuid_from_num(1000),
        provider_id=uuid_from_num(2000),
    )
    session.add(entity)
    return entity


def add_evaluation(session, entity, evaluated_at, latest=True):
    """Record an evaluation of a new rule against the entity"""
    rule_entity = EvaluationRuleEntity(
        rule_id=uuid_from_num(9000),
        entity_type=entity.entity_type,
        entity_instance_id=entity.id,
    )
    session.add(rule_entity)
    session.flush()
    return add_status(session, rule_entity, evaluated_at, latest=latest)


def add_status(session, rule_entity, evaluated_at, latest=True):
    status = EvaluationStatus(
        rule_entity_id=rule_entity.id,
        status="success",
        evaluation_time=evaluated_at,
    )
    session.add(status)
    session.flush()
    if latest:
        session.merge(LatestEvaluationStatus(rule_entity_id=rule_entity.id, evaluation_history_id=status.id))
    return status


@pytest.fixture
def store(session_factory):
    return SQLAlchemyStore(session_factory)


@pytest.fixture
def catalog(session_factory):
    """Five repositories and one artifact"""
    with session_factory() as session:
        for num in range(1, 6):
            add_entity(session, num)
        add_entity(session, 3000, EntityType.ARTIFACT)
        session.commit()


@pytest.mark.asyncio
async def test_list_entities_after_id_is_ordered_and_limited(store, catalog):
    entities = await store.list_entities_after_id(EntityType.REPOSITORY, ZERO_UUID, 3)

    assert [e.id for e in entities] == [uuid_from_num(n) for n in (1, 2, 3)]
    assert entities[0].type is EntityType.REPOSITORY
    assert entities[0].project_id == uuid_from_num(1000)
    assert entities[0].provider_id == uuid_from_num(2000)


@pytest.mark.asyncio
async def test_list_entities_after_id_is_exclusive(store, catalog):
    entities = await store.list_entities_after_id(EntityType.REPOSITORY, uuid_from_num(3), 10)

    assert [e.id for e in entities] == [uuid_from_num(4), uuid_from_num(5)]


@pytest.mark.asyncio
async def test_list_entities_filters_by_type(store, catalog):
    entities = await store.list_entities_after_id(EntityType.REPOSITORY, uuid_from_num(5), 10)
    artifacts = await store.list_entities_after_id(EntityType.ARTIFACT, ZERO_UUID, 10)

    assert entities == []
    assert [e.id for e in artifacts] == [uuid_from_num(3000)]


@pytest.mark.asyncio
async def test_entity_exists_after_id(store, catalog):
    assert await store.entity_exists_after_id(EntityType.REPOSITORY, uuid_from_num(4))
    assert not await store.entity_exists_after_id(EntityType.REPOSITORY, uuid_from_num(5))


@pytest.mark.asyncio
async def test_oldest_evaluation_is_minimum_over_latest_statuses(store, session_factory):
    with session_factory() as session:
        entity = add_entity(session, 1)
        session.flush()
        add_evaluation(session, entity, NOW - timedelta(hours=1))
        add_evaluation(session, entity, NOW - timedelta(hours=3))
        session.commit()

    result = await store.list_oldest_rule_evaluations_by_entity_id([uuid_from_num(1)])

    assert len(result) == 1
    assert result[0].entity_id == uuid_from_num(1)
    assert result[0].oldest_last_updated == NOW - timedelta(hours=3)


@pytest.mark.asyncio
async def test_superseded_evaluations_are_ignored(store, session_factory):
    with session_factory() as session:
        entity = add_entity(session, 1)
        session.flush()
        rule_entity = EvaluationRuleEntity(
            rule_id=uuid_from_num(9000),
            entity_type=entity.entity_type,
            entity_instance_id=entity.id,
        )
        session.add(rule_entity)
        session.flush()
        add_status(session, rule_entity, NOW - timedelta(days=2), latest=False)
        add_status(session, rule_entity, NOW - timedelta(minutes=10))
        session.commit()

    result = await store.list_oldest_rule_evaluations_by_entity_id([uuid_from_num(1)])

    assert result[0].oldest_last_updated == NOW - timedelta(minutes=10)


@pytest.mark.asyncio
async def test_entities_without_evaluations_are_omitted(store, session_factory):
    with session_factory() as session:
        evaluated = add_entity(session, 1)
        add_entity(session, 2)
        session.flush()
        add_evaluation(session, evaluated, NOW - timedelta(hours=2))
        session.commit()

    result = await store.list_oldest_rule_evaluations_by_entity_id([uuid_from_num(1), uuid_from_num(2)])

    assert [r.entity_id for r in result] == [uuid_from_num(1)]
    assert result[0].oldest_last_updated.tzinfo is not None


@pytest.mark.asyncio
async def test_oldest_evaluations_for_no_ids(store):
    assert await store.list_oldest_rule_evaluations_by_entity_id([]) == []


@pytest.mark.asyncio
async def test_database_errors_become_store_errors(store, sqlite_engine):
    with sqlite_engine.begin() as conn:
        conn.execute(text("DROP TABLE entity_instances"))

    with pytest.raises(StoreError):
        await store.list_entities_after_id(EntityType.REPOSITORY, ZERO_UUID, 10)
