"""
Rule evaluation history models

Only the columns needed to find the oldest latest-evaluation per entity are mapped.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from reminder.core.database import Base


class EvaluationRuleEntity(Base):
    """Pairs a rule instance with the entity it is evaluated against"""
    __tablename__ = "evaluation_rule_entities"

    id = Column(Uuid, primary_key=True, default=uuid4)
    rule_id = Column(Uuid, nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_instance_id = Column(
        Uuid, ForeignKey("entity_instances.id", ondelete="CASCADE"), nullable=False, index=True
    )

    statuses = relationship("EvaluationStatus", back_populates="rule_entity", cascade="all, delete-orphan")


class EvaluationStatus(Base):
    """One evaluation outcome in the history"""
    __tablename__ = "evaluation_statuses"

    id = Column(Uuid, primary_key=True, default=uuid4)
    rule_entity_id = Column(
        Uuid, ForeignKey("evaluation_rule_entities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(20), nullable=False)
    details = Column(Text, nullable=True)
    evaluation_time = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    rule_entity = relationship("EvaluationRuleEntity", back_populates="statuses")


class LatestEvaluationStatus(Base):
    """Points each rule/entity pair at its most recent evaluation"""
    __tablename__ = "latest_evaluation_statuses"

    rule_entity_id = Column(
        Uuid, ForeignKey("evaluation_rule_entities.id", ondelete="CASCADE"), primary_key=True
    )
    evaluation_history_id = Column(
        Uuid, ForeignKey("evaluation_statuses.id", ondelete="CASCADE"), nullable=False
    )
    profile_id = Column(Uuid, nullable=True)
