"""
Entity instance model
"""
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, DateTime, Index, String, Uuid

from reminder.core.database import Base


class EntityType(str, Enum):
    """Entity types known to the evaluation platform"""
    REPOSITORY = "repository"
    ARTIFACT = "artifact"
    PULL_REQUEST = "pull_request"
    RELEASE = "release"
    PIPELINE_RUN = "pipeline_run"
    TASK_RUN = "task_run"
    BUILD = "build"


class EntityInstance(Base):
    """A registered entity; only repositories are swept by the reminder"""
    __tablename__ = "entity_instances"

    id = Column(Uuid, primary_key=True, default=uuid4)
    entity_type = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    project_id = Column(Uuid, nullable=False)
    provider_id = Column(Uuid, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index("idx_entity_instances_type_id", "entity_type", "id"),
    )

    def __repr__(self):
        return f"<EntityInstance(id={self.id}, type={self.entity_type}, name={self.name})>"
