"""
Reminder message factory
"""
from dataclasses import dataclass, field
from typing import Dict
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from reminder.services.store import Entity

# Topic the evaluation pipeline subscribes to for repository reminders
REPO_REMINDER_TOPIC = "repo.reminder"


class ReminderMessage(BaseModel):
    """
    Wire payload of a reminder

    Serialized as compact JSON with the fields in declaration order:
    {"project":"<uuid>","provider":"<uuid>","entity_id":"<uuid>"}
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    project: UUID
    provider_id: UUID = Field(alias="provider")
    entity_id: UUID

    def to_json(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_json(cls, payload: bytes) -> "ReminderMessage":
        return cls.model_validate_json(payload)


@dataclass
class Message:
    """A bus message: unique id, opaque payload and string metadata"""
    uuid: str
    payload: bytes
    metadata: Dict[str, str] = field(default_factory=dict)


def new_repo_reminder_message(entity: Entity) -> Message:
    """Build the reminder message for a repository with a fresh correlation id"""
    body = ReminderMessage(
        project=entity.project_id,
        provider_id=entity.provider_id,
        entity_id=entity.id,
    )
    return Message(uuid=str(uuid4()), payload=body.to_json())
