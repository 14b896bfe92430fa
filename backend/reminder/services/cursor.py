"""
Pagination position over the entity catalog
"""
from typing import Optional, Sequence
from uuid import UUID, uuid4

ZERO_UUID = UUID(int=0)


class Cursor:
    """
    Last entity id handed out in the current sweep

    The zero UUID means "start from the lowest id". Only the reminder loop
    touches a cursor, so it carries no locking.
    """

    def __init__(self, position: Optional[UUID] = None):
        self._position = position if position is not None else ZERO_UUID

    @classmethod
    def random(cls) -> "Cursor":
        """A cursor at a random position, so replicas starting together do not all begin at zero"""
        return cls(uuid4())

    @property
    def position(self) -> UUID:
        return self._position

    @property
    def is_zero(self) -> bool:
        return self._position == ZERO_UUID

    def advance(self, batch: Sequence) -> None:
        """Move to the id of the last entity in the batch (no-op for an empty batch)"""
        if batch:
            self._position = batch[-1].id

    def reset(self) -> None:
        self._position = ZERO_UUID

    def __repr__(self):
        return f"<Cursor(position={self._position})>"
