"""
Domain building blocks

The reservation engine shares two base types across its apps:
- ValueObject: immutable data compared by value (money, stays, actors)
- DomainEvent: a fact about a booking, published once its transaction commits
"""

from abc import ABC
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4


@dataclass(frozen=True)
class ValueObject(ABC):
    """Immutable value without identity; equal when all attributes are equal."""


@dataclass
class DomainEvent:
    """
    Base class for booking events

    ``aggregate_id`` is the primary key of the booking the event is about.
    Subclasses add their payload as dataclass fields with defaults.
    """
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    aggregate_id: Optional[int] = None

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        """Flatten the event into log-friendly primitives."""
        payload = {'event_type': self.name}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None or isinstance(value, (bool, int, str)):
                payload[item.name] = value
            elif isinstance(value, datetime):
                payload[item.name] = value.isoformat()
            else:
                payload[item.name] = str(value)
        return payload
