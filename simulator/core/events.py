"""
Domain events

Immutable records produced by the elevator state machine and appended to the
event log. Ordered per car by a monotonically increasing sequence number.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class EventType(str, Enum):
    CALLED = "CALLED"
    MOVEMENT_STARTED = "MOVEMENT_STARTED"
    FLOOR_CHANGED = "FLOOR_CHANGED"
    ARRIVED = "ARRIVED"
    DOORS_OPENED = "DOORS_OPENED"
    DOORS_CLOSING = "DOORS_CLOSING"
    DOORS_CLOSED = "DOORS_CLOSED"
    MOVEMENT_FAILED = "MOVEMENT_FAILED"
    MAINTENANCE_STARTED = "MAINTENANCE_STARTED"
    MAINTENANCE_CLEARED = "MAINTENANCE_CLEARED"


@dataclass(frozen=True)
class DomainEvent:
    event_type: EventType
    car_id: str
    sequence: int
    timestamp: float
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def called(cls, car_id: str, sequence: int, from_floor: int, to_floor: int, timestamp: float) -> "DomainEvent":
        return cls(EventType.CALLED, car_id, sequence, timestamp,
                   {"from_floor": from_floor, "to_floor": to_floor})

    @classmethod
    def movement_started(cls, car_id: str, sequence: int, from_floor: int, to_floor: int,
                         direction: str, timestamp: float) -> "DomainEvent":
        return cls(EventType.MOVEMENT_STARTED, car_id, sequence, timestamp,
                   {"from_floor": from_floor, "to_floor": to_floor, "direction": direction})

    @classmethod
    def floor_changed(cls, car_id: str, sequence: int, floor: int, target_floor: int,
                      direction: str, timestamp: float) -> "DomainEvent":
        return cls(EventType.FLOOR_CHANGED, car_id, sequence, timestamp,
                   {"floor": floor, "target_floor": target_floor, "direction": direction})

    @classmethod
    def arrived(cls, car_id: str, sequence: int, floor: int, timestamp: float) -> "DomainEvent":
        return cls(EventType.ARRIVED, car_id, sequence, timestamp, {"floor": floor})

    def same_content(self, other: "DomainEvent") -> bool:
        """
        Whether two events describe the same fact, ignoring the timestamp.

        A step retried after a partial write recomputes its events later in
        simulation time; the log treats such a re-append as a duplicate.
        """
        return (self.event_type == other.event_type
                and self.car_id == other.car_id
                and self.sequence == other.sequence
                and self.data == other.data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eventType": self.event_type.value,
            "elevatorId": self.car_id,
            "sequenceNumber": self.sequence,
            "timestamp": self.timestamp,
            "payload": dict(self.data),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DomainEvent":
        return cls(
            event_type=EventType(data["eventType"]),
            car_id=data["elevatorId"],
            sequence=int(data["sequenceNumber"]),
            timestamp=float(data["timestamp"]),
            data=dict(data.get("payload", {})),
        )
