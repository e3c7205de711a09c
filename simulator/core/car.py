"""
Car snapshot

Materialized view of one elevator car as kept in the state store.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


class Mode(str, Enum):
    """Discrete operating state of a car"""
    IDLE = "IDLE"
    MOVING = "MOVING"
    DOORS_OPENING = "DOORS_OPENING"
    DOORS_OPEN = "DOORS_OPEN"
    DOORS_CLOSING = "DOORS_CLOSING"
    MAINTENANCE = "MAINTENANCE"


class Direction(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    IDLE = "IDLE"

    @classmethod
    def between(cls, from_floor: int, to_floor: int) -> "Direction":
        """Direction of travel from one floor to another"""
        if to_floor > from_floor:
            return cls.UP
        if to_floor < from_floor:
            return cls.DOWN
        return cls.IDLE

    @property
    def step(self) -> int:
        """Floor increment for one movement step"""
        if self is Direction.UP:
            return 1
        if self is Direction.DOWN:
            return -1
        return 0


DOOR_MODES = (Mode.DOORS_OPENING, Mode.DOORS_OPEN, Mode.DOORS_CLOSING)
IN_MOTION_MODES = (Mode.MOVING,) + DOOR_MODES


@dataclass
class CarSnapshot:
    """
    Current state of a car

    Attributes:
        car_id: Opaque identifier, stable for the car's lifetime
        current_floor: Floor the car is at (or last passed while moving)
        mode: Operating mode
        direction: Travel direction (IDLE unless MOVING)
        target_floor: Floor being travelled to; set only while MOVING
        pending_stops: Floors still to be served, FIFO, without duplicates
        sequence: Sequence number of the last event emitted for this car
        created_at: Simulation time the car was provisioned
        updated_at: Simulation time of the last transition
        lease_owner: Job currently allowed to mutate the car (None if free)
        lease_expires_at: Simulation time the lease lapses
    """
    car_id: str
    current_floor: int = 0
    mode: Mode = Mode.IDLE
    direction: Direction = Direction.IDLE
    target_floor: Optional[int] = None
    pending_stops: List[int] = field(default_factory=list)
    sequence: int = 0
    created_at: float = 0.0
    updated_at: float = 0.0
    lease_owner: Optional[str] = None
    lease_expires_at: Optional[float] = None

    @property
    def is_idle(self) -> bool:
        return self.mode == Mode.IDLE

    @property
    def is_moving(self) -> bool:
        return self.mode == Mode.MOVING

    @property
    def in_motion(self) -> bool:
        """True while the car is travelling or cycling its doors"""
        return self.mode in IN_MOTION_MODES

    def has_lease(self, now: float) -> bool:
        """Whether some owner holds an unexpired lease at `now`"""
        if self.lease_owner is None:
            return False
        return self.lease_expires_at is None or self.lease_expires_at > now

    def copy(self, **changes) -> "CarSnapshot":
        """Return an independent copy, optionally with changed attributes"""
        changes.setdefault("pending_stops", list(self.pending_stops))
        return replace(self, **changes)

    def invariant_violations(self) -> List[str]:
        """List the car invariants this snapshot breaks (empty when consistent)"""
        violations = []
        if (self.target_floor is not None) != (self.mode == Mode.MOVING):
            violations.append(
                f"target_floor={self.target_floor} inconsistent with mode={self.mode.value}")
        if self.mode == Mode.MOVING and self.direction == Direction.IDLE:
            violations.append("MOVING car has direction IDLE")
        if self.mode != Mode.MOVING and self.direction != Direction.IDLE:
            violations.append(
                f"direction={self.direction.value} while mode={self.mode.value}")
        if len(set(self.pending_stops)) != len(self.pending_stops):
            violations.append(f"duplicate pending stops {self.pending_stops}")
        return violations

    def to_status(self) -> Dict[str, Any]:
        """Public status view (no lease bookkeeping)"""
        return {
            "elevatorId": self.car_id,
            "currentFloor": self.current_floor,
            "state": self.mode.value,
            "direction": self.direction.value,
            "targetFloor": self.target_floor,
            "pendingStops": list(self.pending_stops),
            "isMoving": self.mode == Mode.MOVING,
            "sequence": self.sequence,
            "lastUpdated": self.updated_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for storage"""
        return {
            "car_id": self.car_id,
            "current_floor": self.current_floor,
            "mode": self.mode.value,
            "direction": self.direction.value,
            "target_floor": self.target_floor,
            "pending_stops": list(self.pending_stops),
            "sequence": self.sequence,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "lease_owner": self.lease_owner,
            "lease_expires_at": self.lease_expires_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CarSnapshot":
        """Create CarSnapshot from a stored dictionary"""
        target = data.get("target_floor")
        return cls(
            car_id=data["car_id"],
            current_floor=int(data.get("current_floor", 0)),
            mode=Mode(data.get("mode", Mode.IDLE.value)),
            direction=Direction(data.get("direction", Direction.IDLE.value)),
            target_floor=int(target) if target is not None else None,
            pending_stops=[int(floor) for floor in data.get("pending_stops", [])],
            sequence=int(data.get("sequence", 0)),
            created_at=float(data.get("created_at", 0.0)),
            updated_at=float(data.get("updated_at", 0.0)),
            lease_owner=data.get("lease_owner"),
            lease_expires_at=data.get("lease_expires_at"),
        )
