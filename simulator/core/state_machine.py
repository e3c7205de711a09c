"""
Elevator State Machine

Pure transition logic for a single car:

    IDLE -> MOVING -> DOORS_OPENING -> DOORS_OPEN -> DOORS_CLOSING -> IDLE
    any  -> MAINTENANCE (left only through clear_maintenance)

Every operation takes a snapshot and the current simulation time and returns
a Transition holding the next snapshot and the events it emits. The input
snapshot is never modified and no I/O happens here; persisting the result is
the caller's job (see MovementScheduler.commit).
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .car import CarSnapshot, Direction, Mode, DOOR_MODES
from .events import DomainEvent, EventType
from .exceptions import CarUnavailable, InvalidTransitionError, ValidationError

# door mode -> (next mode, event logged for the step)
_DOOR_STEPS = {
    Mode.DOORS_OPENING: (Mode.DOORS_OPEN, EventType.DOORS_OPENED),
    Mode.DOORS_OPEN: (Mode.DOORS_CLOSING, EventType.DOORS_CLOSING),
    Mode.DOORS_CLOSING: (Mode.IDLE, EventType.DOORS_CLOSED),
}


@dataclass
class Transition:
    """Result of applying one state machine operation"""
    snapshot: CarSnapshot
    events: List[DomainEvent] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.events)

    @property
    def movement_started(self) -> Optional[DomainEvent]:
        """The MOVEMENT_STARTED event of this transition, if any"""
        for event in self.events:
            if event.event_type == EventType.MOVEMENT_STARTED:
                return event
        return None

    @property
    def arrival(self) -> Optional[DomainEvent]:
        for event in self.events:
            if event.event_type == EventType.ARRIVED:
                return event
        return None

    def then(self, follow_up: "Transition") -> "Transition":
        """Chain a transition computed from this one's snapshot"""
        return Transition(follow_up.snapshot, self.events + follow_up.events)


class ElevatorStateMachine:
    """
    Stateless transition functions for elevator cars

    Args:
        min_floor: Lowest valid floor (inclusive)
        max_floor: Highest valid floor (inclusive)
    """

    def __init__(self, min_floor: int = 0, max_floor: int = 100):
        if min_floor >= max_floor:
            raise ValueError("min_floor must be below max_floor")
        self.min_floor = min_floor
        self.max_floor = max_floor

    # --- Validation ---

    def validate_floor(self, floor, name: str = "floor") -> int:
        if isinstance(floor, bool) or not isinstance(floor, int):
            raise ValidationError(f"{name} must be an integer, got {floor!r}")
        if not (self.min_floor <= floor <= self.max_floor):
            raise ValidationError(
                f"Invalid {name}: {floor}. Must be between {self.min_floor}-{self.max_floor}")
        return floor

    def validate_call(self, from_floor, to_floor):
        """Reject a call before any state is touched"""
        self.validate_floor(from_floor, "fromFloor")
        self.validate_floor(to_floor, "toFloor")
        if from_floor == to_floor:
            raise ValidationError(f"fromFloor and toFloor must differ (both {from_floor})")

    # --- Operations ---

    def create_car(self, car_id: str, floor: int, now: float) -> CarSnapshot:
        if not car_id or not isinstance(car_id, str):
            raise ValidationError("Elevator ID must be a non-empty string")
        self.validate_floor(floor, "initialFloor")
        return CarSnapshot(car_id=car_id, current_floor=floor, created_at=now, updated_at=now)

    def call(self, car: CarSnapshot, from_floor: int, to_floor: int, now: float) -> Transition:
        """
        Register a call on the car.

        Both floors are queued as stops (skipping floors already queued) and a
        CALLED event is emitted. An idle car is dispatched immediately.

        Raises:
            ValidationError: Invalid floors
            CarUnavailable: Car is in maintenance
        """
        self.validate_call(from_floor, to_floor)
        if car.mode == Mode.MAINTENANCE:
            raise CarUnavailable(car.car_id)

        car = car.copy(updated_at=now)
        for floor in (from_floor, to_floor):
            if floor not in car.pending_stops:
                car.pending_stops.append(floor)
        events = [self._emit(car, lambda seq: DomainEvent.called(car.car_id, seq, from_floor, to_floor, now))]

        transition = Transition(car, events)
        if car.mode == Mode.IDLE:
            transition = transition.then(self.dispatch_next(car, now))
        return transition

    def dispatch_next(self, car: CarSnapshot, now: float) -> Transition:
        """
        Start travelling to the next pending stop.

        No-op unless the car is IDLE with pending stops. A stop equal to the
        current floor is discarded without a transition and the following
        stop is considered.
        """
        if car.mode != Mode.IDLE or not car.pending_stops:
            return Transition(car)

        car = car.copy()
        while car.pending_stops:
            stop = car.pending_stops.pop(0)
            car.updated_at = now
            if stop == car.current_floor:
                car.direction = Direction.IDLE
                continue

            car.direction = Direction.between(car.current_floor, stop)
            car.target_floor = stop
            car.mode = Mode.MOVING
            event = self._emit(car, lambda seq: DomainEvent.movement_started(
                car.car_id, seq, car.current_floor, stop, car.direction.value, now))
            return Transition(car, [event])
        return Transition(car)

    def advance_one_floor(self, car: CarSnapshot, now: float) -> Transition:
        """
        Move the car one floor toward its target.

        Every floor passed emits FLOOR_CHANGED. On reaching the target the
        car starts opening its doors and ARRIVED is emitted instead.

        Raises:
            InvalidTransitionError: Car is not MOVING
        """
        if car.mode != Mode.MOVING or car.target_floor is None:
            raise InvalidTransitionError(
                f"Car {car.car_id} cannot advance while {car.mode.value}")

        car = car.copy(updated_at=now)
        car.current_floor += car.direction.step
        if car.current_floor != car.target_floor:
            event = self._emit(car, lambda seq: DomainEvent.floor_changed(
                car.car_id, seq, car.current_floor, car.target_floor, car.direction.value, now))
            return Transition(car, [event])

        car.mode = Mode.DOORS_OPENING
        car.direction = Direction.IDLE
        car.target_floor = None
        event = self._emit(car, lambda seq: DomainEvent.arrived(car.car_id, seq, car.current_floor, now))
        return Transition(car, [event])

    def advance_door(self, car: CarSnapshot, now: float) -> Transition:
        """
        Apply one door sub-phase and log it (DOORS_OPENED, DOORS_CLOSING,
        DOORS_CLOSED). Closed doors hand over to dispatch_next.
        """
        if car.mode not in DOOR_MODES:
            raise InvalidTransitionError(
                f"Car {car.car_id} has no door cycle in progress ({car.mode.value})")

        next_mode, event_type = _DOOR_STEPS[car.mode]
        car = car.copy(mode=next_mode, updated_at=now)
        event = self._emit(car, lambda seq: DomainEvent(
            event_type, car.car_id, seq, now, {"floor": car.current_floor}))
        transition = Transition(car, [event])
        if next_mode == Mode.IDLE:
            transition = transition.then(self.dispatch_next(car, now))
        return transition

    def door_cycle_complete(self, car: CarSnapshot, now: float) -> Transition:
        """Run the remaining door phases back to back"""
        transition = Transition(car)
        while transition.snapshot.mode in DOOR_MODES:
            transition = transition.then(self.advance_door(transition.snapshot, now))
        return transition

    def enter_maintenance(self, car: CarSnapshot, now: float) -> Transition:
        if car.mode == Mode.MAINTENANCE:
            return Transition(car)
        previous = car.mode
        car = car.copy(mode=Mode.MAINTENANCE, direction=Direction.IDLE,
                       target_floor=None, updated_at=now)
        event = self._emit(car, lambda seq: DomainEvent(
            EventType.MAINTENANCE_STARTED, car.car_id, seq, now,
            {"floor": car.current_floor, "previous_mode": previous.value}))
        return Transition(car, [event])

    def clear_maintenance(self, car: CarSnapshot, now: float) -> Transition:
        if car.mode != Mode.MAINTENANCE:
            raise InvalidTransitionError(f"Car {car.car_id} is not under maintenance")
        car = car.copy(mode=Mode.IDLE, updated_at=now)
        event = self._emit(car, lambda seq: DomainEvent(
            EventType.MAINTENANCE_CLEARED, car.car_id, seq, now, {"floor": car.current_floor}))
        return Transition(car, [event]).then(self.dispatch_next(car, now))

    def force_idle(self, car: CarSnapshot, now: float, reason: str) -> Transition:
        """
        Fail-safe after a failed movement job.

        The car stops reporting motion; pending stops are kept for the next
        dispatch. A car already in maintenance stays there.
        """
        mode = Mode.MAINTENANCE if car.mode == Mode.MAINTENANCE else Mode.IDLE
        abandoned_target = car.target_floor
        car = car.copy(mode=mode, direction=Direction.IDLE, target_floor=None, updated_at=now)
        event = self._emit(car, lambda seq: DomainEvent(
            EventType.MOVEMENT_FAILED, car.car_id, seq, now,
            {"floor": car.current_floor, "target_floor": abandoned_target, "reason": reason}))
        return Transition(car, [event])

    @staticmethod
    def _emit(car: CarSnapshot, build) -> DomainEvent:
        """Allocate the car's next sequence number and build the event with it"""
        car.sequence += 1
        return build(car.sequence)
