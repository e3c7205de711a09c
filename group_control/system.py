import logging
import uuid
from typing import Any, Dict, List, Optional, Union

import simpy

from simulator.core.car import CarSnapshot
from simulator.core.events import DomainEvent
from simulator.core.exceptions import CarNotFound, ValidationError
from simulator.core.state_machine import ElevatorStateMachine, Transition
from simulator.interfaces.event_log import IEventLog
from simulator.interfaces.publisher import IPublisher
from simulator.interfaces.state_store import IStateStore
from simulator.scheduler.movement_scheduler import MovementScheduler

from .assignment import AssignmentSelector
from .interfaces.allocation_strategy import IAllocationStrategy

logger = logging.getLogger(__name__)


class GroupControlSystem:
    """
    External operations of the dispatch engine

    This is a controller, not a simulated entity. Every operation is a
    synchronous call executed inside one SimPy step; writes go through the
    scheduler's commit() so the event log, the store and subscribers stay in
    step, and movement is handed to the scheduler as jobs.
    """

    def __init__(self, name: str, env: simpy.Environment, store: IStateStore,
                 event_log: IEventLog, publisher: IPublisher,
                 state_machine: ElevatorStateMachine, scheduler: MovementScheduler,
                 strategy: IAllocationStrategy):
        self.name = name
        self.env = env
        self.store = store
        self.event_log = event_log
        self.publisher = publisher
        self.state_machine = state_machine
        self.scheduler = scheduler
        self.selector = AssignmentSelector(store, strategy, self._provision,
                                           provision_floor=max(0, state_machine.min_floor))

    # --- Calls ---

    def call(self, from_floor: int, to_floor: int, car_id: Optional[str] = None) -> str:
        """
        Request transport from one floor to another.

        Args:
            from_floor: Pickup floor
            to_floor: Destination floor
            car_id: Serve the call with this car (created if unknown)

        Returns:
            Id of the car serving the call

        Raises:
            ValidationError: Invalid floors or from == to (nothing is written)
            CarUnavailable: The car is in maintenance
            TransientStoreError: The call could not be persisted
        """
        self.state_machine.validate_call(from_floor, to_floor)
        now = self.env.now

        if car_id is None:
            car_id = self.selector.assign(from_floor, to_floor, now)
            car = self.store.get(car_id)
        else:
            car = self.store.get(car_id)
            if car is None:
                logger.info("%.2f [GCS] Unknown car %s requested; provisioning it", now, car_id)
                car = self._create(car_id, self.selector.provision_floor)

        transition = self.state_machine.call(car, from_floor, to_floor, now)
        self.scheduler.commit(transition)
        if transition.movement_started:
            self.scheduler.submit_for(transition.snapshot)

        logger.info("%.2f [GCS] Call %d -> %d assigned to %s (%s)",
                    now, from_floor, to_floor, car_id, transition.snapshot.mode.value)
        self.publisher.publish("gcs/assignment", {
            'elevatorId': car_id,
            'fromFloor': from_floor,
            'toFloor': to_floor,
            'timestamp': now,
        })
        return car_id

    # --- Fleet ---

    def initialize(self, initial_floor: int = 0, car_id: Optional[str] = None) -> CarSnapshot:
        """
        Create a new idle car.

        Raises:
            ValidationError: Floor out of range or the id is already taken
        """
        if car_id is None:
            car_id = f"car-{uuid.uuid4().hex[:8]}"
        elif self.store.get(car_id) is not None:
            raise ValidationError(f"Car {car_id} already exists")
        snapshot = self._create(car_id, initial_floor)
        logger.info("%.2f [GCS] Car '%s' initialized at floor %d", self.env.now, car_id, initial_floor)
        return snapshot

    def get_status(self, car_id: Optional[str] = None) -> Union[CarSnapshot, List[CarSnapshot]]:
        """One car's snapshot, or every car's when car_id is None"""
        if car_id is None:
            return self.store.scan_all()
        car = self.store.get(car_id)
        if car is None:
            raise CarNotFound(car_id)
        return car

    def set_maintenance(self, car_id: str) -> CarSnapshot:
        """
        Emergency stop: take the car out of service where it is.

        Waiting jobs are superseded; a running job ends at its next step.
        """
        car = self._require(car_id)
        transition = self.state_machine.enter_maintenance(car, self.env.now)
        if transition.changed:
            self.scheduler.commit(transition)
            if self.scheduler.queue is not None:
                self.scheduler.queue.cancel_if_waiting(lambda job: job.car_id == car_id)
            logger.warning("%.2f [GCS] %s put into maintenance at floor %d",
                           self.env.now, car_id, transition.snapshot.current_floor)
        return transition.snapshot

    def clear_maintenance(self, car_id: str) -> CarSnapshot:
        """Return the car to service and dispatch its pending stops"""
        car = self._require(car_id)
        transition = self.state_machine.clear_maintenance(car, self.env.now)
        self.scheduler.commit(transition)
        if transition.movement_started:
            self.scheduler.submit_for(transition.snapshot)
        logger.info("%.2f [GCS] %s back in service", self.env.now, car_id)
        return transition.snapshot

    # --- Inspection ---

    def get_logs(self, car_id: Optional[str] = None, start: Optional[float] = None,
                 end: Optional[float] = None) -> List[DomainEvent]:
        """Events from the event log, optionally for one car and a time range"""
        if start is not None and end is not None and start > end:
            raise ValidationError("start must not be after end")
        if car_id is not None:
            self._require(car_id)
        return self.event_log.query(car_id, start, end)

    def queue_stats(self) -> Dict[str, Any]:
        if self.scheduler.queue is None:
            return {}
        return self.scheduler.queue.stats()

    def broadcast_statuses(self) -> List[Dict[str, Any]]:
        """Publish every car's status on elevator/statuses"""
        statuses = [car.to_status() for car in self.store.scan_all()]
        self.publisher.publish("elevator/statuses", {
            'elevators': statuses,
            'timestamp': self.env.now,
        })
        return statuses

    def status_broadcast_process(self, interval: float):
        """Process publishing all statuses every `interval` seconds"""
        while True:
            yield self.env.timeout(interval)
            self.broadcast_statuses()

    # --- Internals ---

    def _require(self, car_id: str) -> CarSnapshot:
        car = self.store.get(car_id)
        if car is None:
            raise CarNotFound(car_id)
        return car

    def _create(self, car_id: str, floor: int) -> CarSnapshot:
        snapshot = self.state_machine.create_car(car_id, floor, self.env.now)
        return self.scheduler.commit(Transition(snapshot))

    def _provision(self, floor: int) -> str:
        return self.initialize(floor).car_id
