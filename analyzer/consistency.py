"""
Store / event log consistency check

The event log is the durable record, the state store the fast view. Every
floor step and door phase is logged, so replaying a car's events gives its
current floor, its target and its last sequence number, which the stored
snapshot must agree with.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from simulator.core.car import CarSnapshot
from simulator.core.events import DomainEvent, EventType
from simulator.interfaces.event_log import IEventLog
from simulator.interfaces.state_store import IStateStore

logger = logging.getLogger(__name__)


@dataclass
class ReplayState:
    """What a car's event history says about it"""
    car_id: str
    last_sequence: int = 0
    floor: Optional[int] = None       # last floor known from an event
    target_floor: Optional[int] = None
    in_maintenance: bool = False
    gaps: List[int] = field(default_factory=list)  # missing sequence numbers


@dataclass
class ConsistencyReport:
    car_id: str
    problems: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems


def replay_events(car_id: str, events: List[DomainEvent]) -> ReplayState:
    """Fold a car's events (in sequence order) into a ReplayState"""
    state = ReplayState(car_id)
    for event in sorted(events, key=lambda e: e.sequence):
        expected = state.last_sequence + 1
        if event.sequence > expected:
            state.gaps.extend(range(expected, event.sequence))
        state.last_sequence = event.sequence

        if event.event_type == EventType.MOVEMENT_STARTED:
            state.floor = event.data['from_floor']
            state.target_floor = event.data['to_floor']
        elif event.event_type == EventType.FLOOR_CHANGED:
            state.floor = event.data['floor']
            state.target_floor = event.data['target_floor']
        elif event.event_type in (EventType.ARRIVED, EventType.DOORS_OPENED,
                                  EventType.DOORS_CLOSING, EventType.DOORS_CLOSED):
            state.floor = event.data['floor']
            state.target_floor = None
        elif event.event_type == EventType.MOVEMENT_FAILED:
            state.floor = event.data['floor']
            state.target_floor = None
        elif event.event_type == EventType.MAINTENANCE_STARTED:
            state.floor = event.data['floor']
            state.target_floor = None
            state.in_maintenance = True
        elif event.event_type == EventType.MAINTENANCE_CLEARED:
            state.in_maintenance = False
    return state


def check_car(snapshot: CarSnapshot, events: List[DomainEvent]) -> ConsistencyReport:
    """Compare one stored snapshot with its replayed history"""
    report = ConsistencyReport(snapshot.car_id)
    report.problems.extend(snapshot.invariant_violations())

    replayed = replay_events(snapshot.car_id, events)
    if replayed.last_sequence != snapshot.sequence:
        report.problems.append(
            f"store sequence {snapshot.sequence} != log sequence {replayed.last_sequence}")
    if replayed.gaps:
        report.problems.append(f"sequence numbers missing from the log: {replayed.gaps}")
    if replayed.in_maintenance != (snapshot.mode.value == "MAINTENANCE"):
        report.problems.append(
            f"maintenance flag differs (log={replayed.in_maintenance}, store={snapshot.mode.value})")

    if replayed.floor is not None and replayed.floor != snapshot.current_floor:
        report.problems.append(
            f"store floor {snapshot.current_floor} != last logged floor {replayed.floor}")
    if snapshot.is_moving and replayed.target_floor != snapshot.target_floor:
        report.problems.append(
            f"store target {snapshot.target_floor} != logged target {replayed.target_floor}")
    return report


def check_consistency(store: IStateStore, event_log: IEventLog) -> Dict[str, ConsistencyReport]:
    """
    Check every car in the store against the event log.

    Returns:
        Reports keyed by car id (report.ok tells whether the car is consistent)
    """
    reports = {}
    for snapshot in store.scan_all():
        report = check_car(snapshot, event_log.query(snapshot.car_id))
        if not report.ok:
            logger.warning("[Consistency] %s: %s", snapshot.car_id, "; ".join(report.problems))
        reports[snapshot.car_id] = report
    return reports
