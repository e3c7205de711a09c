"""
Group control system facade tests
"""

import pytest

from simulator.core.car import Mode
from simulator.core.events import EventType
from simulator.core.exceptions import CarNotFound, CarUnavailable, InvalidTransitionError, ValidationError


def test_call_is_assigned_to_the_nearest_idle_car(build_system):
    system, recorder = build_system(initial_floors=[0, 10, 20])
    assert system.gcs.call(12, 3) == "car-2"

    assignment = recorder.on_topic("gcs/assignment")[-1]
    assert assignment == {"elevatorId": "car-2", "fromFloor": 12, "toFloor": 3, "timestamp": 0}
    car = system.store.get("car-2")
    assert car.mode == Mode.MOVING
    assert car.target_floor == 12
    assert car.pending_stops == [3]


def test_invalid_call_writes_nothing(build_system):
    system, recorder = build_system()
    published = len(recorder.messages)

    with pytest.raises(ValidationError):
        system.gcs.call(5, 5)
    with pytest.raises(ValidationError):
        system.gcs.call(-1, 5)

    assert system.event_log.query() == []
    assert len(recorder.messages) == published
    assert system.store.get("car-1").sequence == 0


def test_targeted_call_to_unknown_car_provisions_it(build_system):
    system, _ = build_system(initial_floors=[5])
    assert system.gcs.call(3, 7, car_id="lobby") == "lobby"

    car = system.store.get("lobby")
    assert car is not None
    assert car.target_floor == 3  # created at floor 0, heading for the pickup
    assert len(system.store) == 2


def test_call_on_car_in_maintenance_is_refused(build_system):
    system, _ = build_system()
    system.gcs.set_maintenance("car-1")
    with pytest.raises(CarUnavailable):
        system.gcs.call(1, 2, car_id="car-1")


def test_maintenance_round_trip(build_system):
    system, _ = build_system(initial_floors=[0])
    env = system.env
    system.gcs.call(0, 10)
    env.run(until=5)

    stopped = system.gcs.set_maintenance("car-1")
    assert stopped.mode == Mode.MAINTENANCE
    assert stopped.current_floor == 2
    # repeated emergency stop changes nothing
    assert system.gcs.set_maintenance("car-1").sequence == stopped.sequence

    env.run(until=30)
    cleared = system.gcs.clear_maintenance("car-1")
    assert cleared.mode == Mode.IDLE
    assert cleared.current_floor == 2
    assert cleared.target_floor is None

    types = [event.event_type for event in system.event_log.query("car-1")]
    assert types[-2:] == [EventType.MAINTENANCE_STARTED, EventType.MAINTENANCE_CLEARED]
    with pytest.raises(InvalidTransitionError):
        system.gcs.clear_maintenance("car-1")


def test_initialize_and_status(build_system):
    system, _ = build_system(initial_floors=[0])
    car = system.gcs.initialize(7)
    assert car.car_id.startswith("car-")
    assert car.current_floor == 7
    assert system.gcs.get_status(car.car_id) == car
    assert [c.car_id for c in system.gcs.get_status()] == ["car-1", car.car_id]

    named = system.gcs.initialize(3, car_id="service")
    assert named.car_id == "service"
    with pytest.raises(ValidationError):
        system.gcs.initialize(0, car_id="service")
    with pytest.raises(ValidationError):
        system.gcs.initialize(500)
    with pytest.raises(CarNotFound):
        system.gcs.get_status("ghost")


def test_get_logs_filters_by_car_and_time(build_system):
    system, _ = build_system(initial_floors=[2, 40])
    system.gcs.call(2, 5)
    system.env.run(until=30)
    system.gcs.call(40, 38)
    system.env.run(until=60)

    car_1 = system.gcs.get_logs("car-1")
    assert [e.event_type for e in car_1] == [
        EventType.CALLED, EventType.MOVEMENT_STARTED, EventType.FLOOR_CHANGED, EventType.FLOOR_CHANGED,
        EventType.ARRIVED, EventType.DOORS_OPENED, EventType.DOORS_CLOSING, EventType.DOORS_CLOSED]
    assert [e.car_id for e in system.gcs.get_logs(start=30.0)] == ["car-2"] * 7
    window = system.gcs.get_logs("car-1", start=1.0, end=10.0)
    assert [e.timestamp for e in window] == [2.0, 4.0, 6.0, 7.5, 9.0]
    assert window[2].event_type == EventType.ARRIVED

    with pytest.raises(ValidationError):
        system.gcs.get_logs("car-1", start=10.0, end=1.0)
    with pytest.raises(CarNotFound):
        system.gcs.get_logs("ghost")


def test_broadcast_statuses(build_system):
    system, recorder = build_system(initial_floors=[0, 4])
    statuses = system.gcs.broadcast_statuses()
    assert [s["elevatorId"] for s in statuses] == ["car-1", "car-2"]
    message = recorder.on_topic("elevator/statuses")[-1]
    assert message["elevators"] == statuses

    system.env.process(system.gcs.status_broadcast_process(5.0))
    system.env.run(until=16)
    assert len(recorder.on_topic("elevator/statuses")) == 4


def test_queue_stats_reflect_jobs(build_system):
    system, _ = build_system(initial_floors=[0])
    system.gcs.call(0, 1)
    stats = system.gcs.queue_stats()
    assert stats["waiting"] == 1
    assert stats["waitingJobs"][0]["data"]["toFloor"] == 1

    system.env.run(until=20)
    stats = system.gcs.queue_stats()
    assert stats["waiting"] == 0
    assert stats["completed"] == 4
