"""
Movement scheduler scenarios

Default timing: 2.0 s per floor, doors 1.5 s opening, 1.5 s dwell, 3.0 s closing.
Default retry: 3 attempts, 2.0 s initial backoff, factor 2.0.
"""

import pytest
import simpy

from analyzer.consistency import check_consistency
from simulator.core.car import CarSnapshot, Direction, Mode
from simulator.core.events import EventType
from simulator.core.exceptions import TransientStoreError
from simulator.core.movement_job import JobState


MILESTONES = (EventType.CALLED, EventType.MOVEMENT_STARTED, EventType.ARRIVED)


def _event_types(system, car_id="car-1"):
    return [event.event_type for event in system.event_log.query(car_id)]


def _milestones(system, car_id="car-1"):
    return [event for event in system.event_log.query(car_id) if event.event_type in MILESTONES]


def _assert_status_invariants(statuses):
    for status in statuses:
        assert (status["targetFloor"] is not None) == (status["state"] == "MOVING"), status
        assert (status["direction"] != "IDLE") == (status["state"] == "MOVING"), status


def test_call_walks_floor_by_floor_and_cycles_doors(build_system):
    system, recorder = build_system(initial_floors=[2])
    car_id = system.gcs.call(2, 9)
    assert car_id == "car-1"

    system.env.run(until=60)

    events = system.event_log.query("car-1")
    assert [e.sequence for e in events] == list(range(1, 13))
    assert [e.event_type for e in events] == (
        [EventType.CALLED, EventType.MOVEMENT_STARTED]
        + [EventType.FLOOR_CHANGED] * 6
        + [EventType.ARRIVED, EventType.DOORS_OPENED, EventType.DOORS_CLOSING, EventType.DOORS_CLOSED])
    assert events[1].data["direction"] == "UP"
    assert [(e.data["floor"], e.timestamp) for e in events[2:8]] == [
        (3, 2.0), (4, 4.0), (5, 6.0), (6, 8.0), (7, 10.0), (8, 12.0)]
    assert events[8].data == {"floor": 9}
    assert events[8].timestamp == 14.0
    assert [e.timestamp for e in events[9:]] == [15.5, 17.0, 20.0]

    statuses = recorder.statuses("car-1")
    _assert_status_invariants(statuses)
    moving_floors = [s["currentFloor"] for s in statuses if s["state"] == "MOVING"]
    assert moving_floors == [2, 3, 4, 5, 6, 7, 8]
    door_phases = [(s["state"], s["timestamp"]) for s in statuses if s["state"].startswith("DOORS")]
    assert door_phases == [("DOORS_OPENING", 14.0), ("DOORS_OPEN", 15.5), ("DOORS_CLOSING", 17.0)]
    assert (statuses[-1]["state"], statuses[-1]["timestamp"]) == ("IDLE", 20.0)

    car = system.store.get("car-1")
    assert car.mode == Mode.IDLE
    assert car.current_floor == 9
    assert car.target_floor is None
    assert car.lease_owner is None

    stats = system.gcs.queue_stats()
    assert stats["completed"] == 4  # transit + three door phases
    assert stats["failed"] == 0
    assert all(report.ok for report in check_consistency(system.store, system.event_log).values())


def test_store_failure_exhausting_retries_forces_car_idle(build_system, flaky_store):
    system, recorder = build_system(initial_floors=[2], store=flaky_store)
    # every attempt of the third floor step (floor 5) fails
    flaky_store.fail_puts(lambda car: car.mode == Mode.MOVING and car.current_floor == 5, times=3)

    system.gcs.call(2, 9)
    system.env.run(until=60)

    assert flaky_store.failed_puts == 3
    car = system.store.get("car-1")
    assert car.mode == Mode.IDLE
    assert car.direction == Direction.IDLE
    assert car.target_floor is None
    assert car.current_floor == 4
    assert car.lease_owner is None

    failed = system.event_log.query("car-1")[-1]
    assert failed.event_type == EventType.MOVEMENT_FAILED
    assert failed.data["floor"] == 4
    assert failed.data["target_floor"] == 9
    assert failed.timestamp == 12.0  # attempts at 6, 8 and 12

    errors = recorder.on_topic("elevator/car-1/error")
    assert len(errors) == 1
    assert errors[0]["state"] == "IDLE"
    assert errors[0]["currentFloor"] == 4
    assert system.gcs.queue_stats()["failed"] == 1
    _assert_status_invariants(recorder.statuses("car-1"))


def test_transient_failure_is_retried_with_backoff(build_system, flaky_store):
    system, recorder = build_system(initial_floors=[2], store=flaky_store)
    flaky_store.fail_puts(lambda car: car.mode == Mode.MOVING and car.current_floor == 5, times=1)

    system.gcs.call(2, 9)
    system.env.run(until=60)

    arrived = _milestones(system)[-1]
    assert arrived.event_type == EventType.ARRIVED
    assert arrived.timestamp == 16.0  # one 2.0 s backoff on the floor-5 step
    assert system.store.get("car-1").mode == Mode.IDLE
    assert system.gcs.queue_stats()["failed"] == 0


def test_restart_resumes_from_persisted_snapshot(build_system):
    system, _ = build_system(initial_floors=[2])
    system.gcs.call(2, 9)
    system.env.run(until=7)

    interrupted = system.store.get("car-1")
    assert interrupted.mode == Mode.MOVING
    assert interrupted.current_floor == 5
    assert interrupted.lease_owner is not None  # the lost job's lease is still in the store

    # new process: same store and event log, fresh environment and queue
    restarted, _ = build_system(initial_floors=[2], store=system.store, event_log=system.event_log,
                                env=simpy.Environment(initial_time=7))
    assert len(restarted.queue.waiting_jobs()) == 1
    restarted.env.run(until=200)

    car = restarted.store.get("car-1")
    assert car.mode == Mode.IDLE
    assert car.current_floor == 9
    assert car.sequence == 12
    events = _milestones(restarted)
    assert [e.event_type for e in events] == [EventType.CALLED, EventType.MOVEMENT_STARTED, EventType.ARRIVED]
    assert _event_types(restarted)[-1] == EventType.DOORS_CLOSED
    # the new job waited for the old lease (60 s from its last renewal at t=6) to expire
    assert events[-1].timestamp >= 66.0
    assert all(report.ok for report in check_consistency(restarted.store, restarted.event_log).values())


def test_second_call_rides_along_without_a_second_running_job(build_system):
    system, recorder = build_system(initial_floors=[0])
    env = system.env
    system.gcs.call(0, 10)

    def later_call():
        yield env.timeout(3)
        system.gcs.call(5, 8, car_id="car-1")

    env.process(later_call())
    env.run(until=200)

    spans = {}
    for record in system.queue.jobs_for("car-1"):
        if record.state == JobState.RUNNING:
            spans[record.job_id] = [record.time, None]
        elif record.state in (JobState.COMPLETED, JobState.FAILED):
            spans[record.job_id][1] = record.time
    ordered = sorted(spans.values())
    assert len(ordered) > 4
    for (_, previous_end), (next_start, _) in zip(ordered, ordered[1:]):
        assert next_start >= previous_end

    arrivals = [e.data["floor"] for e in system.event_log.query("car-1") if e.event_type == EventType.ARRIVED]
    assert arrivals == [10, 5, 8]
    car = system.store.get("car-1")
    assert (car.mode, car.current_floor) == (Mode.IDLE, 8)
    _assert_status_invariants(recorder.statuses("car-1"))


def test_submit_supersedes_waiting_job_for_the_same_car(build_system):
    system, _ = build_system(initial_floors=[0])
    first = system.scheduler.submit("car-1", 0, 3)
    second = system.scheduler.submit("car-1", 0, 4)

    assert first.state == JobState.SUPERSEDED
    system.env.run(until=10)
    assert second.state == JobState.COMPLETED
    assert system.gcs.queue_stats()["superseded"] == 1


def test_door_follow_up_for_a_phase_already_left_does_nothing(build_system):
    system, _ = build_system(initial_floors=[0])
    system.store.put("car-1", CarSnapshot("car-1", current_floor=0, mode=Mode.DOORS_OPEN))
    job = system.scheduler.submit_for(system.store.get("car-1"))
    assert job.expected_mode == Mode.DOORS_OPEN
    system.store.put("car-1", CarSnapshot("car-1", current_floor=0, mode=Mode.DOORS_CLOSING))

    system.env.run(until=20)
    assert job.state == JobState.COMPLETED
    assert system.store.get("car-1").mode == Mode.DOORS_CLOSING
    assert system.event_log.query("car-1") == []


def test_maintenance_supersedes_waiting_follow_up(build_system):
    system, _ = build_system(initial_floors=[0])
    system.store.put("car-1", CarSnapshot("car-1", current_floor=0, mode=Mode.DOORS_OPEN))
    job = system.scheduler.submit_for(system.store.get("car-1"))
    system.gcs.set_maintenance("car-1")

    system.env.run(until=20)
    assert job.state == JobState.SUPERSEDED
    assert system.store.get("car-1").mode == Mode.MAINTENANCE


def test_watchdog_resumes_car_left_in_motion(build_system):
    system, _ = build_system(initial_floors=[0])
    system.store.put("car-1", CarSnapshot("car-1", current_floor=3, mode=Mode.DOORS_OPEN))
    system.env.process(system.scheduler.watchdog(10.0))

    system.env.run(until=9)
    assert system.store.get("car-1").mode == Mode.DOORS_OPEN

    system.env.run(until=30)
    car = system.store.get("car-1")
    assert car.mode == Mode.IDLE
    assert car.current_floor == 3



def test_watchdog_dispatches_stops_left_after_a_failure(build_system, flaky_store):
    system, _ = build_system(initial_floors=[0], store=flaky_store)
    env = system.env
    flaky_store.fail_puts(lambda car: car.mode == Mode.MOVING and car.current_floor == 3, times=3)
    env.process(system.scheduler.watchdog(10.0))
    system.gcs.call(0, 10)

    def ride_along():
        yield env.timeout(1)
        system.gcs.call(5, 8, car_id="car-1")

    env.process(ride_along())
    env.run(until=15)

    stranded = system.store.get("car-1")
    assert (stranded.mode, stranded.current_floor) == (Mode.IDLE, 2)
    assert stranded.pending_stops == [5, 8]
    assert _event_types(system)[-1] == EventType.MOVEMENT_FAILED

    env.run(until=120)
    resumed = [e for e in _milestones(system) if e.timestamp > 12.0]
    assert resumed[0].event_type == EventType.MOVEMENT_STARTED
    assert resumed[0].timestamp == 20.0
    assert [e.data["floor"] for e in resumed if e.event_type == EventType.ARRIVED] == [5, 8]

    car = system.store.get("car-1")
    assert (car.mode, car.current_floor, car.pending_stops) == (Mode.IDLE, 8, [])
    assert all(report.ok for report in check_consistency(system.store, system.event_log).values())


def test_recover_leaves_idle_cars_without_stops_alone(build_system):
    system, _ = build_system(initial_floors=[0, 4])
    assert system.scheduler.recover() == []
    assert system.event_log.query() == []


def test_maintenance_ends_running_transit(build_system):
    system, _ = build_system(initial_floors=[0])
    env = system.env
    system.gcs.call(0, 10)

    def stop():
        yield env.timeout(5)
        system.gcs.set_maintenance("car-1")

    env.process(stop())
    env.run(until=60)

    car = system.store.get("car-1")
    assert car.mode == Mode.MAINTENANCE
    assert car.current_floor == 2
    assert system.gcs.queue_stats()["failed"] == 0
    assert _event_types(system)[-1] == EventType.MAINTENANCE_STARTED


def test_write_that_only_reached_the_log_is_renumbered(build_system, flaky_store):
    system, _ = build_system(initial_floors=[2], store=flaky_store)
    flaky_store.fail_puts(lambda car: car.mode == Mode.MOVING, times=1)

    with pytest.raises(TransientStoreError):
        system.gcs.call(2, 9)
    assert system.store.get("car-1").sequence == 0
    assert system.event_log.last_sequence("car-1") == 2

    system.gcs.call(2, 4)
    system.env.run(until=60)

    events = system.event_log.query("car-1")
    assert [e.sequence for e in events] == list(range(1, 10))
    assert events[2].data == {"from_floor": 2, "to_floor": 4}
    assert events[4].event_type == EventType.FLOOR_CHANGED
    car = system.store.get("car-1")
    assert (car.mode, car.current_floor, car.sequence) == (Mode.IDLE, 4, 9)
