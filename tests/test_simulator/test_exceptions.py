"""
Exception tests
"""

import pytest
import simpy

from simulator.core.exceptions import (
    CarNotFound,
    CarUnavailable,
    EventSequenceConflict,
    JobFailed,
    TransientStoreError,
)


@pytest.mark.parametrize("error", [
    CarUnavailable("car-1"),
    CarUnavailable("car-2", reason="doors jammed"),
    CarNotFound("car-3"),
    EventSequenceConflict("car-1", 7),
    JobFailed("job_1", "car-1"),
    JobFailed("job_2", "car-1", TransientStoreError("store down")),
])
def test_rebuilt_from_args_keeps_fields_and_message(error):
    rebuilt = type(error)(*error.args)
    assert str(rebuilt) == str(error)
    assert vars(rebuilt) == vars(error)


def test_messages():
    assert str(CarUnavailable("car-1")) == "Car car-1 is unavailable: under maintenance"
    assert str(CarNotFound("car-9")) == "Car car-9 not found"
    assert str(EventSequenceConflict("car-1", 4)) == "Sequence 4 already used for car car-1 by a different event"
    assert str(JobFailed("job_1", "car-1", TransientStoreError("store down"))) == \
        "Movement job job_1 for car car-1 failed: store down"


def test_job_failed_crosses_a_process_boundary():
    env = simpy.Environment()
    caught = []

    def job():
        yield env.timeout(1)
        raise JobFailed("job_1", "car-1", TransientStoreError("store down"))

    def worker():
        try:
            yield env.process(job())
        except JobFailed as e:
            caught.append(e)

    env.process(worker())
    env.run()

    assert len(caught) == 1
    assert caught[0].job_id == "job_1"
    assert caught[0].car_id == "car-1"
    assert str(caught[0].cause) == "store down"
