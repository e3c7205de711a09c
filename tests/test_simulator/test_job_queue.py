"""
SimPy job queue tests with a scripted handler
"""

import pytest

from simulator.core.movement_job import JobState, MovementJob
from simulator.infrastructure.job_queue import SimpyJobQueue
from simulator.interfaces.job_queue import IJobHandler


class ScriptedHandler(IJobHandler):
    """Runs each job for `duration` seconds; optional start gate and failures"""

    def __init__(self, env, duration=5.0, ready=None, failing=()):
        self.env = env
        self.duration = duration
        self.ready = ready or (lambda job: True)
        self.failing = set(failing)
        self.started = []
        self.failed = []

    def try_start(self, job):
        return self.ready(job)

    def handle(self, job):
        self.started.append((self.env.now, job.job_id))
        yield self.env.timeout(self.duration)
        if job.car_id in self.failing:
            raise RuntimeError(f"boom on {job.car_id}")

    def on_failed(self, job, error):
        self.failed.append((job.job_id, str(error)))
        yield self.env.timeout(0)


def _job(car_id="car-1"):
    return MovementJob(car_id=car_id, from_floor=0, to_floor=5)


def test_jobs_run_on_the_worker_pool(env):
    handler = ScriptedHandler(env)
    queue = SimpyJobQueue(env, handler, workers=2)
    jobs = [queue.enqueue(_job(f"car-{i}")) for i in range(3)]

    env.run(until=20)

    assert [job.state for job in jobs] == [JobState.COMPLETED] * 3
    # two workers: the third job waits for the first free worker
    assert [time for time, _ in handler.started] == [0, 0, 5]
    stats = queue.stats()
    assert stats["completed"] == 3
    assert stats["waiting"] == 0
    assert stats["active"] == 0


def test_cancel_if_waiting_supersedes_only_waiting_jobs(env):
    handler = ScriptedHandler(env)
    queue = SimpyJobQueue(env, handler, workers=1)
    running = queue.enqueue(_job())
    waiting = queue.enqueue(_job())
    other_car = queue.enqueue(_job("car-2"))

    env.run(until=1)
    assert running.state == JobState.RUNNING

    cancelled = queue.cancel_if_waiting(lambda job: job.car_id == "car-1")
    assert cancelled == [waiting]
    assert waiting.state == JobState.SUPERSEDED
    assert running.state == JobState.RUNNING

    env.run(until=20)
    assert running.state == JobState.COMPLETED
    assert other_car.state == JobState.COMPLETED
    assert [job_id for _, job_id in handler.started] == [running.job_id, other_car.job_id]
    assert queue.stats()["superseded"] == 1


def test_refused_start_is_offered_again(env):
    gate = {"open_at": 3.0}
    handler = ScriptedHandler(env, ready=lambda job: env.now >= gate["open_at"])
    queue = SimpyJobQueue(env, handler, workers=1, start_retry_delay=1.0)
    job = queue.enqueue(_job())

    env.run(until=2)
    assert job.state == JobState.QUEUED
    assert queue.is_active("car-1")

    env.run(until=20)
    assert handler.started == [(3.0, job.job_id)]
    assert job.state == JobState.COMPLETED
    assert not queue.is_active("car-1")


def test_failing_job_is_isolated(env):
    handler = ScriptedHandler(env, failing={"car-1"})
    queue = SimpyJobQueue(env, handler, workers=1)
    bad = queue.enqueue(_job("car-1"))
    good = queue.enqueue(_job("car-2"))

    env.run(until=20)

    assert bad.state == JobState.FAILED
    assert "boom" in bad.error
    assert handler.failed == [(bad.job_id, "boom on car-1")]
    assert good.state == JobState.COMPLETED
    assert queue.stats()["failed"] == 1


def test_enqueue_overrides_and_history(env):
    queue = SimpyJobQueue(env, ScriptedHandler(env), workers=1)
    job = queue.enqueue(_job(), attempts=5, backoff=0.5)
    assert job.retry.max_attempts == 5
    assert job.retry.backoff_delay == 0.5

    env.run(until=10)
    states = [record.state for record in queue.jobs_for("car-1")]
    assert states == [JobState.QUEUED, JobState.RUNNING, JobState.COMPLETED]

    with pytest.raises(ValueError):
        queue.enqueue(job)


def test_delayed_enqueue(env):
    handler = ScriptedHandler(env, duration=1.0)
    queue = SimpyJobQueue(env, handler, workers=1)
    queue.enqueue(_job(), delay=4.0)
    env.run(until=10)
    assert handler.started[0][0] == 4.0
