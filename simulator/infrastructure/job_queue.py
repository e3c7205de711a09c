"""
SimPy job queue

A pool of QueueWorker processes pulling movement jobs from one shared store.
"""

import logging
from collections import Counter, deque
from typing import Any, Callable, Deque, Dict, List, NamedTuple, Optional

import simpy

from ..core.entity import Entity
from ..core.movement_job import JobState, MovementJob
from ..interfaces.job_queue import IJobHandler, IJobQueue, apply_overrides

logger = logging.getLogger(__name__)


class JobRecord(NamedTuple):
    """One job state change, as kept in the queue's history"""
    time: float
    job_id: str
    car_id: str
    state: JobState


class QueueWorker(Entity):
    """
    Worker process: takes one job at a time and runs it to completion
    """

    def __init__(self, env: simpy.Environment, name: str, queue: "SimpyJobQueue"):
        self.queue = queue
        self.current_job: Optional[MovementJob] = None
        super().__init__(env, name)

    def run(self):
        while True:
            self.set_state("WAITING")
            job = yield self.queue.store.get()
            yield from self.queue.process_job(job, self)


class SimpyJobQueue(IJobQueue):
    """
    IJobQueue backed by a simpy.Store and a fixed worker pool

    Args:
        env: SimPy environment
        handler: Consumer of the jobs (try_start / handle / on_failed)
        workers: Number of concurrent worker processes
        start_retry_delay: Seconds before a job refused by try_start is offered again
        history_limit: Number of job state changes kept for inspection
    """

    def __init__(self, env: simpy.Environment, handler: Optional[IJobHandler] = None,
                 workers: int = 4, start_retry_delay: float = 1.0, history_limit: int = 10000):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        if start_retry_delay <= 0:
            raise ValueError("start_retry_delay must be positive")
        self.env = env
        self.handler = handler
        self.start_retry_delay = start_retry_delay
        self.store = simpy.Store(env)
        self.history: Deque[JobRecord] = deque(maxlen=history_limit)
        self.finished: Deque[MovementJob] = deque(maxlen=50)
        self._waiting: Dict[str, MovementJob] = {}
        self._running: Dict[str, MovementJob] = {}
        self._totals: Counter = Counter()
        self.workers = [QueueWorker(env, f"Worker_{i}", self) for i in range(1, workers + 1)]

    def set_handler(self, handler: IJobHandler):
        self.handler = handler

    # --- IJobQueue ---

    def enqueue(self, job: MovementJob, attempts: Optional[int] = None,
                backoff: Optional[float] = None, delay: float = 0.0) -> MovementJob:
        if job.state != JobState.QUEUED:
            raise ValueError(f"Only new jobs can be enqueued ({job.job_id} is {job.state.value})")
        apply_overrides(job, attempts, backoff)
        job.created_at = self.env.now
        self._waiting[job.job_id] = job
        self._record(job)
        logger.info("%.2f [JobQueue] Added %s job %s for %s: %s -> %s (%s)",
                    self.env.now, job.kind.value, job.job_id, job.car_id,
                    job.from_floor, job.to_floor, job.direction.value)
        self._offer(job, delay)
        return job

    def cancel_if_waiting(self, predicate: Callable[[MovementJob], bool]) -> List[MovementJob]:
        cancelled = []
        for job in list(self._waiting.values()):
            if not predicate(job):
                continue
            del self._waiting[job.job_id]
            job.transition_to(JobState.SUPERSEDED, self.env.now)
            if job in self.store.items:
                self.store.items.remove(job)
            self._finish(job)
            cancelled.append(job)
            logger.info("%.2f [JobQueue] Superseded waiting job %s for %s",
                        self.env.now, job.job_id, job.car_id)
        for job in self._running.values():
            if predicate(job):
                logger.info("%.2f [JobQueue] Found running job %s for %s, letting it complete",
                            self.env.now, job.job_id, job.car_id)
        return cancelled

    def is_active(self, car_id: str) -> bool:
        return any(job.car_id == car_id for job in self.waiting_jobs() + self.running_jobs())

    def stats(self) -> Dict[str, Any]:
        return {
            "waiting": len(self._waiting),
            "active": len(self._running),
            "completed": self._totals[JobState.COMPLETED],
            "failed": self._totals[JobState.FAILED],
            "superseded": self._totals[JobState.SUPERSEDED],
            "waitingJobs": [job.describe() for job in self.waiting_jobs()],
            "activeJobs": [job.describe() for job in self.running_jobs()],
            "workers": {worker.name: worker.get_state() for worker in self.workers},
        }

    # --- Inspection ---

    def waiting_jobs(self) -> List[MovementJob]:
        return list(self._waiting.values())

    def running_jobs(self) -> List[MovementJob]:
        return list(self._running.values())

    def jobs_for(self, car_id: str) -> List[JobRecord]:
        return [record for record in self.history if record.car_id == car_id]

    # --- Worker side ---

    def process_job(self, job: MovementJob, worker: QueueWorker):
        """Start and run one job (generator, executed inside a worker process)"""
        if job.state != JobState.QUEUED:
            return
        if self.handler is None:
            raise RuntimeError("SimpyJobQueue has no handler")

        try:
            ready = self.handler.try_start(job)
        except Exception:
            logger.exception("%.2f [JobQueue] try_start failed for %s", self.env.now, job.job_id)
            ready = False
        if not ready:
            self._offer(job, self.start_retry_delay)
            return

        del self._waiting[job.job_id]
        job.transition_to(JobState.RUNNING, self.env.now)
        self._running[job.job_id] = job
        self._record(job)
        worker.current_job = job
        worker.set_state("BUSY")
        try:
            yield self.env.process(self.handler.handle(job))
        except Exception as error:
            job.error = str(error)
            job.transition_to(JobState.FAILED, self.env.now)
            self._record(job)
            logger.error("%.2f [JobQueue] Job %s for %s failed: %s",
                         self.env.now, job.job_id, job.car_id, error)
            try:
                yield self.env.process(self.handler.on_failed(job, error))
            except Exception:
                logger.exception("%.2f [JobQueue] Failure handler raised for %s", self.env.now, job.job_id)
        else:
            job.transition_to(JobState.COMPLETED, self.env.now)
            self._record(job)
        finally:
            self._running.pop(job.job_id, None)
            worker.current_job = None
        self._finish(job, recorded=True)

    # --- Internals ---

    def _offer(self, job: MovementJob, delay: float):
        if delay > 0:
            self.env.process(self._offer_after(job, delay))
        else:
            self.store.put(job)

    def _offer_after(self, job: MovementJob, delay: float):
        yield self.env.timeout(delay)
        if job.state == JobState.QUEUED:
            yield self.store.put(job)

    def _record(self, job: MovementJob):
        self.history.append(JobRecord(self.env.now, job.job_id, job.car_id, job.state))

    def _finish(self, job: MovementJob, recorded: bool = False):
        if not recorded:
            self._record(job)
        self._totals[job.state] += 1
        self.finished.append(job)
