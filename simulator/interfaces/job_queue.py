"""
Job Queue Interface

Delivers movement jobs to a handler through a pool of workers.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from ..core.movement_job import MovementJob, RetryPolicy


class IJobHandler(ABC):
    """
    Consumer side of the job queue

    Design Philosophy:
    - The queue owns job bookkeeping (states, history, workers)
    - The handler owns what a job does and decides when it may start
    """

    @abstractmethod
    def try_start(self, job: MovementJob) -> bool:
        """
        Called before a waiting job is started

        Returns:
            False to leave the job waiting; the queue offers it again later
        """
        pass

    @abstractmethod
    def handle(self, job: MovementJob):
        """Generator run as a SimPy process for one RUNNING job"""
        pass

    @abstractmethod
    def on_failed(self, job: MovementJob, error: BaseException):
        """Generator run after handle() raised; the job is already FAILED"""
        pass


class IJobQueue(ABC):
    """
    Interface for the movement job queue

    Semantics:
    - Jobs are delivered at least once, each in isolation: one failing job
      never stops a worker or affects other jobs
    - Only waiting (QUEUED) jobs can be cancelled; running jobs always finish
    """

    @abstractmethod
    def enqueue(self, job: MovementJob, attempts: Optional[int] = None,
                backoff: Optional[float] = None, delay: float = 0.0) -> MovementJob:
        """
        Add a job

        Args:
            job: Job to run
            attempts: Overrides the job's retry attempt limit
            backoff: Overrides the job's initial backoff delay (seconds)
            delay: Seconds before the job becomes available to workers
        """
        pass

    @abstractmethod
    def cancel_if_waiting(self, predicate: Callable[[MovementJob], bool]) -> List[MovementJob]:
        """
        Supersede every waiting job matching the predicate

        Returns:
            The jobs that were superseded
        """
        pass

    @abstractmethod
    def is_active(self, car_id: str) -> bool:
        """True if a job for the car is waiting or running"""
        pass

    @abstractmethod
    def stats(self) -> Dict[str, Any]:
        """Counts per job state and descriptions of waiting/running jobs"""
        pass


def apply_overrides(job: MovementJob, attempts: Optional[int], backoff: Optional[float]):
    """Fold enqueue() options into the job's retry policy"""
    if attempts is None and backoff is None:
        return
    job.retry = RetryPolicy(
        max_attempts=attempts if attempts is not None else job.retry.max_attempts,
        backoff_delay=backoff if backoff is not None else job.retry.backoff_delay,
        backoff_factor=job.retry.backoff_factor,
    )
