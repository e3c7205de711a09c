"""
Movement job

Ephemeral work item driving one car through a transit or one door phase.
"""

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .car import Direction, Mode


class JobState(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SUPERSEDED = "SUPERSEDED"


class JobKind(str, Enum):
    MOVE = "MOVE"   # transit to the target floor
    DOOR = "DOOR"   # one door phase, scheduled as a follow-up


_ALLOWED = {
    JobState.QUEUED: (JobState.RUNNING, JobState.SUPERSEDED),
    JobState.RUNNING: (JobState.COMPLETED, JobState.FAILED),
}


@dataclass
class RetryPolicy:
    """Exponential backoff: delay * factor ** (attempt - 1) after each failed attempt"""
    max_attempts: int = 3
    backoff_delay: float = 2.0
    backoff_factor: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_delay < 0:
            raise ValueError("backoff_delay cannot be negative")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be at least 1")

    def delay_for(self, attempt: int) -> float:
        return self.backoff_delay * (self.backoff_factor ** (attempt - 1))

    def worst_case_wait(self) -> float:
        """Total backoff time spent if every attempt fails"""
        return sum(self.delay_for(attempt) for attempt in range(1, self.max_attempts))


_job_counter = itertools.count(1)


@dataclass
class MovementJob:
    """
    Work item submitted to the movement scheduler

    from_floor/to_floor/direction describe what the job was created for; the
    job itself always resumes from the car's persisted snapshot.
    expected_mode guards door follow-ups: a DOOR job only acts while the car is
    still in the mode it was scheduled for.
    """
    car_id: str
    from_floor: int
    to_floor: int
    direction: Direction = Direction.IDLE
    kind: JobKind = JobKind.MOVE
    expected_mode: Optional[Mode] = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    job_id: str = ""
    state: JobState = JobState.QUEUED
    created_at: float = 0.0
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    error: Optional[str] = None

    def __post_init__(self):
        if not self.job_id:
            self.job_id = f"job-{next(_job_counter)}"

    @property
    def is_waiting(self) -> bool:
        return self.state == JobState.QUEUED

    @property
    def is_finished(self) -> bool:
        return self.state in (JobState.COMPLETED, JobState.FAILED, JobState.SUPERSEDED)

    def transition_to(self, new_state: JobState, now: float):
        """Move the job along QUEUED -> RUNNING -> COMPLETED|FAILED (or QUEUED -> SUPERSEDED)"""
        if new_state not in _ALLOWED.get(self.state, ()):
            raise ValueError(f"Job {self.job_id}: illegal transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        if new_state == JobState.RUNNING:
            self.started_at = now
        else:
            self.finished_at = now

    def describe(self) -> Dict[str, Any]:
        return {
            "id": self.job_id,
            "kind": self.kind.value,
            "state": self.state.value,
            "data": {
                "elevatorId": self.car_id,
                "fromFloor": self.from_floor,
                "toFloor": self.to_floor,
                "direction": self.direction.value,
                "expectedMode": self.expected_mode.value if self.expected_mode else None,
            },
            "opts": {
                "attempts": self.retry.max_attempts,
                "backoff": {"type": "exponential", "delay": self.retry.backoff_delay},
            },
        }
