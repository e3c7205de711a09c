"""
Dispatch engine exceptions

All errors raised by the dispatch-and-movement engine derive from DispatchError,
so adapters can map the whole family in one place.

Exceptions with structured fields keep every constructor argument in args:
SimPy re-creates an exception escaping a process as type(e)(*e.args).
"""

from typing import Optional


class DispatchError(Exception):
    """Base exception for the dispatch engine."""


class ValidationError(DispatchError):
    """Invalid request (floor out of range, from == to, bad id). Never retried."""


class CarUnavailable(DispatchError):
    """Car cannot take calls (maintenance mode). Surfaced to the caller."""

    def __init__(self, car_id: str, reason: str = "under maintenance"):
        super().__init__(car_id, reason)
        self.car_id = car_id
        self.reason = reason

    def __str__(self):
        return f"Car {self.car_id} is unavailable: {self.reason}"


class CarNotFound(DispatchError):
    """No car with the requested id exists in the state store."""

    def __init__(self, car_id: str):
        super().__init__(car_id)
        self.car_id = car_id

    def __str__(self):
        return f"Car {self.car_id} not found"


class InvalidTransitionError(DispatchError):
    """A state machine operation was applied in a mode that does not allow it."""


class TransientStoreError(DispatchError):
    """State store or event log I/O failure. Retried with backoff by the scheduler."""


class LeaseLostError(TransientStoreError):
    """The car's lease is now held by another owner."""


class EventSequenceConflict(DispatchError):
    """An event was appended with an already used sequence number and different content."""

    def __init__(self, car_id: str, sequence: int):
        super().__init__(car_id, sequence)
        self.car_id = car_id
        self.sequence = sequence

    def __str__(self):
        return f"Sequence {self.sequence} already used for car {self.car_id} by a different event"


class JobFailed(DispatchError):
    """A movement job exhausted its retry budget."""

    def __init__(self, job_id: str, car_id: str, cause: Optional[BaseException] = None):
        super().__init__(job_id, car_id, cause)
        self.job_id = job_id
        self.car_id = car_id
        self.cause = cause

    def __str__(self):
        message = f"Movement job {self.job_id} for car {self.car_id} failed"
        if self.cause is not None:
            message += f": {self.cause}"
        return message
