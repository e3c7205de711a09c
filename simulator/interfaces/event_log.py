"""
Event Log Interface

Durable, strictly ordered per-car record of domain events (audit and replay).
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..core.events import DomainEvent


class IEventLog(ABC):
    """
    Interface for the durable event log

    Appends are idempotent per (car_id, seq): re-appending an event with the
    same content under a sequence number already stored is a no-op, while
    different content raises EventSequenceConflict. Implementations raise
    TransientStoreError on I/O failure.
    """

    @abstractmethod
    def append(self, car_id: str, event: DomainEvent, seq: int):
        """
        Append one event

        Args:
            car_id: Car the event belongs to
            event: Event to store (never mutated afterwards)
            seq: Per-car sequence number; must be above the last stored one
        """
        pass

    @abstractmethod
    def query(self, car_id: Optional[str] = None, start: Optional[float] = None,
              end: Optional[float] = None) -> List[DomainEvent]:
        """
        Read events

        Args:
            car_id: Restrict to one car (None = all cars)
            start: Earliest timestamp, inclusive (None = unbounded)
            end: Latest timestamp, inclusive (None = unbounded)

        Returns:
            For one car, events ordered by sequence. For all cars, events
            ordered by timestamp, then car, then sequence.
        """
        pass

    @abstractmethod
    def last_sequence(self, car_id: str) -> int:
        """Highest stored sequence for a car (0 if none)"""
        pass
