"""
State Store Interface

Fast shared key space holding each car's live snapshot.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..core.car import CarSnapshot


class IStateStore(ABC):
    """
    Interface for the car state store

    The store is the single source of truth for "current" car state. It holds
    no logic beyond get/put/scan and the lease compare-and-set that backs the
    one-mutator-per-car rule.

    Consistency: read-your-writes for a single caller.

    Failure: implementations raise TransientStoreError on I/O failure.
    """

    @abstractmethod
    def get(self, car_id: str) -> Optional[CarSnapshot]:
        """
        Read one car

        Returns:
            An independent copy of the snapshot, or None if the car is unknown
        """
        pass

    @abstractmethod
    def put(self, car_id: str, snapshot: CarSnapshot):
        """
        Write a car's snapshot

        Lease fields on the given snapshot are ignored: the stored lease is only
        changed through acquire_lease/release_lease.
        """
        pass

    @abstractmethod
    def scan_all(self) -> List[CarSnapshot]:
        """
        Read every known car

        Returns:
            Snapshots in a stable enumeration order (order of first write)
        """
        pass

    @abstractmethod
    def acquire_lease(self, car_id: str, owner: str, now: float, ttl: float) -> bool:
        """
        Take or renew the exclusive lease on a car

        Succeeds when the car has no lease, the lease has expired, or `owner`
        already holds it (renewal). The lease then expires at now + ttl.

        Returns:
            True if `owner` holds the lease afterwards
        """
        pass

    @abstractmethod
    def release_lease(self, car_id: str, owner: str):
        """Drop the lease if `owner` holds it (no-op otherwise)"""
        pass
