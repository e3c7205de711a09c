"""
In-memory state store

Keeps each car as a serialized dictionary (like a hash per key in a
key-value server), so callers never share mutable snapshots.
"""

import logging
from typing import Dict, List, Optional

from ..core.car import CarSnapshot
from ..interfaces.state_store import IStateStore

logger = logging.getLogger(__name__)


class InMemoryStateStore(IStateStore):
    """
    Dictionary-backed IStateStore

    Enumeration order is the order in which cars were first written.
    """

    def __init__(self):
        self._cars: Dict[str, dict] = {}

    def get(self, car_id: str) -> Optional[CarSnapshot]:
        data = self._cars.get(car_id)
        if data is None:
            return None
        return CarSnapshot.from_dict(data)

    def put(self, car_id: str, snapshot: CarSnapshot):
        data = snapshot.to_dict()
        existing = self._cars.get(car_id)
        if existing is not None:
            data["lease_owner"] = existing.get("lease_owner")
            data["lease_expires_at"] = existing.get("lease_expires_at")
        else:
            data["lease_owner"] = None
            data["lease_expires_at"] = None
        self._cars[car_id] = data

    def scan_all(self) -> List[CarSnapshot]:
        return [CarSnapshot.from_dict(data) for data in self._cars.values()]

    def acquire_lease(self, car_id: str, owner: str, now: float, ttl: float) -> bool:
        data = self._cars.get(car_id)
        if data is None:
            return False
        holder = data.get("lease_owner")
        expires_at = data.get("lease_expires_at")
        if holder is not None and holder != owner and (expires_at is None or expires_at > now):
            return False
        if holder is not None and holder != owner:
            logger.info("%.2f [StateStore] Lease on %s expired (held by %s); taken over by %s",
                        now, car_id, holder, owner)
        data["lease_owner"] = owner
        data["lease_expires_at"] = now + ttl
        return True

    def release_lease(self, car_id: str, owner: str):
        data = self._cars.get(car_id)
        if data is not None and data.get("lease_owner") == owner:
            data["lease_owner"] = None
            data["lease_expires_at"] = None

    def __len__(self) -> int:
        return len(self._cars)

    def __contains__(self, car_id: str) -> bool:
        return car_id in self._cars
