"""
Nearest Idle Car Strategy

Distance-based allocation restricted to idle cars.
"""

import logging
from typing import Any, Dict, Optional

from ..interfaces.allocation_strategy import IAllocationStrategy

logger = logging.getLogger(__name__)


class NearestIdleCarStrategy(IAllocationStrategy):
    """
    Nearest idle car allocation strategy

    Selection Logic:
    - Only cars whose state is IDLE are candidates
    - Score is abs(currentFloor - call floor)
    - Ties go to the car enumerated first (strict < comparison)

    Usage:
        strategy = NearestIdleCarStrategy()
        selected = strategy.select_elevator({'floor': 5}, statuses)
    """

    def select_elevator(
        self,
        call_data: Dict[str, Any],
        elevator_statuses: Dict[str, Dict[str, Any]]
    ) -> Optional[str]:
        call_floor = call_data['floor']

        best_elevator = None
        best_distance = None

        for car_id, status in elevator_statuses.items():
            if not status or status.get('state') != 'IDLE':
                continue

            distance = abs(status['currentFloor'] - call_floor)
            logger.debug("[GCS] %s: Floor=%d, Distance=%d", car_id, status['currentFloor'], distance)

            if best_distance is None or distance < best_distance:
                best_distance = distance
                best_elevator = car_id

        if best_elevator is not None:
            logger.debug("[GCS] Nearest idle car is %s (distance=%d)", best_elevator, best_distance)
        return best_elevator

    def get_strategy_name(self) -> str:
        return "Nearest Idle Car (Distance-based)"
