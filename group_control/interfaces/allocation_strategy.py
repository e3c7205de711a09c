"""
Allocation Strategy Interface

Defines how a car is selected for a call.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class IAllocationStrategy(ABC):
    """
    Interface for car allocation strategies

    Design Philosophy:
    - The strategy only ranks cars; it never reads the store or provisions
    - Fallbacks (no idle car, no car at all) belong to the AssignmentSelector
    """

    @abstractmethod
    def select_elevator(
        self,
        call_data: Dict[str, Any],
        elevator_statuses: Dict[str, Dict[str, Any]]
    ) -> Optional[str]:
        """
        Select the best car for a call

        Args:
            call_data: Call information
                {
                    'floor': int,          # Pickup floor
                    'destination': int,    # Destination floor
                    'timestamp': float     # Simulation time
                }

            elevator_statuses: Current status of all cars, in enumeration
                order (CarSnapshot.to_status() form)
                {
                    'car-1': {
                        'currentFloor': int,
                        'state': str,          # Mode value, e.g. 'IDLE'
                        'direction': str,      # 'UP', 'DOWN' or 'IDLE'
                        'pendingStops': List[int],
                        ...
                    },
                    ...
                }

        Returns:
            Id of the selected car, or None if the strategy finds no candidate
        """
        pass

    @abstractmethod
    def get_strategy_name(self) -> str:
        """
        Get the name of this strategy (for logging and debugging)
        """
        pass
