"""
Publisher Interface

Output sink for state deltas pushed to subscribers.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class IPublisher(ABC):
    """
    Interface for notification fan-out

    Best-effort, fire-and-forget: publish() must return immediately, must not
    retry, and must not raise because a subscriber is slow or gone.
    """

    @abstractmethod
    def publish(self, topic: str, payload: Dict[str, Any]):
        """
        Publish a payload on a topic

        Args:
            topic: e.g. 'elevator/<car_id>/status'
            payload: JSON-serializable dictionary
        """
        pass
