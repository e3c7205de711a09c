"""
Entity base class for long-running SimPy processes.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from typing import Optional

import simpy

logger = logging.getLogger(__name__)


class Entity(ABC):
    """
    Abstract base class for entities that live as SimPy processes.

    The run() generator is started as a process from the constructor, so a
    subclass must finish its own initialization before calling
    super().__init__().
    """
    # Entity ID counter shared across all class instances
    _entity_id_counter = itertools.count()

    def __init__(self, env: simpy.Environment, name: Optional[str] = None):
        self.env = env
        self.entity_id: int = next(self._entity_id_counter)
        self.name: str = name if name is not None else f"{self.__class__.__name__}_{self.entity_id}"
        self.state: str = "IDLE"
        self._process = self.env.process(self.run())
        logger.debug('%.2f: Entity "%s" (%s, ID:%d) created.',
                     self.env.now, self.name, self.__class__.__name__, self.entity_id)

    @abstractmethod
    def run(self):
        """
        Main SimPy process body (generator).

        Typically an infinite loop that yields on events and timeouts.
        """

    def set_state(self, new_state: str):
        if self.state != new_state:
            old_state = self.state
            self.state = new_state
            self._on_state_changed(old_state, new_state)

    def get_state(self) -> str:
        return self.state

    def _on_state_changed(self, old_state: str, new_state: str):
        """Hook called on every state change; subclasses may extend it"""
        logger.debug('%.2f: Entity "%s" state transition: %s -> %s',
                     self.env.now, self.name, old_state, new_state)

    @property
    def process(self) -> simpy.Process:
        """SimPy process running this entity (can be interrupted)"""
        return self._process
