import logging
from typing import Any, Callable, Dict, List

import simpy

from ..interfaces.publisher import IPublisher

logger = logging.getLogger(__name__)

Listener = Callable[[str, Dict[str, Any]], None]


class MessageBroker(IPublisher):
    """
    Topic-based publish-subscribe fan-out inside the simulation.

    publish() never blocks the caller: topic pipes and the broadcast pipe are
    unbounded SimPy stores, and synchronous listeners (e.g. the websocket
    bridge) are isolated so a failing subscriber cannot stall a movement job.
    """
    def __init__(self, env: simpy.Environment, broadcast: bool = True):
        """
        Initialize the message broker

        Args:
            env (simpy.Environment): SimPy environment
            broadcast (bool): Mirror every message into the broadcast pipe
        """
        self.env = env
        self.topics: Dict[str, simpy.Store] = {}
        self.broadcast_pipe = simpy.Store(self.env) if broadcast else None
        self.listeners: List[Listener] = []
        self.published_count = 0

    def subscribe(self, topic: str) -> simpy.Store:
        """
        Get or create the pipe (Store) for a topic.

        Messages published before the first subscribe() call on a topic are
        not buffered for it.
        """
        if topic not in self.topics:
            self.topics[topic] = simpy.Store(self.env)
        return self.topics[topic]

    def add_listener(self, listener: Listener):
        """Register a callback invoked synchronously for every message"""
        self.listeners.append(listener)

    def remove_listener(self, listener: Listener):
        if listener in self.listeners:
            self.listeners.remove(listener)

    def publish(self, topic: str, payload: Dict[str, Any]):
        """
        Publish a message to the specified topic (fire-and-forget)
        """
        logger.debug("%.2f [Broker] Publish on '%s': %s", self.env.now, topic, payload)
        self.published_count += 1
        pipe = self.topics.get(topic)
        if pipe is not None:
            pipe.put(payload)
        if self.broadcast_pipe is not None:
            self.broadcast_pipe.put({'topic': topic, 'message': payload})
        for listener in list(self.listeners):
            try:
                listener(topic, payload)
            except Exception:
                logger.exception("%.2f [Broker] Listener failed on '%s'; message dropped for it",
                                 self.env.now, topic)

    def get(self, topic: str):
        """
        Wait to receive (get) a message from the specified topic
        """
        return self.subscribe(topic).get()

    def get_broadcast_pipe(self) -> simpy.Store:
        """
        Global broadcast pipe (used by the statistics recorder)
        """
        if self.broadcast_pipe is None:
            raise RuntimeError("Broker was created without a broadcast pipe")
        return self.broadcast_pipe

    def get_current_time(self) -> float:
        """
        Current simulation time, so components outside the simulation need
        no direct dependency on the SimPy environment.
        """
        return self.env.now
