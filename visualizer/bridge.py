"""
Simulation bridge

Runs commands from other threads (Flask request handlers, the websocket
server) inside the SimPy thread, so facade operations stay single-threaded
and every write happens within one SimPy step.
"""

import logging
import queue
from concurrent.futures import Future, TimeoutError
from typing import Any, Callable

import simpy

logger = logging.getLogger(__name__)


class SimulationBridge:
    """
    Thread-safe command queue drained by a SimPy process

    Args:
        env: SimPy environment (run in its own thread)
        poll_interval: Simulation seconds between two drains

    Usage:
        bridge = SimulationBridge(env)
        env.process(bridge.pump())
        # from any other thread:
        car_id = bridge.execute(gcs.call, 2, 9)
    """

    def __init__(self, env: simpy.Environment, poll_interval: float = 0.05):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.env = env
        self.poll_interval = poll_interval
        self.commands = queue.Queue()  # Thread-safe queue for cross-thread communication

    def execute(self, fn: Callable[..., Any], *args, timeout: float = 5.0, **kwargs) -> Any:
        """
        Run fn(*args, **kwargs) in the simulation thread and wait for the result.

        Exceptions raised by fn are re-raised here. A command that times out
        before the simulation picks it up is cancelled and never runs.

        Raises:
            concurrent.futures.TimeoutError: The simulation did not pick up
                or finish the command in time
        """
        future = Future()
        self.commands.put((fn, args, kwargs, future))
        try:
            return future.result(timeout=timeout)
        except TimeoutError:
            if future.cancel():
                logger.warning("%.2f [Bridge] Command %s timed out and was withdrawn",
                               self.env.now, getattr(fn, '__name__', fn))
            raise

    def pump(self):
        """SimPy process draining the command queue"""
        while True:
            self.drain()
            yield self.env.timeout(self.poll_interval)

    def drain(self) -> int:
        """Run every queued command now; returns how many ran"""
        executed = 0
        while True:
            try:
                fn, args, kwargs, future = self.commands.get_nowait()
            except queue.Empty:
                return executed
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                logger.debug("%.2f [Bridge] Command %s raised %s", self.env.now,
                             getattr(fn, '__name__', fn), e)
                future.set_exception(e)
            executed += 1


class DirectBridge:
    """Bridge for a simulation driven from the calling thread (scripts, tests)"""

    def __init__(self, env: simpy.Environment):
        self.env = env

    def execute(self, fn: Callable[..., Any], *args, timeout: float = 5.0, **kwargs) -> Any:
        return fn(*args, **kwargs)
