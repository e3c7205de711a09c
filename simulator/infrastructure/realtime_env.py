"""
RealtimeEnvironment

SimPy environment whose clock is paced against wall-clock time, so movement
jobs take the configured number of real seconds per floor and door phase.
"""

import time

import simpy


class RealtimeEnvironment(simpy.Environment):
    """
    SimPy environment with real-time synchronization.

    Args:
        speed_factor (float): Simulation seconds per wall-clock second
            - 1.0 = real-time
            - 2.0 = double speed
            - 0.0 = no pacing (plain SimPy behaviour)
        initial_time (float): Initial simulation time; pass the persisted
            clock when resuming after a restart so stored lease expiries stay
            meaningful

    Example:
        >>> env = RealtimeEnvironment(speed_factor=1.0)
        >>> # a 2.0 s floor transit now takes two real seconds
    """

    def __init__(self, speed_factor=1.0, initial_time=0):
        if speed_factor < 0:
            raise ValueError("speed_factor cannot be negative")
        super().__init__(initial_time=initial_time)
        self.speed_factor = speed_factor
        self._anchor()

    def _anchor(self):
        self.real_start_time = time.monotonic()
        self.sim_start_time = self.now

    def step(self):
        """
        Execute one simulation step, then sleep until wall-clock time has
        caught up with simulation time.
        """
        result = super().step()

        if self.speed_factor > 0:
            sim_elapsed = self.now - self.sim_start_time
            target_real_time = self.real_start_time + (sim_elapsed / self.speed_factor)
            sleep_time = target_real_time - time.monotonic()
            if sleep_time > 0:
                time.sleep(sleep_time)

        return result

    def set_speed(self, speed_factor):
        """
        Change simulation speed at runtime (timing references are reset).
        """
        if speed_factor < 0:
            raise ValueError("speed_factor cannot be negative")
        self.speed_factor = speed_factor
        self._anchor()

    def get_speed(self):
        return self.speed_factor
