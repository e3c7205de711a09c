"""
Elevator Dispatch Engine - core

This package provides the car state machine, the movement scheduler and the
infrastructure adapters (state store, event log, job queue, message broker)
they run on.
"""

__version__ = "0.1.0"

from .core.car import CarSnapshot, Direction, Mode
from .core.events import DomainEvent, EventType
from .core.state_machine import ElevatorStateMachine, Transition
from .core.movement_job import JobKind, JobState, MovementJob, RetryPolicy

from .scheduler.movement_scheduler import MovementScheduler

from .infrastructure.message_broker import MessageBroker
from .infrastructure.realtime_env import RealtimeEnvironment

__all__ = [
    'CarSnapshot',
    'Direction',
    'Mode',
    'DomainEvent',
    'EventType',
    'ElevatorStateMachine',
    'Transition',
    'JobKind',
    'JobState',
    'MovementJob',
    'RetryPolicy',
    'MovementScheduler',
    'MessageBroker',
    'RealtimeEnvironment',
]
