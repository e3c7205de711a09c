"""Core dispatch model: car snapshots, events, jobs and the state machine"""

from .entity import Entity
from .car import CarSnapshot, Direction, Mode, DOOR_MODES, IN_MOTION_MODES
from .events import DomainEvent, EventType
from .state_machine import ElevatorStateMachine, Transition
from .movement_job import JobKind, JobState, MovementJob, RetryPolicy
from .exceptions import (
    DispatchError,
    ValidationError,
    CarUnavailable,
    CarNotFound,
    InvalidTransitionError,
    TransientStoreError,
    LeaseLostError,
    EventSequenceConflict,
    JobFailed,
)

__all__ = [
    'Entity',
    'CarSnapshot',
    'Direction',
    'Mode',
    'DOOR_MODES',
    'IN_MOTION_MODES',
    'DomainEvent',
    'EventType',
    'ElevatorStateMachine',
    'Transition',
    'JobKind',
    'JobState',
    'MovementJob',
    'RetryPolicy',
    'DispatchError',
    'ValidationError',
    'CarUnavailable',
    'CarNotFound',
    'InvalidTransitionError',
    'TransientStoreError',
    'LeaseLostError',
    'EventSequenceConflict',
    'JobFailed',
]
