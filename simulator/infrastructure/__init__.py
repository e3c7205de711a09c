"""Infrastructure adapters for the dispatch engine"""

from .message_broker import MessageBroker
from .realtime_env import RealtimeEnvironment
from .state_store import InMemoryStateStore
from .event_log import InMemoryEventLog, JsonlEventLog
from .job_queue import SimpyJobQueue, QueueWorker, JobRecord

__all__ = [
    'MessageBroker',
    'RealtimeEnvironment',
    'InMemoryStateStore',
    'InMemoryEventLog',
    'JsonlEventLog',
    'SimpyJobQueue',
    'QueueWorker',
    'JobRecord',
]
