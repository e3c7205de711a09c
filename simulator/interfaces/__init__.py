"""Interface definitions for the dispatch engine's collaborators"""

from .state_store import IStateStore
from .event_log import IEventLog
from .publisher import IPublisher
from .job_queue import IJobHandler, IJobQueue

__all__ = [
    'IStateStore',
    'IEventLog',
    'IPublisher',
    'IJobHandler',
    'IJobQueue',
]
