"""Movement scheduling: paced transit and door cycles per car"""

from .movement_scheduler import MovementScheduler

__all__ = ['MovementScheduler']
