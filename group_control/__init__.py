"""
Elevator Group Control System

This package assigns calls to cars and exposes the external operations of
the dispatch engine.
"""

__version__ = "0.1.0"

from .system import GroupControlSystem
from .assignment import AssignmentSelector
from .bootstrap import DispatchSystem, build_dispatch_system

__all__ = ['GroupControlSystem', 'AssignmentSelector', 'DispatchSystem', 'build_dispatch_system']
