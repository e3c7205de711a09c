"""
Elevator System Analyzer

This package provides statistical analysis and consistency checks for the
dispatch engine.

Components:
- DispatchStatistics: Broadcast recorder (trajectories, call-to-arrival times)
- check_consistency: State store vs. event log comparison
"""

__version__ = "0.1.0"

from .statistics import DispatchStatistics
from .consistency import ConsistencyReport, ReplayState, check_consistency, replay_events

__all__ = ['DispatchStatistics', 'ConsistencyReport', 'ReplayState', 'check_consistency', 'replay_events']
