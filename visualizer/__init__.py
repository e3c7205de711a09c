"""
Adapters exposing the dispatch engine outside the simulation thread
"""

from .bridge import DirectBridge, SimulationBridge
from .http_server import create_app, run_server
from .server import VisualizerServer

__all__ = ['DirectBridge', 'SimulationBridge', 'create_app', 'run_server', 'VisualizerServer']
