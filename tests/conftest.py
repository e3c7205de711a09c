"""
Shared fixtures for the dispatch engine tests
"""

import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import matplotlib
matplotlib.use("Agg")

import pytest
import simpy

from config.dispatch import DispatchConfig, FleetConfig
from group_control.bootstrap import build_dispatch_system
from simulator.core.exceptions import TransientStoreError
from simulator.infrastructure.event_log import InMemoryEventLog
from simulator.infrastructure.message_broker import MessageBroker
from simulator.infrastructure.state_store import InMemoryStateStore


class FlakyStateStore(InMemoryStateStore):
    """
    InMemoryStateStore that raises TransientStoreError on demand

    fail_puts(predicate, times): the next `times` puts of a snapshot matching
    the predicate fail. fail_scans(times): the next `times` scans fail.
    """

    def __init__(self):
        super().__init__()
        self.put_rules = []
        self.scan_failures = 0
        self.failed_puts = 0

    def fail_puts(self, predicate, times=1):
        self.put_rules.append([predicate, times])

    def fail_scans(self, times=1):
        self.scan_failures += times

    def put(self, car_id, snapshot):
        for rule in self.put_rules:
            predicate, remaining = rule
            if remaining > 0 and predicate(snapshot):
                rule[1] -= 1
                self.failed_puts += 1
                raise TransientStoreError(f"injected put failure for {car_id}")
        super().put(car_id, snapshot)

    def scan_all(self):
        if self.scan_failures > 0:
            self.scan_failures -= 1
            raise TransientStoreError("injected scan failure")
        return super().scan_all()


class MessageRecorder:
    """Broker listener keeping every (topic, payload) pair"""

    def __init__(self, broker):
        self.messages = []
        broker.add_listener(self.on_message)

    def on_message(self, topic, payload):
        self.messages.append((topic, payload))

    def on_topic(self, topic):
        return [payload for t, payload in self.messages if t == topic]

    def statuses(self, car_id):
        return self.on_topic(f"elevator/{car_id}/status")


def make_config(initial_floors=(0,), **overrides):
    config = DispatchConfig(fleet=FleetConfig(initial_floors=list(initial_floors)))
    for name, value in overrides.items():
        setattr(config, name, value)
    return config


@pytest.fixture
def env():
    return simpy.Environment()


@pytest.fixture
def store():
    return InMemoryStateStore()


@pytest.fixture
def flaky_store():
    return FlakyStateStore()


@pytest.fixture
def event_log():
    return InMemoryEventLog()


@pytest.fixture
def broker(env):
    return MessageBroker(env)


@pytest.fixture
def build_system():
    """Factory: build_system(initial_floors=(0,), store=None, **kwargs) -> (system, recorder)"""
    def _build(initial_floors=(0,), store=None, env=None, event_log=None, config=None, **kwargs):
        config = config or make_config(initial_floors)
        env = env or simpy.Environment()
        broker = MessageBroker(env)
        recorder = MessageRecorder(broker)
        kwargs.setdefault("start_processes", False)
        system = build_dispatch_system(config, env=env, store=store, event_log=event_log,
                                       broker=broker, **kwargs)
        return system, recorder
    return _build
