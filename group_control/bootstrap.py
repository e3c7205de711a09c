"""
System wiring

Builds the dispatch engine from a DispatchConfig. Every collaborator is
resolved once here and passed in through constructors.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import simpy

from config.dispatch import DispatchConfig
from simulator.core.state_machine import ElevatorStateMachine
from simulator.infrastructure.event_log import InMemoryEventLog, JsonlEventLog
from simulator.infrastructure.job_queue import SimpyJobQueue
from simulator.infrastructure.message_broker import MessageBroker
from simulator.infrastructure.realtime_env import RealtimeEnvironment
from simulator.infrastructure.state_store import InMemoryStateStore
from simulator.interfaces.event_log import IEventLog
from simulator.interfaces.state_store import IStateStore
from simulator.scheduler.movement_scheduler import MovementScheduler

from .algorithms import create_strategy
from .system import GroupControlSystem

logger = logging.getLogger(__name__)


@dataclass
class DispatchSystem:
    """Handles on every wired component"""
    config: DispatchConfig
    env: simpy.Environment
    store: IStateStore
    event_log: IEventLog
    broker: MessageBroker
    state_machine: ElevatorStateMachine
    queue: SimpyJobQueue
    scheduler: MovementScheduler
    gcs: GroupControlSystem


def build_dispatch_system(config: Optional[DispatchConfig] = None,
                          env: Optional[simpy.Environment] = None,
                          store: Optional[IStateStore] = None,
                          event_log: Optional[IEventLog] = None,
                          broker: Optional[MessageBroker] = None,
                          start_processes: bool = True) -> DispatchSystem:
    """
    Wire the dispatch engine.

    When the store already holds cars (a restart), no initial fleet is created
    and cars left in motion are resumed through the scheduler's recover().

    Args:
        config: Settings (defaults when None)
        env: SimPy environment; a RealtimeEnvironment is created when
            config.realtime_factor > 0, a plain Environment otherwise
        store: State store to use (fresh in-memory store when None)
        event_log: Event log to use (JSON Lines file when
            config.event_log_path is set, in memory otherwise)
        broker: Message broker to use
        start_processes: Start the watchdog and status broadcast processes
    """
    config = config or DispatchConfig()
    config.validate()

    if env is None:
        if config.realtime_factor > 0:
            env = RealtimeEnvironment(speed_factor=config.realtime_factor)
        else:
            env = simpy.Environment()
    if store is None:
        store = InMemoryStateStore()
    if event_log is None:
        event_log = JsonlEventLog(config.event_log_path) if config.event_log_path else InMemoryEventLog()
    if broker is None:
        broker = MessageBroker(env)

    state_machine = ElevatorStateMachine(config.building.min_floor, config.building.max_floor)
    scheduler = MovementScheduler(
        env, store, event_log, broker, state_machine,
        floor_travel_time=config.timing.floor_travel_time,
        door_open_time=config.timing.door_open_time,
        door_dwell_time=config.timing.door_dwell_time,
        door_close_time=config.timing.door_close_time,
        retry_policy=config.retry.to_policy(),
        lease_ttl=config.scheduler.lease_ttl,
    )
    queue = SimpyJobQueue(env, scheduler, workers=config.scheduler.workers,
                          start_retry_delay=config.scheduler.lease_retry_delay)
    scheduler.attach_queue(queue)

    gcs = GroupControlSystem("GCS", env, store, event_log, broker, state_machine, scheduler,
                             create_strategy(config.fleet.allocation_strategy))

    existing = store.scan_all()
    if existing:
        logger.info("%.2f [Bootstrap] Found %d cars in the store; resuming", env.now, len(existing))
        scheduler.recover()
    else:
        for index, floor in enumerate(config.fleet.initial_floors, start=1):
            gcs.initialize(floor, car_id=f"car-{index}")

    if start_processes:
        if config.scheduler.watchdog_interval > 0:
            env.process(scheduler.watchdog(config.scheduler.watchdog_interval))
        if config.status_broadcast_interval > 0:
            env.process(gcs.status_broadcast_process(config.status_broadcast_interval))

    return DispatchSystem(config, env, store, event_log, broker, state_machine, queue, scheduler, gcs)
