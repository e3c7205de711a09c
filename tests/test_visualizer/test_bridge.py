"""
Simulation bridge tests
"""

import threading
from concurrent.futures import Future, TimeoutError as BridgeTimeout

import pytest

from simulator.core.exceptions import CarNotFound
from visualizer.bridge import DirectBridge, SimulationBridge


def test_commands_from_another_thread_run_in_the_simulation(build_system):
    system, _ = build_system(initial_floors=[0])
    bridge = SimulationBridge(system.env, poll_interval=0.5)
    results = {}

    def client():
        results['car'] = bridge.execute(system.gcs.call, 0, 3, timeout=10.0)
        try:
            bridge.execute(system.gcs.get_status, 'ghost', timeout=10.0)
        except CarNotFound as e:
            results['error'] = e

    thread = threading.Thread(target=client)
    thread.start()
    # drive the simulation from this thread until the client is done
    while thread.is_alive():
        bridge.drain()
        thread.join(timeout=0.01)
    bridge.drain()

    assert results['car'] == 'car-1'
    assert isinstance(results['error'], CarNotFound)
    assert system.store.get('car-1').mode.value == 'MOVING'


def test_pump_drains_queued_commands(env):
    bridge = SimulationBridge(env, poll_interval=1.0)
    seen = []
    for value in range(3):
        bridge.commands.put((seen.append, (value,), {}, Future()))

    env.process(bridge.pump())
    env.run(until=0.5)
    assert seen == [0, 1, 2]
    assert bridge.drain() == 0


def test_execute_times_out_without_a_pump(env):
    bridge = SimulationBridge(env)
    with pytest.raises(BridgeTimeout):
        bridge.execute(lambda: None, timeout=0.01)


def test_timed_out_command_never_runs(build_system):
    system, _ = build_system(initial_floors=[0])
    bridge = SimulationBridge(system.env)

    with pytest.raises(BridgeTimeout):
        bridge.execute(system.gcs.call, 0, 3, timeout=0.01)

    assert bridge.drain() == 0
    assert system.store.get('car-1').mode.value == 'IDLE'
    assert system.event_log.query() == []


def test_invalid_poll_interval(env):
    with pytest.raises(ValueError):
        SimulationBridge(env, poll_interval=0)


def test_direct_bridge_calls_through(env):
    assert DirectBridge(env).execute(max, 2, 7) == 7
