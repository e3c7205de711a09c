"""
Real-time launcher tests (no servers started)
"""

from concurrent.futures import Future

from config.dispatch import DispatchConfig
from run_with_visualization import build_realtime_system, main


def test_realtime_system_does_not_buffer_broadcasts():
    system, bridge = build_realtime_system(DispatchConfig(), speed=1000.0)
    assert system.broker.broadcast_pipe is None

    received = []
    system.broker.add_listener(lambda topic, payload: received.append(topic))
    bridge.commands.put((system.gcs.call, (0, 2), {}, Future()))
    system.env.run(until=10)  # 10 simulated seconds in about 10 ms

    assert system.store.get("car-1").current_floor == 2
    assert "gcs/assignment" in received
    assert system.broker.published_count > 0


def test_main_rejects_a_non_positive_speed():
    assert main(["--speed", "0"]) == 1
