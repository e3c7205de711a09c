#!/usr/bin/env python3
"""
Launcher script to run the dispatch engine in real time
Runs the HTTP API, the WebSocket server and the SimPy simulation together
"""
import argparse
import asyncio
import logging
import sys
import threading
import time

from config import DispatchConfig, apply_env_overrides, load_dispatch_config
from group_control.bootstrap import build_dispatch_system
from simulator.infrastructure.message_broker import MessageBroker
from simulator.infrastructure.realtime_env import RealtimeEnvironment
from visualizer.bridge import SimulationBridge
from visualizer.http_server import create_app, run_server
from visualizer.server import VisualizerServer

logger = logging.getLogger("run_with_visualization")


def run_websocket_server(server):
    """Run WebSocket server in asyncio event loop"""
    asyncio.run(server.start())


def build_realtime_system(config, speed):
    """
    Wire a paced simulation for the network servers.

    Nothing consumes the broadcast pipe in a long-running process, so the
    broker only feeds topic subscribers and listeners (the websocket fan-out).
    """
    # speed_factor: 1.0 = real-time, 0.5 = half speed, 2.0 = double speed
    env = RealtimeEnvironment(speed_factor=speed)
    system = build_dispatch_system(config, env=env, broker=MessageBroker(env, broadcast=False))
    bridge = SimulationBridge(env)
    env.process(bridge.pump())
    return system, bridge


def main(argv=None):
    """Main entry point"""
    parser = argparse.ArgumentParser(description="Run the elevator dispatch engine with HTTP and WebSocket APIs")
    parser.add_argument("--config", default=None, help="Dispatch configuration YAML")
    parser.add_argument("--speed", type=float, default=1.0,
                        help="Simulation speed: 1.0 = real-time, 2.0 = double speed")
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--http-port", type=int, default=5000)
    parser.add_argument("--ws-port", type=int, default=8765)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level), format="%(message)s")
    if args.speed <= 0:
        logger.error("--speed must be positive for a real-time run")
        return 1

    config = load_dispatch_config(args.config) if args.config else DispatchConfig()
    config = apply_env_overrides(config)

    system, bridge = build_realtime_system(config, args.speed)
    env = system.env
    logger.info("Simulation speed: %sx (1.0 = real-time)", args.speed)

    server = VisualizerServer(host=args.host, port=args.ws_port, gcs=system.gcs, bridge=bridge)
    server.attach(system.broker)

    app = create_app(system.gcs, bridge)
    http_thread = threading.Thread(target=run_server, args=(app, args.host, args.http_port), daemon=True)
    http_thread.start()

    ws_thread = threading.Thread(target=run_websocket_server, args=(server,), daemon=True)
    ws_thread.start()

    # Wait for servers to start
    time.sleep(1.0)
    logger.info("HTTP API on http://%s:%d/api, WebSocket on ws://%s:%d",
                args.host, args.http_port, args.host, args.ws_port)
    logger.info("Simulation will run indefinitely (press Ctrl+C to stop)")

    try:
        env.run()  # Run forever
    except KeyboardInterrupt:
        logger.info("Simulation interrupted by user.")
    # All server threads are daemon, so they stop with the process
    return 0


if __name__ == '__main__':
    sys.exit(main())
