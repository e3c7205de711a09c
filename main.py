import argparse
import logging
import random
import sys
from pathlib import Path

import yaml

# Configuration
from config import DispatchConfig, apply_env_overrides, load_dispatch_config

# Dispatch engine
from group_control.bootstrap import build_dispatch_system
from simulator.core.exceptions import DispatchError

# Analyzer
from analyzer.consistency import check_consistency
from analyzer.statistics import DispatchStatistics

logger = logging.getLogger("main")


def load_call_script(file_path):
    """
    Load a call script

    Format:
        duration: 300          # simulation seconds to run
        calls:                 # scripted calls
          - {time: 0, from: 2, to: 9}
          - {time: 5, from: 7, to: 1, elevatorId: car-2}
        maintenance:           # optional emergency stops
          - {time: 40, elevatorId: car-1, action: start}
          - {time: 60, elevatorId: car-1, action: clear}
        random_traffic:        # optional Poisson call generation
          rate: 0.05           # calls per second
          until: 250
          seed: 42
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Call script not found: {file_path}")
    with open(file_path, 'r', encoding='utf-8') as f:
        script = yaml.safe_load(f) or {}
    script.setdefault('calls', [])
    script.setdefault('maintenance', [])
    return script


def scripted_calls(env, gcs, calls):
    """Process issuing scripted calls at their scheduled times"""
    for call in sorted(calls, key=lambda c: c.get('time', 0)):
        delay = call.get('time', 0) - env.now
        if delay > 0:
            yield env.timeout(delay)
        try:
            gcs.call(call['from'], call['to'], call.get('elevatorId'))
        except DispatchError as e:
            logger.warning("%.2f [Script] Call %s -> %s rejected: %s", env.now, call['from'], call['to'], e)


def scripted_maintenance(env, gcs, actions):
    """Process starting and clearing maintenance at scheduled times"""
    for action in sorted(actions, key=lambda a: a.get('time', 0)):
        delay = action.get('time', 0) - env.now
        if delay > 0:
            yield env.timeout(delay)
        try:
            if action.get('action', 'start') == 'start':
                gcs.set_maintenance(action['elevatorId'])
            else:
                gcs.clear_maintenance(action['elevatorId'])
        except DispatchError as e:
            logger.warning("%.2f [Script] Maintenance %s rejected: %s", env.now, action, e)


def random_call_generator(env, gcs, min_floor, max_floor, rate, until, seed=None):
    """Process generating calls with exponential inter-arrival times"""
    rng = random.Random(seed)
    while True:
        yield env.timeout(rng.expovariate(rate))
        if env.now > until:
            return
        from_floor = rng.randint(min_floor, max_floor)
        to_floor = rng.randint(min_floor, max_floor - 1)
        if to_floor >= from_floor:
            to_floor += 1
        try:
            gcs.call(from_floor, to_floor)
        except DispatchError as e:
            logger.warning("%.2f [Traffic] Call %d -> %d rejected: %s", env.now, from_floor, to_floor, e)


def run_simulation(config_path=None, calls_path="scenarios/calls/morning.yaml",
                   until=None, plot=False, export=None):
    """
    Set up and run a headless dispatch scenario

    Args:
        config_path: Path to dispatch configuration YAML (defaults when None)
        calls_path: Path to call script YAML
        until: Simulation seconds to run (overrides the script's duration)
        plot: Save a trajectory diagram
        export: Path of a JSON Lines export of all broker messages
    """
    config = load_dispatch_config(config_path) if config_path else DispatchConfig()
    config = apply_env_overrides(config)
    script = load_call_script(calls_path)
    duration = until if until is not None else script.get('duration', 300)

    logger.info("--- Simulation Setup ---")
    logger.info("Dispatch config: %s", config_path or "(defaults)")
    logger.info("Call script: %s", calls_path)

    system = build_dispatch_system(config)
    env, gcs = system.env, system.gcs

    stats = DispatchStatistics(env, system.broker.get_broadcast_pipe())
    stats.set_simulation_metadata({
        'config': config.to_dict(),
        'call_script': str(calls_path),
        'duration': duration,
    })
    env.process(stats.start_listening())

    env.process(scripted_calls(env, gcs, script['calls']))
    env.process(scripted_maintenance(env, gcs, script['maintenance']))
    traffic = script.get('random_traffic')
    if traffic:
        env.process(random_call_generator(
            env, gcs, config.building.min_floor, config.building.max_floor,
            rate=traffic['rate'], until=traffic.get('until', duration), seed=traffic.get('seed')))

    logger.info("--- Simulation Start ---")
    env.run(until=duration)
    logger.info("--- Simulation End ---")

    for car_id, report in check_consistency(system.store, system.event_log).items():
        if report.ok:
            logger.info("[Consistency] %s: OK", car_id)

    stats.print_summary()
    if export:
        stats.save_event_log(export)
    if plot:
        stats.plot_trajectory_diagram()
    return system, stats


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run a headless elevator dispatch scenario")
    parser.add_argument("--config", default=None, help="Dispatch configuration YAML")
    parser.add_argument("--calls", default="scenarios/calls/morning.yaml", help="Call script YAML")
    parser.add_argument("--until", type=float, default=None, help="Simulation seconds to run")
    parser.add_argument("--plot", action="store_true", help="Save a trajectory diagram")
    parser.add_argument("--export", default=None, help="Write all messages to this JSON Lines file")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level), format="%(message)s")
    try:
        run_simulation(args.config, args.calls, args.until, args.plot, args.export)
    except (FileNotFoundError, ValueError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
