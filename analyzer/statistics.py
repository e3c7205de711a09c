import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np

logger = logging.getLogger(__name__)

TOPIC_PATTERN = re.compile(r'elevator/(.*?)/(status|events|error)$')


class DispatchStatistics:
    """
    Receives all communications from the broker's broadcast pipe and
    records, as an independent "recorder":
    - car trajectories (floor over time) from status reports
    - call-to-arrival times matched from CALLED and ARRIVED events
    - movement failures from error reports
    Also keeps every message in JSON Lines form for offline playback.
    """
    def __init__(self, env, broadcast_pipe):
        self.env = env
        self.broadcast_pipe = broadcast_pipe
        self.elevator_trajectories: Dict[str, List[Tuple[float, int]]] = {}
        self.arrival_history: Dict[str, List[Tuple[float, int]]] = {}
        self.open_calls: Dict[str, List[Dict[str, Any]]] = {}
        self.service_times: List[float] = []
        self.pickup_times: List[float] = []
        self.failures: List[Dict[str, Any]] = []
        self.event_log: List[Dict[str, Any]] = []
        self.simulation_metadata: Dict[str, Any] = {}

    def set_simulation_metadata(self, metadata: Dict[str, Any]):
        """
        Set simulation metadata (called before simulation starts).
        """
        self.simulation_metadata = {
            "format_version": "1.0",
            "timestamp": datetime.now().isoformat(),
            "config": metadata
        }

    def start_listening(self):
        """
        Main process to start intercepting global broadcasts.
        """
        while True:
            data = yield self.broadcast_pipe.get()
            self.record(data.get('topic', ''), data.get('message', {}))

    def record(self, topic: str, message: Dict[str, Any]):
        """Record one broadcast message"""
        self.event_log.append({"time": self.env.now, "topic": topic, "data": message})

        match = TOPIC_PATTERN.match(topic)
        if not match:
            return
        car_id, kind = match.group(1), match.group(2)

        if kind == 'status':
            trajectory = self.elevator_trajectories.setdefault(car_id, [])
            point = (message.get('timestamp', self.env.now), message['currentFloor'])
            # Record if not exactly the same as the last data point
            if not trajectory or trajectory[-1] != point:
                trajectory.append(point)
        elif kind == 'events':
            self._record_event(car_id, message)
        else:
            self.failures.append(dict(message))
            logger.info("%.2f [Statistics] Failure recorded for %s: %s",
                        self.env.now, car_id, message.get('reason'))

    def _record_event(self, car_id: str, event: Dict[str, Any]):
        event_type = event.get('eventType')
        payload = event.get('payload', {})
        timestamp = event.get('timestamp', self.env.now)

        if event_type == 'CALLED':
            self.open_calls.setdefault(car_id, []).append({
                'from': payload['from_floor'],
                'to': payload['to_floor'],
                'called_at': timestamp,
                'picked_up_at': None,
            })
        elif event_type == 'ARRIVED':
            floor = payload['floor']
            self.arrival_history.setdefault(car_id, []).append((timestamp, floor))
            remaining = []
            for call in self.open_calls.get(car_id, []):
                if call['picked_up_at'] is None and call['from'] == floor:
                    call['picked_up_at'] = timestamp
                    self.pickup_times.append(timestamp - call['called_at'])
                elif call['picked_up_at'] is not None and call['to'] == floor:
                    self.service_times.append(timestamp - call['called_at'])
                    continue
                remaining.append(call)
            self.open_calls[car_id] = remaining
        elif event_type == 'MOVEMENT_STARTED':
            # A car already standing at the pickup floor departs without arriving there
            for call in self.open_calls.get(car_id, []):
                if call['picked_up_at'] is None and call['from'] == payload['from_floor']:
                    call['picked_up_at'] = timestamp
                    self.pickup_times.append(timestamp - call['called_at'])

    def summary(self) -> Dict[str, Any]:
        """Aggregate metrics of the run"""
        return {
            'calls_completed': len(self.service_times),
            'calls_open': sum(len(calls) for calls in self.open_calls.values()),
            'arrivals': sum(len(arrivals) for arrivals in self.arrival_history.values()),
            'failures': len(self.failures),
            'pickup_time': _describe(self.pickup_times),
            'service_time': _describe(self.service_times),
        }

    def print_summary(self):
        summary = self.summary()
        print("\n" + "=" * 60)
        print("   DISPATCH SUMMARY")
        print("=" * 60)
        print(f"  Calls completed: {summary['calls_completed']:>6}")
        print(f"  Calls open:      {summary['calls_open']:>6}")
        print(f"  Arrivals:        {summary['arrivals']:>6}")
        print(f"  Failures:        {summary['failures']:>6}")
        for label, key in (("Pickup Time (Call to Pickup)", 'pickup_time'),
                           ("Service Time (Call to Destination)", 'service_time')):
            stats = summary[key]
            if stats['count']:
                print(f"\n{label}:")
                print(f"  Average: {stats['mean']:>6.2f} seconds")
                print(f"  P95:     {stats['p95']:>6.2f} seconds")
                print(f"  Max:     {stats['max']:>6.2f} seconds")
        print("=" * 60)

    def plot_trajectory_diagram(self, output_filename: str = 'elevator_trajectory_diagram.png',
                                show: bool = False) -> Optional[str]:
        """Draw the travel diagram after the run; returns the saved file name"""
        if not self.elevator_trajectories:
            logger.warning("[Statistics] No trajectories recorded; nothing to plot")
            return None

        fig = plt.figure(figsize=(14, 8))

        elevator_colors = ['#1f77b4', '#ff7f0e', '#2ca02c', '#d62728', '#9467bd', '#8c564b']
        for idx, name in enumerate(sorted(self.elevator_trajectories.keys())):
            trajectory = sorted(self.elevator_trajectories[name], key=lambda x: x[0])
            times, floors = zip(*trajectory)
            color = elevator_colors[idx % len(elevator_colors)]
            plt.step(times, floors, where='post', label=name, linewidth=2.5, color=color, alpha=0.8)

            arrivals = self.arrival_history.get(name, [])
            if arrivals:
                arrival_times, arrival_floors = zip(*arrivals)
                plt.scatter(arrival_times, arrival_floors, marker='o', s=60,
                            facecolors='none', edgecolors=color, zorder=5)

        for failure in self.failures:
            if failure.get('currentFloor') is not None:
                plt.scatter(failure['timestamp'], failure['currentFloor'], marker='x', s=80,
                            color='black', zorder=6)

        plt.title("Elevator Trajectory Diagram (Travel Diagram)")
        plt.xlabel("Time (s)")
        plt.ylabel("Floor")
        plt.grid(True, which='both', linestyle='--', alpha=0.7)

        all_floors = [floor for trajectory in self.elevator_trajectories.values() for _, floor in trajectory]
        min_floor, max_floor = int(min(all_floors)), int(max(all_floors))
        step = max(1, (max_floor - min_floor + 1) // 25)
        plt.yticks(range(min_floor, max_floor + 2, step))

        plt.legend(loc='upper right', fontsize=10)
        plt.savefig(output_filename, dpi=150, bbox_inches='tight')
        logger.info("[Statistics] Trajectory diagram saved to: %s", output_filename)

        if show:
            plt.show()
        plt.close(fig)
        return output_filename

    def save_event_log(self, filename: str = 'dispatch_log.jsonl') -> str:
        """
        Save the recorded messages to a JSON Lines file (metadata first).
        """
        with open(filename, 'w', encoding='utf-8') as f:
            if self.simulation_metadata:
                f.write(json.dumps({
                    "type": "metadata",
                    "data": self.simulation_metadata
                }) + '\n')
            for event in self.event_log:
                f.write(json.dumps(event, ensure_ascii=False) + '\n')

        logger.info("[Statistics] Event log saved: %d messages written to %s", len(self.event_log), filename)
        return filename


def _describe(values: List[float]) -> Dict[str, Any]:
    if not values:
        return {'count': 0, 'mean': None, 'p95': None, 'max': None}
    data = np.asarray(values, dtype=float)
    return {
        'count': int(data.size),
        'mean': float(np.mean(data)),
        'p95': float(np.percentile(data, 95)),
        'max': float(np.max(data)),
    }
