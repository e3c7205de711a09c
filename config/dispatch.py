"""
Dispatch Configuration

Settings for the dispatch-and-movement engine: building range, movement
timing, retry policy, scheduler resources and the initial fleet.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from simulator.core.movement_job import RetryPolicy


@dataclass
class BuildingConfig:
    """Valid floor range (inclusive)"""
    min_floor: int = 0
    max_floor: int = 100

    def __post_init__(self):
        if self.min_floor >= self.max_floor:
            raise ValueError("min_floor must be below max_floor")


@dataclass
class TimingConfig:
    """Movement pacing in simulation seconds"""
    floor_travel_time: float = 2.0   # per floor
    door_open_time: float = 1.5      # DOORS_OPENING -> DOORS_OPEN
    door_dwell_time: float = 1.5     # DOORS_OPEN -> DOORS_CLOSING
    door_close_time: float = 3.0     # DOORS_CLOSING -> IDLE

    def __post_init__(self):
        for name in ('floor_travel_time', 'door_open_time', 'door_dwell_time', 'door_close_time'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

    @property
    def longest_phase(self) -> float:
        return max(self.floor_travel_time, self.door_open_time,
                   self.door_dwell_time, self.door_close_time)


@dataclass
class RetryConfig:
    """Per-step retry policy of movement jobs"""
    max_attempts: int = 3
    backoff_delay: float = 2.0  # seconds before the second attempt
    backoff_factor: float = 2.0

    def __post_init__(self):
        # RetryPolicy carries the range checks
        self.to_policy()

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(self.max_attempts, self.backoff_delay, self.backoff_factor)


@dataclass
class SchedulerConfig:
    """Job queue and lease settings"""
    workers: int = 4
    lease_ttl: float = 60.0
    lease_retry_delay: float = 1.0    # wait before re-offering a job refused the lease
    watchdog_interval: float = 10.0   # 0 disables the watchdog

    def __post_init__(self):
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        if self.lease_ttl <= 0:
            raise ValueError("lease_ttl must be positive")
        if self.lease_retry_delay <= 0:
            raise ValueError("lease_retry_delay must be positive")
        if self.watchdog_interval < 0:
            raise ValueError("watchdog_interval cannot be negative")


@dataclass
class FleetConfig:
    """Cars created at start-up"""
    initial_floors: List[int] = field(default_factory=lambda: [0])
    allocation_strategy: str = "NearestIdleCar"

    def __post_init__(self):
        if not all(isinstance(floor, int) and not isinstance(floor, bool) for floor in self.initial_floors):
            raise ValueError("initial_floors must be a list of integers")


@dataclass
class DispatchConfig:
    """
    Complete dispatch engine configuration
    """
    building: BuildingConfig = field(default_factory=BuildingConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    fleet: FleetConfig = field(default_factory=FleetConfig)

    # Run control
    realtime_factor: float = 0.0  # 1.0 = realtime, 0.0 = as fast as possible
    status_broadcast_interval: float = 1.0  # 0 disables elevator/statuses
    event_log_path: Optional[str] = None  # None keeps the log in memory

    def __post_init__(self):
        if self.realtime_factor < 0:
            raise ValueError("realtime_factor cannot be negative")
        if self.status_broadcast_interval < 0:
            raise ValueError("status_broadcast_interval cannot be negative")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'DispatchConfig':
        """Create DispatchConfig from dictionary"""
        data = data or {}
        dispatch_data = data.get('dispatch', data)

        building_data = dispatch_data.get('building', {})
        building = BuildingConfig(
            min_floor=building_data.get('min_floor', 0),
            max_floor=building_data.get('max_floor', 100)
        )

        timing_data = dispatch_data.get('timing', {})
        timing = TimingConfig(
            floor_travel_time=timing_data.get('floor_travel_time', 2.0),
            door_open_time=timing_data.get('door_open_time', 1.5),
            door_dwell_time=timing_data.get('door_dwell_time', 1.5),
            door_close_time=timing_data.get('door_close_time', 3.0)
        )

        retry_data = dispatch_data.get('retry', {})
        retry = RetryConfig(
            max_attempts=retry_data.get('max_attempts', 3),
            backoff_delay=retry_data.get('backoff_delay', 2.0),
            backoff_factor=retry_data.get('backoff_factor', 2.0)
        )

        scheduler_data = dispatch_data.get('scheduler', {})
        scheduler = SchedulerConfig(
            workers=scheduler_data.get('workers', 4),
            lease_ttl=scheduler_data.get('lease_ttl', 60.0),
            lease_retry_delay=scheduler_data.get('lease_retry_delay', 1.0),
            watchdog_interval=scheduler_data.get('watchdog_interval', 10.0)
        )

        fleet_data = dispatch_data.get('fleet', {})
        fleet = FleetConfig(
            initial_floors=list(fleet_data.get('initial_floors', [0])),
            allocation_strategy=fleet_data.get('allocation_strategy', 'NearestIdleCar')
        )

        return cls(
            building=building,
            timing=timing,
            retry=retry,
            scheduler=scheduler,
            fleet=fleet,
            realtime_factor=dispatch_data.get('realtime_factor', 0.0),
            status_broadcast_interval=dispatch_data.get('status_broadcast_interval', 1.0),
            event_log_path=dispatch_data.get('event_log_path')
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization"""
        result = {
            'dispatch': {
                'building': {
                    'min_floor': self.building.min_floor,
                    'max_floor': self.building.max_floor
                },
                'timing': {
                    'floor_travel_time': self.timing.floor_travel_time,
                    'door_open_time': self.timing.door_open_time,
                    'door_dwell_time': self.timing.door_dwell_time,
                    'door_close_time': self.timing.door_close_time
                },
                'retry': {
                    'max_attempts': self.retry.max_attempts,
                    'backoff_delay': self.retry.backoff_delay,
                    'backoff_factor': self.retry.backoff_factor
                },
                'scheduler': {
                    'workers': self.scheduler.workers,
                    'lease_ttl': self.scheduler.lease_ttl,
                    'lease_retry_delay': self.scheduler.lease_retry_delay,
                    'watchdog_interval': self.scheduler.watchdog_interval
                },
                'fleet': {
                    'initial_floors': list(self.fleet.initial_floors),
                    'allocation_strategy': self.fleet.allocation_strategy
                },
                'realtime_factor': self.realtime_factor,
                'status_broadcast_interval': self.status_broadcast_interval
            }
        }

        if self.event_log_path is not None:
            result['dispatch']['event_log_path'] = self.event_log_path

        return result

    def validate(self):
        """Validate configuration consistency"""
        for floor in self.fleet.initial_floors:
            if not (self.building.min_floor <= floor <= self.building.max_floor):
                raise ValueError(
                    f"fleet.initial_floors entry {floor} outside "
                    f"{self.building.min_floor}-{self.building.max_floor}")

        # A lease must outlive one step including its full backoff
        longest_step = self.timing.longest_phase + self.retry.to_policy().worst_case_wait()
        if self.scheduler.lease_ttl <= longest_step:
            raise ValueError(
                f"scheduler.lease_ttl ({self.scheduler.lease_ttl}) must exceed the longest "
                f"step including retries ({longest_step})")
