"""
Dispatch configuration tests
"""

from pathlib import Path

import pytest
import yaml

from config import (
    ConfigLoader,
    DispatchConfig,
    RetryConfig,
    SchedulerConfig,
    TimingConfig,
    apply_env_overrides,
    load_dispatch_config,
    save_dispatch_config,
)

SCENARIO = Path(__file__).parent.parent.parent / "scenarios" / "dispatch" / "default.yaml"


def test_defaults():
    config = DispatchConfig()
    assert config.building.min_floor == 0
    assert config.building.max_floor == 100
    assert config.timing.floor_travel_time == 2.0
    assert config.timing.longest_phase == 3.0
    assert config.retry.to_policy().worst_case_wait() == 6.0
    assert config.fleet.initial_floors == [0]
    config.validate()


def test_from_dict_accepts_wrapped_and_bare_sections():
    wrapped = DispatchConfig.from_dict({"dispatch": {"building": {"max_floor": 20}}})
    bare = DispatchConfig.from_dict({"building": {"max_floor": 20}})
    assert wrapped.building.max_floor == bare.building.max_floor == 20
    assert DispatchConfig.from_dict(None) == DispatchConfig()


def test_to_dict_round_trip():
    config = DispatchConfig.from_dict({
        "timing": {"floor_travel_time": 1.0},
        "fleet": {"initial_floors": [0, 5]},
        "event_log_path": "logs/events.jsonl",
    })
    assert DispatchConfig.from_dict(config.to_dict()) == config
    assert "event_log_path" not in DispatchConfig().to_dict()["dispatch"]


@pytest.mark.parametrize("factory", [
    lambda: TimingConfig(floor_travel_time=0),
    lambda: RetryConfig(max_attempts=0),
    lambda: RetryConfig(backoff_factor=0.5),
    lambda: SchedulerConfig(workers=0),
    lambda: SchedulerConfig(lease_ttl=-1),
    lambda: DispatchConfig.from_dict({"building": {"min_floor": 10, "max_floor": 10}}),
    lambda: DispatchConfig.from_dict({"fleet": {"initial_floors": ["3"]}}),
    lambda: DispatchConfig(realtime_factor=-1),
])
def test_invalid_values_are_rejected(factory):
    with pytest.raises(ValueError):
        factory()


def test_validate_checks_fleet_range():
    config = DispatchConfig.from_dict({"fleet": {"initial_floors": [0, 101]}})
    with pytest.raises(ValueError, match="initial_floors"):
        config.validate()


def test_validate_requires_lease_to_outlive_a_retried_step():
    # longest phase 3.0 + backoff 2.0 + 4.0 = 9.0
    config = DispatchConfig.from_dict({"scheduler": {"lease_ttl": 9.0}})
    with pytest.raises(ValueError, match="lease_ttl"):
        config.validate()
    DispatchConfig.from_dict({"scheduler": {"lease_ttl": 9.5}}).validate()


def test_load_shipped_scenario():
    config = load_dispatch_config(SCENARIO)
    assert config.fleet.initial_floors == [0, 0, 50]
    assert config.scheduler.workers == 4


def test_save_and_load(tmp_path):
    config = DispatchConfig.from_dict({"building": {"max_floor": 30}, "fleet": {"initial_floors": [1, 2]}})
    path = tmp_path / "nested" / "dispatch.yaml"
    save_dispatch_config(config, path)

    assert yaml.safe_load(path.read_text(encoding="utf-8"))["dispatch"]["building"]["max_floor"] == 30
    assert ConfigLoader.load_dispatch(path) == config


def test_missing_file():
    with pytest.raises(FileNotFoundError):
        load_dispatch_config("does/not/exist.yaml")


def test_env_overrides_use_milliseconds():
    config = apply_env_overrides(DispatchConfig(), {
        "BUILDING_FLOORS": "40",
        "MOVE_TIMER_PER_FLOOR": "500",
        "DOOR_OPERATION_TIME": "2000",
    })
    assert config.building.max_floor == 40
    assert config.timing.floor_travel_time == 0.5
    assert config.timing.door_open_time == 2.0
    assert config.timing.door_close_time == 2.0
    assert config.timing.door_dwell_time == 1.5


def test_env_overrides_ignore_unset_and_reject_garbage():
    base = DispatchConfig()
    assert apply_env_overrides(base, {"BUILDING_FLOORS": " "}) == base
    with pytest.raises(ValueError, match="MOVE_TIMER_PER_FLOOR"):
        apply_env_overrides(base, {"MOVE_TIMER_PER_FLOOR": "fast"})
