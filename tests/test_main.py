"""
Headless launcher tests
"""

import pytest
import yaml

from main import load_call_script, main, run_simulation


def _write_script(tmp_path, script):
    path = tmp_path / "calls.yaml"
    path.write_text(yaml.safe_dump(script), encoding="utf-8")
    return path


def test_load_call_script_defaults(tmp_path):
    script = load_call_script(_write_script(tmp_path, {"duration": 10}))
    assert script["calls"] == []
    assert script["maintenance"] == []
    with pytest.raises(FileNotFoundError):
        load_call_script(tmp_path / "missing.yaml")


def test_run_simulation_serves_scripted_calls(tmp_path, monkeypatch, capsys):
    for name in ("BUILDING_FLOORS", "MOVE_TIMER_PER_FLOOR", "DOOR_OPERATION_TIME"):
        monkeypatch.delenv(name, raising=False)
    calls = _write_script(tmp_path, {
        "duration": 120,
        "calls": [
            {"time": 0, "from": 0, "to": 5},
            {"time": 3, "from": 5, "to": 5},  # rejected, logged
            {"time": 10, "from": 8, "to": 2},
        ],
        "maintenance": [{"time": 100, "elevatorId": "car-1", "action": "start"}],
    })
    export = tmp_path / "run.jsonl"

    system, stats = run_simulation(calls_path=calls, export=str(export))

    assert system.env.now == 120
    assert stats.summary()["calls_completed"] == 2
    assert system.store.get("car-1").mode.value == "MAINTENANCE"
    assert export.exists()
    assert "DISPATCH SUMMARY" in capsys.readouterr().out


def test_main_reports_missing_script(tmp_path):
    assert main(["--calls", str(tmp_path / "missing.yaml")]) == 1
