"""
Configuration loader utility

Loads DispatchConfig from YAML files and applies environment overrides.
"""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional, Union

import yaml

from .dispatch import DispatchConfig

logger = logging.getLogger(__name__)

# Environment variables (times in milliseconds)
ENV_BUILDING_FLOORS = "BUILDING_FLOORS"
ENV_MOVE_TIMER_PER_FLOOR = "MOVE_TIMER_PER_FLOOR"
ENV_DOOR_OPERATION_TIME = "DOOR_OPERATION_TIME"


class ConfigLoader:
    """Utility class for loading configuration files"""

    @staticmethod
    def load_dispatch(file_path: Union[str, Path]) -> DispatchConfig:
        """
        Load DispatchConfig from YAML file

        Args:
            file_path: Path to YAML file

        Returns:
            DispatchConfig instance

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If validation fails
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {file_path}")

        with open(file_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)

        config = DispatchConfig.from_dict(data)
        config.validate()

        return config

    @staticmethod
    def save_dispatch(config: DispatchConfig, file_path: Union[str, Path]):
        """
        Save DispatchConfig to YAML file
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        data = config.to_dict()

        with open(file_path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    @staticmethod
    def apply_env_overrides(config: DispatchConfig,
                            environ: Optional[Mapping[str, str]] = None) -> DispatchConfig:
        """
        Override building and timing settings from the environment

        BUILDING_FLOORS sets the top floor; MOVE_TIMER_PER_FLOOR and
        DOOR_OPERATION_TIME are milliseconds (the latter sets both the
        opening and the closing time).

        Raises:
            ValueError: A variable is not an integer, or the result is invalid
        """
        environ = os.environ if environ is None else environ
        data = config.to_dict()
        dispatch = data['dispatch']

        floors = _read_int(environ, ENV_BUILDING_FLOORS)
        if floors is not None:
            dispatch['building']['max_floor'] = floors

        move_ms = _read_int(environ, ENV_MOVE_TIMER_PER_FLOOR)
        if move_ms is not None:
            dispatch['timing']['floor_travel_time'] = move_ms / 1000.0

        door_ms = _read_int(environ, ENV_DOOR_OPERATION_TIME)
        if door_ms is not None:
            dispatch['timing']['door_open_time'] = door_ms / 1000.0
            dispatch['timing']['door_close_time'] = door_ms / 1000.0

        overridden = DispatchConfig.from_dict(data)
        overridden.validate()
        return overridden


def _read_int(environ: Mapping[str, str], name: str) -> Optional[int]:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    logger.info("[Config] %s=%d from environment", name, value)
    return value


# Convenience functions
def load_dispatch_config(file_path: Union[str, Path]) -> DispatchConfig:
    """Load DispatchConfig from YAML file"""
    return ConfigLoader.load_dispatch(file_path)


def save_dispatch_config(config: DispatchConfig, file_path: Union[str, Path]):
    """Save DispatchConfig to YAML file"""
    ConfigLoader.save_dispatch(config, file_path)


def apply_env_overrides(config: DispatchConfig,
                        environ: Optional[Mapping[str, str]] = None) -> DispatchConfig:
    """Return a copy of config with environment overrides applied"""
    return ConfigLoader.apply_env_overrides(config, environ)
