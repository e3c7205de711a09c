"""
Configuration management package

Provides configuration classes for the dispatch engine.
"""

from .dispatch import (
    DispatchConfig,
    BuildingConfig,
    TimingConfig,
    RetryConfig,
    SchedulerConfig,
    FleetConfig
)

from .config_loader import (
    ConfigLoader,
    load_dispatch_config,
    save_dispatch_config,
    apply_env_overrides
)

__all__ = [
    'DispatchConfig',
    'BuildingConfig',
    'TimingConfig',
    'RetryConfig',
    'SchedulerConfig',
    'FleetConfig',

    # Loader
    'ConfigLoader',
    'load_dispatch_config',
    'save_dispatch_config',
    'apply_env_overrides',
]
