"""Allocation algorithms"""

from .nearest_car import NearestIdleCarStrategy

STRATEGIES = {
    'NearestIdleCar': NearestIdleCarStrategy,
}


def create_strategy(name: str):
    """Instantiate an allocation strategy by its configured name"""
    if name not in STRATEGIES:
        raise ValueError(f"Unknown allocation strategy '{name}'. Available: {', '.join(STRATEGIES)}")
    return STRATEGIES[name]()


__all__ = ['NearestIdleCarStrategy', 'STRATEGIES', 'create_strategy']
