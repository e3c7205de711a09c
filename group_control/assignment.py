"""
Assignment Selector

Chooses the car that serves a new call.
"""

import logging
from collections import OrderedDict
from typing import Callable

from simulator.core.car import Mode
from simulator.core.exceptions import TransientStoreError
from simulator.interfaces.state_store import IStateStore

from .interfaces.allocation_strategy import IAllocationStrategy

logger = logging.getLogger(__name__)

# provision(initial_floor) -> id of the newly created car
Provisioner = Callable[[int], str]


class AssignmentSelector:
    """
    Select a car for a call using the configured allocation strategy

    Fallbacks, in order:
    - No candidate from the strategy: the first known car not in maintenance,
      else the first known car (the call then queues behind its transit)
    - No car at all: provision a new car at floor 0
    - Store unreadable: provision a new car (degraded availability)
    """

    def __init__(self, store: IStateStore, strategy: IAllocationStrategy,
                 provisioner: Provisioner, provision_floor: int = 0):
        self.store = store
        self.strategy = strategy
        self.provisioner = provisioner
        self.provision_floor = provision_floor
        logger.info("[GCS] Using strategy: %s", self.strategy.get_strategy_name())

    def assign(self, from_floor: int, to_floor: int, now: float = 0.0) -> str:
        try:
            cars = self.store.scan_all()
        except TransientStoreError as e:
            logger.warning("%.2f [GCS] Store unavailable during assignment (%s); provisioning a new car", now, e)
            return self.provisioner(self.provision_floor)

        if not cars:
            car_id = self.provisioner(self.provision_floor)
            logger.info("%.2f [GCS] No cars known; provisioned %s at floor %d", now, car_id, self.provision_floor)
            return car_id

        statuses = OrderedDict((car.car_id, car.to_status()) for car in cars)
        call_data = {'floor': from_floor, 'destination': to_floor, 'timestamp': now}
        selected = self.strategy.select_elevator(call_data, statuses)
        if selected is not None:
            logger.info("%.2f [GCS] Assigned call %d -> %d to %s", now, from_floor, to_floor, selected)
            return selected

        for car in cars:
            if car.mode != Mode.MAINTENANCE:
                logger.info("%.2f [GCS] No idle car; call %d -> %d queued on %s",
                            now, from_floor, to_floor, car.car_id)
                return car.car_id
        logger.warning("%.2f [GCS] Every car is in maintenance; call %d -> %d given to %s",
                       now, from_floor, to_floor, cars[0].car_id)
        return cars[0].car_id
