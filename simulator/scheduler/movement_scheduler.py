"""
Movement Scheduler

Turns a MOVEMENT_STARTED transition into real-time paced floor advances and a
door cycle, one car at a time.

Guarantees:
- Exclusivity: submit() supersedes waiting jobs for the car, and a job only
  starts once it holds the car's lease in the state store. Running jobs are
  never cancelled; later calls ride along through pending_stops.
- Single write path: commit() appends events to the log, then writes the
  store, then notifies subscribers.
- Retry: every step is retried on TransientStoreError with exponential
  backoff; an exhausted budget fails the job and forces the car to IDLE.
- Resume: every step starts from the persisted snapshot, never from job state,
  so jobs submitted by recover() after a restart continue where the car is.
"""

import logging
from dataclasses import replace
from typing import Callable, List, Optional

import simpy

from ..core.car import CarSnapshot, Direction, Mode, DOOR_MODES
from ..core.exceptions import JobFailed, LeaseLostError, TransientStoreError
from ..core.movement_job import JobKind, MovementJob, RetryPolicy
from ..core.state_machine import ElevatorStateMachine, Transition
from ..interfaces.event_log import IEventLog
from ..interfaces.job_queue import IJobHandler, IJobQueue
from ..interfaces.publisher import IPublisher
from ..interfaces.state_store import IStateStore

logger = logging.getLogger(__name__)


class MovementScheduler(IJobHandler):
    """
    Owns the lifecycle of "this car is now in motion"

    Args:
        env: SimPy environment (timeouts are the only suspension points)
        store: Live car state
        event_log: Durable event record
        publisher: Notification fan-out
        state_machine: Transition logic
        queue: Job queue delivering jobs back to this scheduler
        floor_travel_time: Seconds per floor
        door_open_time: Seconds from DOORS_OPENING to DOORS_OPEN
        door_dwell_time: Seconds from DOORS_OPEN to DOORS_CLOSING
        door_close_time: Seconds from DOORS_CLOSING to IDLE
        retry_policy: Attempts and backoff for each step
        lease_ttl: Lease lifetime, renewed at every step
    """

    def __init__(self, env: simpy.Environment, store: IStateStore, event_log: IEventLog,
                 publisher: IPublisher, state_machine: ElevatorStateMachine,
                 queue: Optional[IJobQueue] = None,
                 floor_travel_time: float = 2.0, door_open_time: float = 1.5,
                 door_dwell_time: float = 1.5, door_close_time: float = 3.0,
                 retry_policy: Optional[RetryPolicy] = None, lease_ttl: float = 60.0):
        self.env = env
        self.store = store
        self.event_log = event_log
        self.publisher = publisher
        self.state_machine = state_machine
        self.queue = queue
        self.floor_travel_time = floor_travel_time
        self.door_delays = {
            Mode.DOORS_OPENING: door_open_time,
            Mode.DOORS_OPEN: door_dwell_time,
            Mode.DOORS_CLOSING: door_close_time,
        }
        self.retry_policy = retry_policy or RetryPolicy()
        self.lease_ttl = lease_ttl

    def attach_queue(self, queue: IJobQueue):
        self.queue = queue

    # --- Write path ---

    def commit(self, transition: Transition) -> CarSnapshot:
        """
        Persist a transition: event log, then state store, then notification.

        Raises:
            TransientStoreError: Log append or store write failed. Retrying
                the same transition is safe: the log ignores an event already
                stored under its sequence number.
        """
        transition = self._reconcile(transition)
        snapshot = transition.snapshot
        for event in transition.events:
            self.event_log.append(snapshot.car_id, event, event.sequence)
        self.store.put(snapshot.car_id, snapshot)
        self._notify(snapshot, transition)
        return snapshot

    def _reconcile(self, transition: Transition) -> Transition:
        """
        Align a transition's sequence numbers with the event log.

        The log may be ahead of the store when an earlier write reached the
        log but not the store. If the logged tail is this same transition (a
        retry), the appends are duplicates and the transition is kept as is;
        otherwise the tail is an abandoned write and the new events are
        numbered after it.
        """
        events = transition.events
        if not events:
            return transition
        car_id = transition.snapshot.car_id
        base = events[0].sequence - 1
        logged = self.event_log.last_sequence(car_id)
        if logged <= base:
            return transition

        tail = [event for event in self.event_log.query(car_id) if event.sequence > base]
        if all(stored.same_content(event) for stored, event in zip(tail, events)):
            return transition

        offset = logged - base
        logger.warning("%.2f [Scheduler] %s: events %d-%d in the log never reached the store; "
                       "renumbering from %d", self.env.now, car_id, base + 1, logged, logged + 1)
        renumbered = [replace(event, sequence=event.sequence + offset) for event in events]
        snapshot = transition.snapshot.copy(sequence=transition.snapshot.sequence + offset)
        return Transition(snapshot, renumbered)

    def _notify(self, snapshot: CarSnapshot, transition: Transition):
        try:
            status = snapshot.to_status()
            status["timestamp"] = self.env.now
            self.publisher.publish(f"elevator/{snapshot.car_id}/status", status)
            for event in transition.events:
                self.publisher.publish(f"elevator/{snapshot.car_id}/events", event.to_dict())
        except Exception:
            logger.exception("%.2f [Scheduler] Notification for %s dropped", self.env.now, snapshot.car_id)

    # --- Submission ---

    def submit(self, car_id: str, from_floor: int, to_floor: int,
               direction: Direction = Direction.IDLE, kind: JobKind = JobKind.MOVE,
               expected_mode: Optional[Mode] = None) -> MovementJob:
        """Supersede the car's waiting jobs and enqueue a new one"""
        if self.queue is None:
            raise RuntimeError("MovementScheduler has no job queue attached")
        self.queue.cancel_if_waiting(lambda job: job.car_id == car_id)
        job = MovementJob(car_id=car_id, from_floor=from_floor, to_floor=to_floor,
                          direction=direction, kind=kind, expected_mode=expected_mode,
                          retry=self.retry_policy)
        return self.queue.enqueue(job)

    def submit_for(self, snapshot: CarSnapshot) -> Optional[MovementJob]:
        """
        Submit the job that continues a car from its current snapshot.

        MOVING cars get a MOVE job; cars in a door phase get a DOOR follow-up
        bound to that phase. Cars at rest need no job.
        """
        if snapshot.mode == Mode.MOVING:
            return self.submit(snapshot.car_id, snapshot.current_floor, snapshot.target_floor,
                               snapshot.direction, JobKind.MOVE)
        if snapshot.mode in DOOR_MODES:
            return self.submit(snapshot.car_id, snapshot.current_floor, snapshot.current_floor,
                               Direction.IDLE, JobKind.DOOR, expected_mode=snapshot.mode)
        return None

    def recover(self) -> List[MovementJob]:
        """
        Resubmit every car left in motion without a waiting or running job,
        and dispatch idle cars still holding stops (left behind by a fail-safe).

        Called at start-up (after a restart) and by the watchdog.
        """
        try:
            cars = self.store.scan_all()
        except TransientStoreError as e:
            logger.warning("%.2f [Scheduler] Recovery scan failed: %s", self.env.now, e)
            return []

        jobs = []
        for car in cars:
            if self.queue.is_active(car.car_id):
                continue
            if car.in_motion:
                logger.warning("%.2f [Scheduler] Resuming %s from floor %d (%s, target=%s)",
                               self.env.now, car.car_id, car.current_floor, car.mode.value, car.target_floor)
                jobs.append(self.submit_for(car))
            elif car.mode == Mode.IDLE and car.pending_stops:
                job = self._dispatch_stranded(car)
                if job is not None:
                    jobs.append(job)
        return jobs

    def _dispatch_stranded(self, car: CarSnapshot) -> Optional[MovementJob]:
        logger.warning("%.2f [Scheduler] Dispatching %s from floor %d to its pending stops %s",
                       self.env.now, car.car_id, car.current_floor, car.pending_stops)
        transition = self.state_machine.dispatch_next(car, self.env.now)
        try:
            snapshot = self.commit(transition)
        except TransientStoreError as e:
            logger.warning("%.2f [Scheduler] Could not dispatch %s, next scan retries: %s",
                           self.env.now, car.car_id, e)
            return None
        return self.submit_for(snapshot)

    def watchdog(self, interval: float):
        """Process that periodically resumes stuck cars"""
        while True:
            yield self.env.timeout(interval)
            self.recover()

    # --- IJobHandler ---

    def try_start(self, job: MovementJob) -> bool:
        if self.store.get(job.car_id) is None:
            return True  # handle() reports the missing car
        acquired = self.store.acquire_lease(job.car_id, job.job_id, self.env.now, self.lease_ttl)
        if not acquired:
            logger.debug("%.2f [Scheduler] %s waits for the lease on %s",
                         self.env.now, job.job_id, job.car_id)
        return acquired

    def handle(self, job: MovementJob):
        """Run one job; schedule its follow-up once the lease is released"""
        logger.info("%.2f [Scheduler] Starting %s job %s for %s: %s -> %s",
                    self.env.now, job.kind.value, job.job_id, job.car_id, job.from_floor, job.to_floor)
        try:
            follow_up = yield from self._run(job)
        finally:
            self._release_lease(job)
        if follow_up is not None:
            self.submit_for(follow_up)

    def on_failed(self, job: MovementJob, error: BaseException):
        """Fail-safe: force the car to IDLE and report the failure"""
        if isinstance(error, LeaseLostError):
            logger.error("%.2f [Scheduler] %s lost the lease on %s; leaving the car to its new owner",
                         self.env.now, job.job_id, job.car_id)
            yield self.env.timeout(0)
            return

        reason = str(error.cause if isinstance(error, JobFailed) and error.cause else error)
        snapshot = yield from self._fail_safe(job, reason)
        self.publisher.publish(f"elevator/{job.car_id}/error", {
            "elevatorId": job.car_id,
            "jobId": job.job_id,
            "error": "Movement failed",
            "reason": reason,
            "currentFloor": snapshot.current_floor if snapshot else None,
            "state": snapshot.mode.value if snapshot else None,
            "timestamp": self.env.now,
        })

    # --- Job body ---

    def _run(self, job: MovementJob):
        car = yield from self._retrying(job, "read", lambda: self._read(job))
        if car is None:
            logger.warning("%.2f [Scheduler] %s: car %s does not exist", self.env.now, job.job_id, job.car_id)
            return None
        if job.expected_mode is not None and car.mode != job.expected_mode:
            logger.debug("%.2f [Scheduler] %s is stale: %s is %s, expected %s", self.env.now,
                         job.job_id, job.car_id, car.mode.value, job.expected_mode.value)
            return None

        if car.mode == Mode.IDLE and car.pending_stops:
            transition = yield from self._step(job, self.state_machine.dispatch_next, (Mode.IDLE,))
            if transition is None:
                return None
            car = transition.snapshot

        if car.mode == Mode.MOVING:
            return (yield from self._transit(job))
        if car.mode in DOOR_MODES:
            return (yield from self._door_phase(job, car.mode))
        return None

    def _transit(self, job: MovementJob):
        """Advance floor by floor until arrival; returns the arrival snapshot"""
        while True:
            yield self.env.timeout(self.floor_travel_time)
            transition = yield from self._step(job, self.state_machine.advance_one_floor, (Mode.MOVING,))
            if transition is None:
                logger.info("%.2f [Scheduler] %s: %s left MOVING, ending transit",
                            self.env.now, job.job_id, job.car_id)
                return None
            car = transition.snapshot
            logger.debug("%.2f [Scheduler] %s reached floor %d", self.env.now, car.car_id, car.current_floor)
            if car.mode != Mode.MOVING:
                logger.info("%.2f [Scheduler] %s arrived at floor %d", self.env.now, car.car_id, car.current_floor)
                return car

    def _door_phase(self, job: MovementJob, mode: Mode):
        """Wait out one door phase and apply it; returns the resulting snapshot"""
        yield self.env.timeout(self.door_delays[mode])
        transition = yield from self._step(job, self.state_machine.advance_door, (mode,))
        if transition is None:
            return None
        car = transition.snapshot
        logger.debug("%.2f [Scheduler] %s doors: %s -> %s", self.env.now, car.car_id, mode.value, car.mode.value)
        return car

    def _step(self, job: MovementJob, operation: Callable[[CarSnapshot, float], Transition],
              expected_modes):
        """
        Re-read, transition and commit one step under the lease.

        Returns None (without writing) if the car is no longer in one of the
        expected modes, e.g. after an emergency stop.
        """
        def attempt():
            self._renew_lease(job)
            car = self.store.get(job.car_id)
            if car is None or car.mode not in expected_modes:
                return None
            transition = operation(car, self.env.now)
            self.commit(transition)
            return transition

        return (yield from self._retrying(job, operation.__name__, attempt))

    def _retrying(self, job: MovementJob, label: str, fn):
        """Call fn, retrying TransientStoreError with exponential backoff"""
        attempt = 0
        while True:
            attempt += 1
            try:
                return fn()
            except LeaseLostError:
                raise
            except TransientStoreError as e:
                if attempt >= job.retry.max_attempts:
                    logger.error("%.2f [Scheduler] %s: %s failed after %d attempts: %s",
                                 self.env.now, job.job_id, label, attempt, e)
                    raise JobFailed(job.job_id, job.car_id, e) from e
                delay = job.retry.delay_for(attempt)
                logger.warning("%.2f [Scheduler] %s: %s failed (attempt %d/%d), retrying in %.1fs: %s",
                               self.env.now, job.job_id, label, attempt, job.retry.max_attempts, delay, e)
                yield self.env.timeout(delay)

    def _read(self, job: MovementJob) -> Optional[CarSnapshot]:
        self._renew_lease(job)
        return self.store.get(job.car_id)

    def _fail_safe(self, job: MovementJob, reason: str):
        def attempt():
            if not self.store.acquire_lease(job.car_id, job.job_id, self.env.now, self.lease_ttl):
                logger.warning("%.2f [Scheduler] %s: lease on %s taken over, skipping fail-safe",
                               self.env.now, job.job_id, job.car_id)
                return None
            car = self.store.get(job.car_id)
            if car is None:
                return None
            transition = self.state_machine.force_idle(car, self.env.now, reason)
            try:
                return self.commit(transition)
            except TransientStoreError as e:
                logger.error("%.2f [Scheduler] %s: failure event for %s not logged (%s); forcing state only",
                             self.env.now, job.job_id, job.car_id, e)
                self.store.put(job.car_id, transition.snapshot)
                self._notify(transition.snapshot, transition)
                return transition.snapshot

        try:
            snapshot = yield from self._retrying(job, "fail-safe", attempt)
        except JobFailed:
            logger.error("%.2f [Scheduler] Could not force %s to IDLE; the watchdog will resume it",
                         self.env.now, job.car_id)
            snapshot = None
        finally:
            self._release_lease(job)
        if snapshot is not None:
            logger.error("%.2f [Scheduler] %s forced to IDLE at floor %d after failure: %s",
                         self.env.now, job.car_id, snapshot.current_floor, reason)
        return snapshot

    # --- Lease ---

    def _renew_lease(self, job: MovementJob):
        if not self.store.acquire_lease(job.car_id, job.job_id, self.env.now, self.lease_ttl):
            if self.store.get(job.car_id) is None:
                return
            raise LeaseLostError(f"Lease on {job.car_id} is no longer held by {job.job_id}")

    def _release_lease(self, job: MovementJob):
        try:
            self.store.release_lease(job.car_id, job.job_id)
        except TransientStoreError as e:
            logger.warning("%.2f [Scheduler] Could not release lease on %s (expires on its own): %s",
                           self.env.now, job.car_id, e)
