#!/usr/bin/env python3
"""
HTTP Server for the dispatch engine
Exposes the GroupControlSystem operations as a JSON API
"""
import logging
import threading
import time
import uuid
from collections import OrderedDict
from concurrent.futures import TimeoutError as BridgeTimeout
from datetime import datetime, timezone

from flask import Flask, g, jsonify, request
from flask_cors import CORS

from simulator.core.exceptions import (
    CarNotFound,
    CarUnavailable,
    DispatchError,
    InvalidTransitionError,
    TransientStoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# (exception type, HTTP status, error code), first match wins
ERROR_MAP = [
    (ValidationError, 400, 'VALIDATION_ERROR'),
    (CarNotFound, 404, 'NOT_FOUND'),
    (CarUnavailable, 409, 'CAR_UNAVAILABLE'),
    (InvalidTransitionError, 409, 'INVALID_STATE'),
    (TransientStoreError, 503, 'SERVICE_UNAVAILABLE'),
    (DispatchError, 500, 'INTERNAL_ERROR'),
]


def _timestamp():
    return datetime.now(timezone.utc).isoformat()


def _request_id():
    return request.headers.get('X-Request-Id') or f"req_{uuid.uuid4().hex[:12]}"


def success_response(data, message=None, status=200):
    body = {
        'success': True,
        'data': data,
        'requestId': _request_id(),
        'message': message,
        'metadata': {'timestamp': _timestamp()},
    }
    return jsonify(body), status


def error_response(code, message, status):
    body = {
        'success': False,
        'error': {'code': code, 'message': message, 'requestId': _request_id()},
        'metadata': {'timestamp': _timestamp()},
    }
    return jsonify(body), status


class IdempotencyCache:
    """
    Responses of POST requests carrying X-Idempotency-Key

    Entries expire after ttl seconds; beyond max_entries the oldest entries
    are dropped. A key is marked in flight between begin() and finish() or
    abandon(), so a concurrent duplicate can be refused instead of executed.
    """

    IN_FLIGHT = object()

    def __init__(self, ttl=3600.0, max_entries=1024, clock=time.monotonic):
        if ttl <= 0 or max_entries <= 0:
            raise ValueError("ttl and max_entries must be positive")
        self.ttl = ttl
        self.max_entries = max_entries
        self.clock = clock
        self._entries = OrderedDict()  # key -> (expires_at, (body, status))
        self._in_flight = set()
        self._lock = threading.Lock()

    def begin(self, key):
        """
        Returns the cached (body, status), IN_FLIGHT, or None after marking
        the key in flight for the caller.
        """
        with self._lock:
            self._expire()
            entry = self._entries.get(key)
            if entry is not None:
                return entry[1]
            if key in self._in_flight:
                return self.IN_FLIGHT
            self._in_flight.add(key)
            return None

    def finish(self, key, body, status):
        with self._lock:
            self._in_flight.discard(key)
            self._entries[key] = (self.clock() + self.ttl, (body, status))
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def abandon(self, key):
        with self._lock:
            self._in_flight.discard(key)

    def __len__(self):
        with self._lock:
            self._expire()
            return len(self._entries)

    def _expire(self):
        now = self.clock()
        # insertion order == expiry order, every entry has the same ttl
        while self._entries:
            key, (expires_at, _) = next(iter(self._entries.items()))
            if expires_at > now:
                break
            del self._entries[key]


def _json_object():
    """Request body as a dict; an absent or unparsable body counts as empty"""
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError(f"Request body must be a JSON object, got {type(body).__name__}")
    return body


def _optional_float(name):
    raw = request.args.get(name)
    if raw is None or raw == '':
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number (simulation seconds), got {raw!r}") from None


def create_app(gcs, bridge, idempotency=None):
    """
    Create the Flask application

    Args:
        gcs: GroupControlSystem serving the requests
        bridge: SimulationBridge (or DirectBridge) running facade calls in
            the simulation thread
        idempotency: IdempotencyCache (one-hour entries when None)
    """
    app = Flask(__name__)
    CORS(app)  # Enable CORS for all routes

    if idempotency is None:
        idempotency = IdempotencyCache()
    app.extensions['idempotency'] = idempotency

    def run(fn, *args, **kwargs):
        return bridge.execute(fn, *args, **kwargs)

    @app.errorhandler(DispatchError)
    def handle_dispatch_error(error):
        for error_type, status, code in ERROR_MAP:
            if isinstance(error, error_type):
                if status >= 500:
                    logger.error("[HTTP] %s: %s", code, error)
                return error_response(code, str(error), status)
        return error_response('INTERNAL_ERROR', str(error), 500)

    @app.errorhandler(BridgeTimeout)
    def handle_timeout(error):
        logger.error("[HTTP] Simulation did not answer in time")
        return error_response('SERVICE_UNAVAILABLE', 'Simulation did not respond in time', 503)

    @app.before_request
    def replay_idempotent():
        key = request.headers.get('X-Idempotency-Key')
        if request.method != 'POST' or not key:
            return None
        cached = idempotency.begin(key)
        if cached is IdempotencyCache.IN_FLIGHT:
            logger.warning("[HTTP] Request with idempotency key %s is already in progress", key)
            return error_response('CONFLICT', 'A request with this idempotency key is in progress', 409)
        if cached is not None:
            logger.info("[HTTP] Returning cached idempotent response for %s", key)
            body, status = cached
            return jsonify(body), status
        g.idempotency_key = key
        return None

    @app.after_request
    def store_idempotent(response):
        key = g.pop('idempotency_key', None)
        if key is not None:
            if response.status_code < 500 and response.is_json:
                idempotency.finish(key, response.get_json(), response.status_code)
            else:
                idempotency.abandon(key)
        return response

    @app.teardown_request
    def release_idempotency_key(error=None):
        key = g.pop('idempotency_key', None)
        if key is not None:
            idempotency.abandon(key)

    @app.route('/api/elevators/call', methods=['POST'])
    def call_elevator():
        body = _json_object()
        if 'fromFloor' not in body or 'toFloor' not in body:
            raise ValidationError('fromFloor and toFloor are required')
        car_id = run(gcs.call, body['fromFloor'], body['toFloor'], body.get('elevatorId'))
        snapshot = run(gcs.get_status, car_id)
        return success_response({'elevator': snapshot.to_status()}, 'Elevator called successfully')

    @app.route('/api/elevators/initialize', methods=['POST'])
    def initialize_elevator():
        body = _json_object()
        snapshot = run(gcs.initialize, body.get('initialFloor', 0), body.get('elevatorId'))
        return success_response(snapshot.to_status(), 'Elevator initialized', status=201)

    @app.route('/api/elevators', methods=['GET'])
    def list_elevators():
        cars = run(gcs.get_status)
        return success_response([car.to_status() for car in cars], 'Elevator status retrieved successfully')

    @app.route('/api/elevators/<car_id>/status', methods=['GET'])
    def elevator_status(car_id):
        snapshot = run(gcs.get_status, car_id)
        return success_response(snapshot.to_status(), 'Elevator status retrieved successfully')

    @app.route('/api/elevators/<car_id>/logs', methods=['GET'])
    def elevator_logs(car_id):
        events = run(gcs.get_logs, car_id, _optional_float('startDate'), _optional_float('endDate'))
        return success_response([event.to_dict() for event in events], 'Logs retrieved successfully')

    @app.route('/api/logs', methods=['GET'])
    def all_logs():
        events = run(gcs.get_logs, request.args.get('elevatorId') or None,
                     _optional_float('startDate'), _optional_float('endDate'))
        return success_response([event.to_dict() for event in events], 'Logs retrieved successfully')

    @app.route('/api/elevators/<car_id>/maintenance', methods=['POST'])
    def start_maintenance(car_id):
        snapshot = run(gcs.set_maintenance, car_id)
        return success_response(snapshot.to_status(), 'Elevator in maintenance')

    @app.route('/api/elevators/<car_id>/maintenance', methods=['DELETE'])
    def end_maintenance(car_id):
        snapshot = run(gcs.clear_maintenance, car_id)
        return success_response(snapshot.to_status(), 'Elevator back in service')

    @app.route('/api/queue/stats', methods=['GET'])
    def queue_stats():
        return success_response(run(gcs.queue_stats), 'Queue statistics retrieved')

    @app.route('/api/status')
    def status():
        """Server status endpoint"""
        return jsonify({
            'status': 'ok',
            'server': 'Elevator Dispatch HTTP Server',
            'version': '1.0',
            'simulationTime': gcs.env.now,
        })

    return app


def run_server(app, host='localhost', port=5000, debug=False):
    """Run the Flask server"""
    logger.info("Starting HTTP server on http://%s:%d", host, port)
    logger.info("API endpoints:")
    logger.info("  - POST   /api/elevators/call")
    logger.info("  - POST   /api/elevators/initialize")
    logger.info("  - GET    /api/elevators")
    logger.info("  - GET    /api/elevators/<id>/status")
    logger.info("  - GET    /api/elevators/<id>/logs?startDate=<t>&endDate=<t>")
    logger.info("  - POST   /api/elevators/<id>/maintenance")
    logger.info("  - DELETE /api/elevators/<id>/maintenance")
    logger.info("  - GET    /api/queue/stats")
    logger.info("  - GET    /api/status")

    app.run(host=host, port=port, debug=debug, threaded=True, use_reloader=False)
