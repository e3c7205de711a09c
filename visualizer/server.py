#!/usr/bin/env python3
"""
WebSocket Server for the dispatch engine
Pushes broker notifications (status, events, errors) to browser clients
"""
import asyncio
import json
import logging
import queue

import websockets

logger = logging.getLogger(__name__)


class VisualizerServer:
    """
    Fan-out of broker messages to websocket clients

    Messages arrive from the simulation thread through a broker listener and
    a thread-safe queue; the asyncio loop forwards them to every client.
    Clients may send {'type': 'ping'} and, when a bridge and facade are
    attached, {'type': 'call', 'fromFloor': int, 'toFloor': int}.
    """
    def __init__(self, host='localhost', port=8765, gcs=None, bridge=None):
        self.host = host
        self.port = port
        self.gcs = gcs
        self.bridge = bridge
        self.clients = set()
        self.message_queue = queue.Queue()  # Thread-safe queue for cross-thread communication

    def attach(self, broker):
        """Forward every message published on the broker"""
        broker.add_listener(self.on_broker_message)

    def on_broker_message(self, topic, payload):
        self.queue_message({'type': 'notification', 'topic': topic, 'data': payload})

    def queue_message(self, message):
        """Queue a message to be sent (thread-safe)"""
        self.message_queue.put(message)

    async def register(self, websocket):
        """Register a new client connection"""
        self.clients.add(websocket)
        logger.info("[WebSocket] Client connected. Total clients: %d", len(self.clients))

    async def unregister(self, websocket):
        """Unregister a client connection"""
        self.clients.discard(websocket)
        logger.info("[WebSocket] Client disconnected. Total clients: %d", len(self.clients))

    async def send_to_client(self, websocket, message):
        """Send message to a specific client"""
        try:
            await websocket.send(json.dumps(message))
        except websockets.exceptions.ConnectionClosed:
            await self.unregister(websocket)

    async def broadcast(self, message):
        """Broadcast message to all connected clients"""
        if self.clients:
            disconnected = set()
            for client in list(self.clients):
                try:
                    await client.send(json.dumps(message))
                except websockets.exceptions.ConnectionClosed:
                    disconnected.add(client)

            # Clean up disconnected clients
            for client in disconnected:
                await self.unregister(client)

    async def handle_client(self, websocket):
        """Handle individual client connection"""
        await self.register(websocket)
        try:
            if self.gcs is not None and self.bridge is not None:
                cars = await self._execute(self.gcs.get_status)
                await self.send_to_client(websocket, {
                    'type': 'snapshot', 'elevators': [car.to_status() for car in cars]})

            async for message in websocket:
                try:
                    data = json.loads(message)
                except json.JSONDecodeError:
                    await self.send_to_client(websocket, {'type': 'error', 'message': 'Invalid JSON'})
                    continue
                await self.handle_command(websocket, data)

        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            await self.unregister(websocket)

    async def handle_command(self, websocket, data):
        if data.get('type') == 'ping':
            await self.send_to_client(websocket, {'type': 'pong'})
        elif data.get('type') == 'call' and self.gcs is not None and self.bridge is not None:
            try:
                car_id = await self._execute(self.gcs.call, data.get('fromFloor'),
                                             data.get('toFloor'), data.get('elevatorId'))
            except Exception as e:
                await self.send_to_client(websocket, {'type': 'error', 'message': str(e)})
            else:
                await self.send_to_client(websocket, {'type': 'call_accepted', 'elevatorId': car_id})
        else:
            logger.debug("[WebSocket] Ignoring client message: %s", data)

    async def _execute(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self.bridge.execute(fn, *args))

    async def message_sender(self):
        """Continuously send queued messages to all clients"""
        while True:
            try:
                # Non-blocking check of thread-safe queue
                message = self.message_queue.get_nowait()
                await self.broadcast(message)
            except queue.Empty:
                await asyncio.sleep(0.01)  # 10ms polling interval

    async def start(self):
        """Start the WebSocket server"""
        logger.info("Starting WebSocket server on ws://%s:%d", self.host, self.port)

        sender = asyncio.create_task(self.message_sender())
        try:
            async with websockets.serve(self.handle_client, self.host, self.port):
                await asyncio.Future()  # Run forever
        finally:
            sender.cancel()
