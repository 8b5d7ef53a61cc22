"""WebSocket endpoint streaming simulation snapshots to the map client."""

import asyncio
import json
import queue
import threading
from datetime import datetime, timezone
from typing import Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from loguru import logger

from cadsim.comms.event_bus import EventBus

router = APIRouter(prefix="/ws", tags=["websocket"])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConnectionManager:
    """Manages WebSocket connections for real-time updates."""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self.active_connections.add(websocket)
        logger.info(f"WebSocket connected. Total connections: {len(self.active_connections)}")

    async def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            self.active_connections.discard(websocket)
        logger.info(f"WebSocket disconnected. Total connections: {len(self.active_connections)}")

    async def broadcast(self, message: dict):
        """Broadcast a message to all connected clients."""
        if not self.active_connections:
            return

        message_str = json.dumps(message)
        disconnected = set()

        async with self._lock:
            for connection in self.active_connections:
                try:
                    await connection.send_text(message_str)
                except Exception as e:
                    logger.warning(f"Failed to send to websocket: {e}")
                    disconnected.add(connection)

            self.active_connections -= disconnected

    async def send_to(self, websocket: WebSocket, message: dict):
        """Send a message to a specific client."""
        try:
            await websocket.send_text(json.dumps(message))
        except Exception as e:
            logger.warning(f"Failed to send to websocket: {e}")


manager = ConnectionManager()


async def broadcast_sim_event(event_type: str, data):
    await manager.broadcast({"type": event_type, "data": data, "timestamp": _timestamp()})


@router.websocket("/sim")
async def websocket_sim(websocket: WebSocket):
    """Live snapshot stream plus a small command channel (select/assign)."""
    await manager.connect(websocket)

    engine = getattr(websocket.app.state, "simulation_engine", None)
    await manager.send_to(websocket, {"type": "connected", "timestamp": _timestamp()})
    if engine is not None:
        await manager.send_to(
            websocket,
            {"type": "sim_snapshot", "data": engine.snapshot(), "timestamp": _timestamp()},
        )

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await manager.send_to(websocket, {"type": "error", "message": "Invalid JSON"})
                continue
            await handle_client_message(websocket, engine, message)
    except WebSocketDisconnect:
        await manager.disconnect(websocket)


async def handle_client_message(websocket: WebSocket, engine, message: dict):
    """Handle messages from WebSocket clients."""
    msg_type = message.get("type") if isinstance(message, dict) else None

    if msg_type == "ping":
        await manager.send_to(websocket, {"type": "pong", "timestamp": _timestamp()})
        return

    if msg_type in ("select", "assign") and engine is None:
        await manager.send_to(
            websocket, {"type": "error", "message": "Simulation engine not available"}
        )
        return

    if msg_type == "select":
        event = engine.select_event(message.get("event_id"))
        await manager.send_to(
            websocket,
            {"type": "selected", "event_id": event.event_id if event is not None else None},
        )
    elif msg_type == "assign":
        unit_id = message.get("unit_id")
        event = engine.assign(unit_id) if unit_id else None
        if event is None:
            await manager.send_to(
                websocket, {"type": "error", "message": f"Cannot assign {unit_id!r}"}
            )
        else:
            await manager.send_to(
                websocket, {"type": "assigned", "unit_id": unit_id, "event_id": event.event_id}
            )
    else:
        await manager.send_to(
            websocket,
            {"type": "error", "message": f"Unknown message type: {msg_type}"},
        )


class SnapshotThrottle:
    """Keeps only the newest snapshot and flushes it every ``interval``.

    The engine ticks far faster than browsers need frames; intermediate
    snapshots are simply overwritten.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, interval: float = 0.1):
        self._loop = loop
        self._interval = interval
        self._latest: dict | None = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._flush_thread = threading.Thread(
            target=self._flush_loop, daemon=True, name="snapshot-throttle"
        )

    def start(self) -> None:
        self._flush_thread.start()

    def offer(self, snapshot: dict) -> None:
        with self._lock:
            self._latest = snapshot

    def take(self) -> dict | None:
        with self._lock:
            snapshot, self._latest = self._latest, None
        return snapshot

    def _flush_loop(self) -> None:
        while not self._stop.wait(self._interval):
            snapshot = self.take()
            if snapshot is None or self._loop.is_closed():
                continue
            asyncio.run_coroutine_threadsafe(
                broadcast_sim_event("sim_snapshot", snapshot), self._loop
            )

    def stop(self) -> None:
        self._stop.set()


class SimEventBridge:
    """Daemon thread forwarding EventBus messages to WebSocket clients.

    Bridges the threaded EventBus to FastAPI's async WebSocket system.
    Snapshots go through a SnapshotThrottle; everything else is forwarded
    as soon as it arrives.
    """

    def __init__(
        self,
        event_bus: EventBus,
        loop: asyncio.AbstractEventLoop,
        snapshot_interval: float = 0.1,
    ):
        self._event_bus = event_bus
        self._loop = loop
        self._sub = event_bus.subscribe()
        self._throttle = SnapshotThrottle(loop, snapshot_interval)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._bridge_loop, daemon=True, name="sim-ws-bridge")

    def start(self) -> None:
        self._throttle.start()
        self._thread.start()

    def _bridge_loop(self) -> None:
        while not self._stop.is_set():
            try:
                msg = self._sub.get(timeout=0.5)
            except queue.Empty:
                continue
            event_type = msg.get("type", "unknown")
            data = msg.get("data", {})
            if event_type == "sim_snapshot":
                self._throttle.offer(data)
            elif not self._loop.is_closed():
                asyncio.run_coroutine_threadsafe(broadcast_sim_event(event_type, data), self._loop)

    def stop(self) -> None:
        self._stop.set()
        self._throttle.stop()
        self._event_bus.unsubscribe(self._sub)


def start_sim_event_bridge(
    event_bus: EventBus,
    loop: asyncio.AbstractEventLoop,
    snapshot_interval: float = 0.1,
) -> SimEventBridge:
    """Start forwarding simulation events to every connected browser."""
    bridge = SimEventBridge(event_bus, loop, snapshot_interval)
    bridge.start()
    logger.info(f"Simulation WebSocket bridge started ({snapshot_interval * 1000:.0f}ms snapshots)")
    return bridge
