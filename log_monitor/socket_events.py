"""Socket.IO channel: initial snapshot, live push, and "fetch more" requests."""

import logging
import threading

from flask import Flask, request
from flask_socketio import SocketIO, emit

from log_monitor.hub import Subscription
from log_monitor.monitor import LogMonitor

logger = logging.getLogger(__name__)

PUMP_POLL_SECONDS = 1.0


def _as_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def init_socketio(app: Flask, monitor: LogMonitor, async_mode: str = "threading") -> SocketIO:
    """Attach a SocketIO server to ``app`` and register the channel handlers.

    Each connection gets its own hub subscription and a background pump that
    forwards queued events to that client only.
    """
    socketio = SocketIO(app, cors_allowed_origins="*", async_mode=async_mode)
    subscriptions: dict[str, Subscription] = {}
    lock = threading.Lock()

    def pump(sid: str, sub: Subscription) -> None:
        for message in sub.events(timeout=PUMP_POLL_SECONDS):
            if message is None:
                continue
            event, payload = message
            socketio.emit(event, payload, to=sid)
        if sub.dropped:
            logger.warning("Disconnecting slow client %s", sid)
            socketio.server.disconnect(sid, namespace="/")

    @socketio.on("connect")
    def handle_connect(auth=None):
        sid = request.sid
        snapshot, sub = monitor.hub.subscribe()
        with lock:
            subscriptions[sid] = sub
        logger.info("Client connected: %s. Total clients: %d", sid, monitor.hub.subscriber_count)
        emit("initialData", snapshot)
        socketio.start_background_task(pump, sid, sub)

    @socketio.on("disconnect")
    def handle_disconnect(reason=None):
        sid = request.sid
        with lock:
            sub = subscriptions.pop(sid, None)
        if sub is not None:
            monitor.hub.unsubscribe(sub)
        logger.info("Client disconnected: %s. Total clients: %d", sid, monitor.hub.subscriber_count)

    @socketio.on("requestMoreEntries")
    def handle_request_more(data=None):
        data = data if isinstance(data, dict) else {}
        offset = _as_int(data.get("offset"), 0)
        limit = min(_as_int(data.get("limit"), monitor.config.page_size), monitor.config.max_page_size)
        entries = monitor.store.page(offset, limit)
        emit("moreEntries", [e.to_dict() for e in entries])

    return socketio
