"""Flask REST API and server-sent event stream over the log monitor."""

import json
import logging
from datetime import datetime, timezone

import psutil
from flask import Flask, Response, jsonify, request

from log_monitor.hub import NEW_LOG_ENTRY
from log_monitor.monitor import LogMonitor
from log_monitor.query import parse_filters

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def _sse(data: dict) -> str:
    return f"data: {json.dumps(data)}\n\n"


def create_app(monitor: LogMonitor) -> Flask:
    """Flask application factory."""
    app = Flask(__name__)
    app.config["MONITOR"] = monitor

    @app.route("/api/files")
    def files():
        watched = monitor.files()
        return jsonify(success=True, files=[f.to_dict() for f in watched], count=len(watched))

    @app.route("/api/logs")
    def logs():
        page = request.args.get("page", 1, type=int)
        limit = request.args.get("limit", monitor.config.page_size, type=int)
        try:
            filters = parse_filters(request.args)
        except ValueError as e:
            return jsonify(success=False, error=str(e)), 400

        result = monitor.query_engine.query(filters, page=page, limit=limit)
        return jsonify(
            success=True,
            data=[e.to_dict() for e in result.entries],
            pagination={
                "page": result.page,
                "limit": result.limit,
                "total": result.total,
                "pages": result.pages,
            },
            filters=filters.to_dict(),
        )

    @app.route("/api/stats")
    def stats():
        return jsonify(success=True, stats=monitor.stats())

    @app.route("/api/stream")
    def stream():
        keepalive = monitor.config.stream_keepalive

        def generate():
            # close() on client disconnect runs the finally block
            _, sub = monitor.hub.subscribe()
            logger.info("SSE client connected: subscriber %d", sub.id)
            try:
                yield _sse({
                    "type": "connected",
                    "message": "Connected to log stream",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                })
                for message in sub.events(timeout=keepalive):
                    if message is None:
                        yield ": keep-alive\n\n"
                        continue
                    event, payload = message
                    if event == NEW_LOG_ENTRY:
                        yield _sse({"type": "logEntry", **payload})
            finally:
                monitor.hub.unsubscribe(sub)
                logger.info("SSE client disconnected: subscriber %d", sub.id)

        return Response(
            generate(),
            mimetype="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Access-Control-Allow-Origin": "*",
                "X-Accel-Buffering": "no",
            },
        )

    @app.route("/api/health")
    def health():
        rss = psutil.Process().memory_info().rss
        return jsonify(
            success=True,
            status="healthy",
            uptime=round(monitor.uptime, 3),
            timestamp=datetime.now(timezone.utc).isoformat(),
            version=VERSION,
            memory_rss_mb=round(rss / (1024 * 1024), 1),
        )

    return app
