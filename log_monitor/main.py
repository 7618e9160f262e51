#!/usr/bin/env python3
"""Realtime Log Monitor — Entry Point."""

import logging
import os
import signal
import sys

from log_monitor.config import load_config
from log_monitor.monitor import LogMonitor
from log_monitor.socket_events import init_socketio
from log_monitor.web import create_app

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [MONITOR] %(levelname)s %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


def _signal_handler(sig, frame):
    logger.info("Shutdown signal received, stopping...")
    sys.exit(0)


def main():
    signal.signal(signal.SIGTERM, _signal_handler)

    config = load_config()
    logger.info("Config: log_dir=%s, pattern=%s, max_entries=%d, watch_mode=%s",
                config.log_dir, config.file_pattern, config.max_entries, config.watch_mode)

    monitor = LogMonitor(config)
    monitor.start()

    app = create_app(monitor)
    socketio = init_socketio(app, monitor)

    logger.info("Log Monitor running on http://%s:%d", config.host, config.port)
    logger.info("REST API: /api/files /api/logs /api/stats /api/health")
    logger.info("Live stream (SSE): /api/stream")

    try:
        socketio.run(app, host=config.host, port=config.port,
                     use_reloader=False, allow_unsafe_werkzeug=True)
    except KeyboardInterrupt:
        pass
    finally:
        monitor.stop()
        logger.info("Log Monitor stopped.")


if __name__ == "__main__":
    main()
