import time

import pytest

from log_monitor.config import Config
from log_monitor.monitor import LogMonitor
from log_monitor.web import create_app


def wait_for(predicate, timeout=3.0, interval=0.02):
    """Poll ``predicate`` until it returns truthy or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = predicate()
        if result:
            return result
        time.sleep(interval)
    return predicate()


@pytest.fixture
def log_dir(tmp_path):
    d = tmp_path / "logs"
    d.mkdir()
    return d


@pytest.fixture
def config(log_dir):
    return Config(
        log_dir=str(log_dir),
        poll_interval=0.05,
        watch_mode="polling",
        stream_keepalive=0.2,
    )


@pytest.fixture
def monitor(config):
    m = LogMonitor(config)
    yield m
    m.stop()


@pytest.fixture
def app(monitor):
    application = create_app(monitor)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()
