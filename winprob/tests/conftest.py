"""Pytest configuration."""

import os
import queue
import shutil

import pytest


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "engine: mark test as requiring a real UCI engine binary (skipped unless STOCKFISH_PATH resolves)"
    )


def pytest_collection_modifyitems(config, items):
    if shutil.which(os.environ.get("STOCKFISH_PATH", "stockfish")):
        return
    skip_engine = pytest.mark.skip(reason="no engine binary; set STOCKFISH_PATH")
    for item in items:
        if "engine" in item.keywords:
            item.add_marker(skip_engine)


class FakeWorker:
    """Stands in for EngineWorker: records commands, events are fed by the test."""

    multipv = 5

    def __init__(self):
        self.sent = []
        self.events = queue.Queue()
        self.failed = False
        self.started = False

    def start(self):
        self.started = True

    def send(self, command):
        self.sent.append(command)

    def shutdown(self, timeout=3.0):
        pass


@pytest.fixture
def fake_worker():
    return FakeWorker()
