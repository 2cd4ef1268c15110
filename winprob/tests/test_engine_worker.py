"""Tests for engine_worker.py"""

import io
import queue
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from engine_worker import EngineWorker, spawn_engine
from models import (
    BestMove,
    Closed,
    Go,
    InfoLine,
    Init,
    Log,
    ParsedInfo,
    ParsedUpdate,
    Ready,
    SetPosition,
)


class FakeStdin:
    def __init__(self):
        self.lines = []
        self.closed = False

    def write(self, text):
        self.lines.append(text.rstrip("\n"))

    def flush(self):
        pass

    def close(self):
        self.closed = True


class FakeProcess:
    def __init__(self, output: str = ""):
        self.stdin = FakeStdin()
        self.stdout = io.StringIO(output)
        self.terminated = False

    def poll(self):
        return 0

    def wait(self, timeout=None):
        return 0

    def terminate(self):
        self.terminated = True

    def kill(self):
        pass


def collect_until_closed(worker: EngineWorker, timeout: float = 2.0) -> list:
    events = []
    while True:
        event = worker.events.get(timeout=timeout)
        events.append(event)
        if isinstance(event, Closed):
            return events


def test_events_follow_engine_output_order():
    output = (
        "id name FakeFish\n"
        "uciok\n"
        "readyok\n"
        "info depth 10 multipv 1 score cp 20 pv e2e4 e7e5\n"
        "\n"
        "bestmove e2e4 ponder e7e5\n"
    )
    proc = FakeProcess(output)
    worker = EngineWorker("fakefish", multipv=5, spawn=lambda path: proc)
    worker.start()
    worker.send(Init())
    events = collect_until_closed(worker)
    worker.shutdown()

    assert events == [
        InfoLine("id name FakeFish"),
        InfoLine("uciok"),
        InfoLine("readyok"),
        Ready(),
        InfoLine("info depth 10 multipv 1 score cp 20 pv e2e4 e7e5"),
        ParsedInfo(ParsedUpdate(multipv=1, depth=10, cp=20, pv=["e2e4", "e7e5"])),
        InfoLine("bestmove e2e4 ponder e7e5"),
        BestMove("e2e4"),
        Closed(0),
    ]


def test_commands_written_in_order_after_handshake():
    proc = FakeProcess()
    worker = EngineWorker("fakefish", multipv=5, spawn=lambda path: proc)
    worker.start()
    worker.send(Init())
    worker.send(SetPosition("startpos", ["e2e4"]))
    worker.send(Go(depth=5, multipv=3))
    worker.shutdown()

    assert proc.stdin.lines == [
        "uci",
        "setoption name UCI_AnalyseMode value true",
        "setoption name MultiPV value 5",
        "setoption name UCI_ShowWDL value true",
        "isready",
        "position startpos moves e2e4",
        "go depth 5 multipv 3",
        "quit",
    ]
    assert proc.stdin.closed is True
    assert worker.running is False


def test_first_command_initialises_engine():
    proc = FakeProcess()
    worker = EngineWorker("fakefish", multipv=2, spawn=lambda path: proc)
    worker.start()
    worker.send(Go(depth=1))
    worker.shutdown()
    assert proc.stdin.lines[0] == "uci"
    assert "go depth 1" in proc.stdin.lines


def test_missing_binary_reports_log_and_drops_commands():
    def spawn(path):
        raise FileNotFoundError(2, "No such file or directory", path)

    worker = EngineWorker("/nonexistent/stockfish", multipv=5, spawn=spawn)
    worker.start()
    worker.send(Init())
    worker.send(Go(depth=3))
    worker.shutdown()

    event = worker.events.get(timeout=1.0)
    assert isinstance(event, Log)
    assert "Failed to start engine" in event.text
    assert worker.failed is True
    with pytest.raises(queue.Empty):
        worker.events.get_nowait()


class UndecodableOutput:
    def __iter__(self):
        yield "readyok\n"
        raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")


def test_undecodable_output_still_closes():
    proc = FakeProcess()
    proc.stdout = UndecodableOutput()
    worker = EngineWorker("fakefish", multipv=1, spawn=lambda path: proc)
    worker.start()
    worker.send(Init())
    events = collect_until_closed(worker)
    worker.shutdown()

    assert events[:2] == [InfoLine("readyok"), Ready()]
    assert isinstance(events[2], Log)
    assert "unreadable" in events[2].text
    assert events[3] == Closed(0)


def test_spawn_replaces_undecodable_bytes():
    with patch("engine_worker.subprocess.Popen") as popen:
        spawn_engine("/opt/sf/stockfish")
    args, kwargs = popen.call_args
    assert args == (["/opt/sf/stockfish"],)
    assert kwargs["text"] is True
    assert kwargs["errors"] == "replace"


def test_engine_path_and_multipv_from_environment(monkeypatch):
    monkeypatch.setenv("STOCKFISH_PATH", "/opt/sf/stockfish")
    monkeypatch.setenv("ANALYSIS_MULTIPV", "3")
    worker = EngineWorker()
    assert worker.path == "/opt/sf/stockfish"
    assert worker.multipv == 3


@pytest.mark.engine
def test_real_engine_reports_best_move():
    worker = EngineWorker(multipv=2)
    worker.start()
    worker.send(Init())
    worker.send(SetPosition("startpos"))
    worker.send(Go(depth=6))
    parsed = []
    try:
        while True:
            event = worker.events.get(timeout=30.0)
            if isinstance(event, ParsedInfo):
                parsed.append(event.update)
            if isinstance(event, BestMove):
                break
    finally:
        worker.shutdown()
    assert any(u.multipv == 2 for u in parsed)
    assert any(u.cp is not None for u in parsed)
