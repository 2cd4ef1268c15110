#!/usr/bin/env python3
"""
Engine actor: one UCI engine process behind a command queue and an event queue.

Commands are written to the engine in arrival order by a command thread.
Engine output is read by a reader thread and turned into events in exactly
the order the engine printed it: the raw line first, then its parsed form,
then any best-move or ready signal it carries. Nothing crosses the boundary
except queue messages.

Usage:
  STOCKFISH_PATH=/usr/bin/stockfish python engine_worker.py --depth 12
"""

import argparse
import os
import queue
import subprocess
import sys
import threading
from pathlib import Path
from typing import Callable

sys.path.insert(0, str(Path(__file__).resolve().parent))
from models import (
    BestMove,
    Closed,
    EngineCommand,
    EngineEvent,
    Go,
    InfoLine,
    Init,
    Log,
    ParsedInfo,
    Quit,
    Ready,
    SetOption,
    SetPosition,
)
from uci_parser import format_command, parse_bestmove, parse_info_line

DEFAULT_MULTIPV = 5


def get_engine_path() -> str:
    """Engine binary from environment."""
    return os.environ.get("STOCKFISH_PATH", "stockfish")


def get_multipv() -> int:
    return int(os.environ.get("ANALYSIS_MULTIPV", DEFAULT_MULTIPV))


def analysis_options(multipv: int) -> list[SetOption]:
    return [
        SetOption("UCI_AnalyseMode", True),
        SetOption("MultiPV", multipv),
        SetOption("UCI_ShowWDL", True),
    ]


def spawn_engine(path: str) -> subprocess.Popen:
    return subprocess.Popen(
        [path],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        errors="replace",
        bufsize=1,
    )


class EngineWorker:
    def __init__(
        self,
        path: str | None = None,
        *,
        multipv: int | None = None,
        spawn: Callable[[str], subprocess.Popen] = spawn_engine,
    ) -> None:
        self.path = path or get_engine_path()
        self.multipv = multipv or get_multipv()
        self.commands: queue.Queue[EngineCommand | None] = queue.Queue()
        self.events: queue.Queue[EngineEvent] = queue.Queue()
        self._spawn = spawn
        self._proc: subprocess.Popen | None = None
        self._failed = False
        self._write_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._reader: threading.Thread | None = None

    @property
    def failed(self) -> bool:
        return self._failed

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._thread = threading.Thread(target=self._run, name="engine-commands", daemon=True)
        self._thread.start()

    def send(self, command: EngineCommand) -> None:
        self.commands.put(command)

    def shutdown(self, timeout: float = 3.0) -> None:
        """Ask the engine to quit and wait for the command thread to finish."""
        if not self.running:
            return
        self.commands.put(Quit())
        self._thread.join(timeout)

    def _emit(self, event: EngineEvent) -> None:
        self.events.put(event)

    def _run(self) -> None:
        while True:
            command = self.commands.get()
            if command is None:
                break
            self._handle(command)
            if isinstance(command, Quit):
                break

    def _handle(self, command: EngineCommand) -> None:
        if isinstance(command, Init):
            self._failed = False
            self._ensure_engine()
            return
        if isinstance(command, Quit) and self._proc is None:
            return
        if not self._ensure_engine():
            return
        for line in format_command(command):
            self._write(line)
        if isinstance(command, Quit):
            self._wait_for_exit()

    def _ensure_engine(self) -> bool:
        if self._proc is not None:
            return True
        if self._failed:
            return False
        try:
            self._proc = self._spawn(self.path)
        except OSError as e:
            self._failed = True
            self._emit(Log(f"Failed to start engine {self.path}: {e}"))
            return False

        self._reader = threading.Thread(target=self._read_output, name="engine-output", daemon=True)
        self._reader.start()
        self._write("uci")
        for option in analysis_options(self.multipv):
            for line in format_command(option):
                self._write(line)
        self._write("isready")
        return True

    def _write(self, line: str) -> None:
        with self._write_lock:
            if self._proc is None or self._proc.stdin is None:
                return
            try:
                self._proc.stdin.write(line + "\n")
                self._proc.stdin.flush()
            except (BrokenPipeError, ValueError, OSError) as e:
                self._emit(Log(f"Engine write failed ({line}): {e}"))

    def _read_output(self) -> None:
        proc = self._proc
        try:
            for raw in proc.stdout:
                line = raw.strip()
                if not line:
                    continue
                self._emit(InfoLine(line))
                update = parse_info_line(line)
                if update is not None:
                    self._emit(ParsedInfo(update))
                move = parse_bestmove(line)
                if move is not None:
                    self._emit(BestMove(move))
                if line == "readyok":
                    self._emit(Ready())
        except (OSError, ValueError) as e:
            self._emit(Log(f"Engine output unreadable: {e}"))
        self._emit(Closed(proc.poll()))

    def _wait_for_exit(self, timeout: float = 2.0) -> None:
        proc = self._proc
        if proc.stdin:
            try:
                proc.stdin.close()
            except OSError:
                pass
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.terminate()
            try:
                proc.wait(timeout=1.0)
            except subprocess.TimeoutExpired:
                proc.kill()


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--fen", default="startpos")
    parser.add_argument("--depth", type=int, default=12)
    parser.add_argument("--timeout", type=float, default=30.0)
    args = parser.parse_args()

    worker = EngineWorker()
    worker.start()
    worker.send(Init())
    worker.send(SetPosition(args.fen))
    worker.send(Go(depth=args.depth, multipv=worker.multipv))
    try:
        while True:
            try:
                event = worker.events.get(timeout=args.timeout)
            except queue.Empty:
                print("Engine went quiet.", file=sys.stderr)
                break
            if isinstance(event, Log):
                print(event.text, file=sys.stderr)
                if worker.failed:
                    break
            elif isinstance(event, InfoLine):
                print(event.text)
            elif isinstance(event, (BestMove, Closed)):
                break
    finally:
        worker.shutdown()


if __name__ == "__main__":
    main()
