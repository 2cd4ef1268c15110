#!/usr/bin/env python3
"""
Live analysis session.

Owns all mutable analysis state for one board: settings, the merged
variation list, the smoother and the published probabilities. It is the only
consumer of the engine's event queue, and every mutation happens under one
lock so updates are applied strictly in the order the engine produced them.

Usage:
  python session.py --moves e2e4 e7e5 g1f3 --time-control Blitz
  STOCKFISH_PATH=/usr/bin/stockfish python session.py --fen "8/5k2/8/3P4/8/8/5K2/8 w - - 0 1"
"""

import argparse
import os
import queue
import sys
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable

import chess

sys.path.insert(0, str(Path(__file__).resolve().parent))
from engine_worker import EngineWorker
from features import extract_features
from merge_store import VariationStore
from models import (
    TIME_CONTROLS,
    BestMove,
    Closed,
    EngineEvent,
    Go,
    Init,
    Log,
    NewGame,
    OutcomeProbabilities,
    ParsedInfo,
    ParsedUpdate,
    PomInputs,
    PositionFeatures,
    Ready,
    SetPosition,
    Stop,
    TimeControl,
)
from pom import compute_pom
from smoother import Smoother
from uci_parser import to_white_pov

DISPLAY_COUNT = 4
DEFAULT_DEPTH = 20
STOP_TIMEOUT = 1.0
POLL_INTERVAL = 0.01


def get_analysis_depth() -> int:
    return int(os.environ.get("ANALYSIS_DEPTH", DEFAULT_DEPTH))


@dataclass
class AnalysisState:
    """Everything the UI used to keep in a global store, owned by one session."""

    white_rating: int = 1800
    black_rating: int = 1800
    time_control: TimeControl = "Rapid"
    use_book_heuristics: bool = True
    engine_on: bool = True
    engine_available: bool = True
    board: chess.Board = field(default_factory=chess.Board)
    features: PositionFeatures | None = None
    store: VariationStore = field(default_factory=VariationStore)
    smoother: Smoother = field(default_factory=Smoother)
    probabilities: OutcomeProbabilities = field(default_factory=OutcomeProbabilities)
    why: list[str] = field(default_factory=list)
    engine_depth: int = 0
    last_eval_cp: int | None = None
    searching: bool = False
    best_move: str | None = None


class AnalysisSession:
    def __init__(
        self,
        worker: EngineWorker,
        state: AnalysisState | None = None,
        *,
        depth: int | None = None,
        multipv: int | None = None,
        movetime: int | None = None,
        on_publish: Callable[[AnalysisState], None] | None = None,
    ) -> None:
        self.worker = worker
        self.state = state or AnalysisState()
        self.depth = depth or get_analysis_depth()
        self.multipv = multipv or worker.multipv
        self.movetime = movetime
        self.on_publish = on_publish
        self._lock = threading.RLock()
        # Searches that were stopped but whose bestmove has not arrived yet.
        self._stale_searches = 0

    def start(self) -> None:
        self.worker.start()
        self.worker.send(Init())

    # Engine events

    def handle_event(self, event: EngineEvent) -> None:
        with self._lock:
            if self._stale_searches and isinstance(event, (ParsedInfo, BestMove)):
                # Output of a search for a position we already left.
                if isinstance(event, BestMove):
                    self._stale_searches -= 1
                return
            if isinstance(event, ParsedInfo):
                self.on_update(event.update)
            elif isinstance(event, BestMove):
                self.state.searching = False
                self.state.best_move = event.move
            elif isinstance(event, Ready):
                self.state.engine_available = True
            elif isinstance(event, Log):
                print(f"engine: {event.text}", file=sys.stderr)
                if self.worker.failed:
                    self.state.engine_available = False
                    self.state.searching = False
            elif isinstance(event, Closed):
                print(f"engine: exited ({event.returncode})", file=sys.stderr)
                self._stale_searches = 0
                self.state.engine_available = False
                self.state.searching = False

    def on_update(self, update: ParsedUpdate) -> OutcomeProbabilities | None:
        """Merge one engine update and republish the probabilities."""
        with self._lock:
            st = self.state
            record = st.store.apply(to_white_pov(update, st.board.turn))
            if record is None:
                return None
            if st.features is None:
                st.features = extract_features(st.board)

            best = st.store.best_record()
            eval_cp = best.cp if best else None
            result = compute_pom(
                PomInputs(
                    board=st.board,
                    eval_cp=eval_cp,
                    wdl_engine=best.wdl if best else None,
                    variations=st.store.variations(),
                    legal_count=st.board.legal_moves.count(),
                    white_rating=st.white_rating,
                    black_rating=st.black_rating,
                    time_control=st.time_control,
                    features=st.features,
                    last_eval_cp=st.last_eval_cp,
                    use_book_heuristics=st.use_book_heuristics,
                )
            )
            depth = record.depth or 0
            st.engine_depth = depth
            st.probabilities = st.smoother.update(result.probabilities, depth)
            st.why = result.why
            st.last_eval_cp = eval_cp
            if self.on_publish:
                self.on_publish(st)
            return st.probabilities

    def drain(self, timeout: float = 0.0) -> int:
        """Handle every queued event; wait up to `timeout` for the first one.

        The lock is held only while taking and handling one event, never
        while waiting for the next.
        """
        deadline = time.monotonic() + timeout
        handled = 0
        while True:
            with self._lock:
                try:
                    event = self.worker.events.get_nowait()
                except queue.Empty:
                    event = None
                if event is not None:
                    self.handle_event(event)
                    handled += 1
                    continue
            if handled or time.monotonic() >= deadline:
                return handled
            time.sleep(POLL_INTERVAL)

    def pump(self, stop: threading.Event, poll: float = 0.1) -> None:
        """Consumer loop for long-running hosts (the API server)."""
        while not stop.is_set():
            self.drain(timeout=poll)

    def wait_for_bestmove(self, timeout: float) -> bool:
        """Keep handling events until the search reports its best move."""
        deadline = time.monotonic() + timeout
        with self._lock:
            while self.state.searching:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                try:
                    event = self.worker.events.get(timeout=remaining)
                except queue.Empty:
                    return False
                self.handle_event(event)
            return True

    # Position changes

    def change_position(self, board: chess.Board, *, new_game: bool = False) -> None:
        """Finish the old search, forget its results, then analyse `board`."""
        with self._lock:
            st = self.state
            if st.searching:
                self.worker.send(Stop())
                if not self.wait_for_bestmove(STOP_TIMEOUT):
                    print("engine: no bestmove after stop", file=sys.stderr)
                    self._stale_searches += 1
                    st.searching = False
            if new_game:
                self.worker.send(NewGame())
            st.board = board
            st.store.clear()
            st.smoother.reset()
            st.features = None
            st.engine_depth = 0
            st.best_move = None
            self.start_analysis()

    def start_analysis(self) -> None:
        with self._lock:
            st = self.state
            if not (st.engine_on and st.engine_available):
                return
            root = st.board.root()
            fen = "startpos" if root.fen() == chess.STARTING_FEN else root.fen()
            moves = [m.uci() for m in st.board.move_stack]
            self.worker.send(SetPosition(fen, moves))
            self.worker.send(Go(depth=self.depth, movetime=self.movetime, multipv=self.multipv))
            st.searching = True

    def play_move(self, uci: str) -> chess.Move:
        """Play a move in UCI notation. Legality is python-chess's call."""
        with self._lock:
            move = chess.Move.from_uci(uci)
            if move not in self.state.board.legal_moves:
                raise chess.IllegalMoveError(f"illegal uci: {uci!r} in {self.state.board.fen()}")
            board = self.state.board.copy()
            board.push(move)
            self.change_position(board)
            return move

    def set_position(self, fen: str = "startpos", moves: list[str] | None = None) -> None:
        with self._lock:
            board = chess.Board() if fen == "startpos" else chess.Board(fen)
            for uci in moves or []:
                board.push_uci(uci)
            self.change_position(board)

    def new_game(self) -> None:
        self.change_position(chess.Board(), new_game=True)

    def stop(self) -> None:
        with self._lock:
            if self.state.searching:
                self.worker.send(Stop())

    def update_settings(
        self,
        *,
        white_rating: int | None = None,
        black_rating: int | None = None,
        time_control: TimeControl | None = None,
        use_book_heuristics: bool | None = None,
        engine_on: bool | None = None,
    ) -> None:
        with self._lock:
            st = self.state
            if time_control is not None and time_control not in TIME_CONTROLS:
                raise ValueError(f"Unknown time control: {time_control}")
            if white_rating is not None:
                st.white_rating = white_rating
            if black_rating is not None:
                st.black_rating = black_rating
            if time_control is not None:
                st.time_control = time_control
            if use_book_heuristics is not None:
                st.use_book_heuristics = use_book_heuristics
            if engine_on is not None and engine_on != st.engine_on:
                st.engine_on = engine_on
                if engine_on:
                    self.start_analysis()
                else:
                    self.stop()

    def snapshot(self) -> dict:
        with self._lock:
            st = self.state
            p = st.probabilities
            return {
                "white": p.white,
                "draw": p.draw,
                "black": p.black,
                "why": st.why[:DISPLAY_COUNT],
                "depth": st.engine_depth,
                "best_move": st.best_move,
                "searching": st.searching,
                "engine_available": st.engine_available,
            }

    def variations(self) -> list[dict]:
        with self._lock:
            return [asdict(v) for v in self.state.store.variations()]


def format_probabilities(st: AnalysisState) -> str:
    p = st.probabilities
    reasons = "; ".join(st.why[:DISPLAY_COUNT])
    return f"depth {st.engine_depth:2d} | W {p.white:.3f} D {p.draw:.3f} B {p.black:.3f} | {reasons}"


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--fen", default="startpos")
    parser.add_argument("--moves", nargs="*", default=[], help="UCI moves played from --fen")
    parser.add_argument("--depth", type=int, default=None)
    parser.add_argument("--multipv", type=int, default=None)
    parser.add_argument("--movetime", type=int, default=None, help="Milliseconds")
    parser.add_argument("--time-control", choices=TIME_CONTROLS, default="Rapid")
    parser.add_argument("--white-rating", type=int, default=1800)
    parser.add_argument("--black-rating", type=int, default=1800)
    parser.add_argument("--no-book", action="store_true", help="Disable the drawish-opening heuristic")
    parser.add_argument("--timeout", type=float, default=60.0)
    args = parser.parse_args()

    state = AnalysisState(
        white_rating=args.white_rating,
        black_rating=args.black_rating,
        time_control=args.time_control,
        use_book_heuristics=not args.no_book,
    )
    worker = EngineWorker(multipv=args.multipv)
    session = AnalysisSession(
        worker,
        state,
        depth=args.depth,
        movetime=args.movetime,
        on_publish=lambda st: print(format_probabilities(st)),
    )
    session.start()
    try:
        session.set_position(args.fen, args.moves)
    except ValueError as e:
        print(f"Invalid position: {e}", file=sys.stderr)
        worker.shutdown()
        sys.exit(1)

    try:
        if not session.wait_for_bestmove(args.timeout):
            print("Search did not finish in time.", file=sys.stderr)
        st = session.state
        if not st.engine_available:
            print("Engine unavailable. Install Stockfish or set STOCKFISH_PATH.", file=sys.stderr)
        print(format_probabilities(st))
        if st.best_move:
            print(f"Best move: {st.best_move}")
    finally:
        worker.shutdown()


if __name__ == "__main__":
    main()
