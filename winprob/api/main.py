"""
FastAPI surface for a live analysis session.

Endpoints:
  GET  /probabilities  - Smoothed White/Draw/Black triple and top reasons
  GET  /variations     - Merged engine variations, best first
  GET  /position       - Current FEN, moves played, legal move count
  POST /move           - Play a move in UCI notation
  POST /new-game       - Reset the board
  PUT  /settings       - Ratings, time control, heuristics, engine on/off
  POST /engine/stop    - Ask the engine to stop searching

Usage:
  STOCKFISH_PATH=/usr/bin/stockfish python api/main.py --port 8000
"""

import argparse
import os
import sys
import threading
from contextlib import asynccontextmanager
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from engine_worker import EngineWorker
from models import TimeControl
from session import AnalysisSession

_session: AnalysisSession | None = None
_stop = threading.Event()


def get_session() -> AnalysisSession:
    """Process-wide session, created on first use."""
    global _session
    if _session is None:
        _session = AnalysisSession(EngineWorker())
    return _session


@asynccontextmanager
async def lifespan(app: FastAPI):
    session = get_session()
    session.start()
    _stop.clear()
    consumer = threading.Thread(target=session.pump, args=(_stop,), name="analysis-consumer", daemon=True)
    consumer.start()
    session.start_analysis()
    try:
        yield
    finally:
        _stop.set()
        consumer.join(timeout=1.0)
        session.worker.shutdown()


app = FastAPI(title="Live Win Probability API", version="1.0.0", lifespan=lifespan)


class MoveRequest(BaseModel):
    uci: str  # e.g. "e2e4", "e7e8q"


class SettingsRequest(BaseModel):
    white_rating: int | None = None
    black_rating: int | None = None
    time_control: TimeControl | None = None
    use_book_heuristics: bool | None = None
    engine_on: bool | None = None


def position_response(session: AnalysisSession) -> dict:
    board = session.state.board
    return {
        "fen": board.fen(),
        "moves": [m.uci() for m in board.move_stack],
        "legal_count": board.legal_moves.count(),
    }


@app.get("/probabilities")
def get_probabilities():
    return get_session().snapshot()


@app.get("/variations")
def get_variations():
    return get_session().variations()


@app.get("/position")
def get_position():
    return position_response(get_session())


@app.post("/move")
def play_move(body: MoveRequest):
    session = get_session()
    try:
        session.play_move(body.uci.strip())
    except ValueError:  # chess.InvalidMoveError, chess.IllegalMoveError
        raise HTTPException(status_code=400, detail=f"Invalid move: {body.uci}")
    return position_response(session)


@app.post("/new-game")
def new_game():
    session = get_session()
    session.new_game()
    return position_response(session)


@app.put("/settings")
def update_settings(body: SettingsRequest):
    session = get_session()
    session.update_settings(**body.model_dump(exclude_none=True))
    st = session.state
    return {
        "white_rating": st.white_rating,
        "black_rating": st.black_rating,
        "time_control": st.time_control,
        "use_book_heuristics": st.use_book_heuristics,
        "engine_on": st.engine_on,
    }


@app.post("/engine/stop")
def stop_engine():
    get_session().stop()
    return {"status": "stopping"}


@app.get("/health")
def health():
    session = get_session()
    return {"status": "ok", "engine_available": session.state.engine_available}


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default=os.environ.get("WINPROB_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("WINPROB_PORT", "8000")))
    args = parser.parse_args()
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
