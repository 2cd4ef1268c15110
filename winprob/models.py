"""Data models for the live win/draw/loss estimator."""

from dataclasses import dataclass, field
from typing import Literal

import chess

TimeControl = Literal["Bullet", "Blitz", "Rapid", "Classical"]
TIME_CONTROLS: tuple[TimeControl, ...] = ("Bullet", "Blitz", "Rapid", "Classical")


@dataclass
class ParsedUpdate:
    """One engine `info` line. None means unknown for this update, not zero."""

    multipv: int | None = None
    depth: int | None = None
    nps: int | None = None
    cp: int | None = None
    mate: int | None = None
    pv: list[str] | None = None
    wdl: tuple[int, int, int] | None = None


@dataclass
class VariationRecord:
    """Merged view of one ranked variation (multipv index)."""

    multipv: int
    depth: int | None = None
    nps: int | None = None
    cp: int | None = None
    mate: int | None = None
    pv: list[str] | None = None
    wdl: tuple[int, int, int] | None = None


@dataclass
class PositionFeatures:
    material_cp: int = 0
    endgame: bool = False
    opposite_bishops: bool = False
    white_passers: int = 0
    black_passers: int = 0
    connected: bool = False
    outside: bool = False


@dataclass
class OutcomeProbabilities:
    """White win / draw / Black win. Always sums to 1."""

    white: float = 0.33
    draw: float = 0.34
    black: float = 0.33

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.white, self.draw, self.black)


@dataclass
class PomInputs:
    """Everything the probability pipeline looks at for one computation."""

    board: chess.Board
    eval_cp: int | None = None
    wdl_engine: tuple[int, int, int] | None = None
    variations: list[VariationRecord] = field(default_factory=list)
    legal_count: int = 0
    white_rating: int = 1800
    black_rating: int = 1800
    time_control: TimeControl = "Rapid"
    features: PositionFeatures | None = None
    last_eval_cp: int | None = None
    use_book_heuristics: bool = True


@dataclass
class PomResult:
    white: float
    draw: float
    black: float
    why: list[str] = field(default_factory=list)

    @property
    def probabilities(self) -> OutcomeProbabilities:
        return OutcomeProbabilities(self.white, self.draw, self.black)


# Commands: consumer -> engine process


@dataclass
class Init:
    pass


@dataclass
class NewGame:
    pass


@dataclass
class Stop:
    pass


@dataclass
class Quit:
    pass


@dataclass
class SetPosition:
    """Base position ('startpos' or a FEN) plus UCI moves played from it."""

    fen: str = "startpos"
    moves: list[str] = field(default_factory=list)


@dataclass
class Go:
    depth: int | None = None
    movetime: int | None = None
    multipv: int | None = None


@dataclass
class SetOption:
    name: str
    value: str | int | bool


EngineCommand = Init | NewGame | Stop | Quit | SetPosition | Go | SetOption


# Events: engine process -> consumer


@dataclass
class Ready:
    pass


@dataclass
class Log:
    text: str


@dataclass
class InfoLine:
    """Raw engine output line, passed through untouched."""

    text: str


@dataclass
class ParsedInfo:
    update: ParsedUpdate


@dataclass
class BestMove:
    move: str


@dataclass
class Closed:
    """The engine's output stream ended."""

    returncode: int | None = None


EngineEvent = Ready | Log | InfoLine | ParsedInfo | BestMove | Closed
