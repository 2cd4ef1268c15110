"""
UCI protocol text <-> structured messages.

Engine output is read one line at a time. `info` lines become ParsedUpdate
records, `bestmove` lines become a separate signal, everything else is
ignored. Commands from the consumer are encoded back into UCI text.

Usage:
  python uci_parser.py "info depth 12 multipv 1 score cp 34 pv e2e4 e7e5"
"""

import sys
from dataclasses import replace
from pathlib import Path

import chess

sys.path.insert(0, str(Path(__file__).resolve().parent))
from models import (
    EngineCommand,
    Go,
    Init,
    NewGame,
    ParsedUpdate,
    Quit,
    SetOption,
    SetPosition,
    Stop,
)

INFO_MARKER = "info"
BESTMOVE_MARKER = "bestmove"
STARTPOS = "startpos"

# Tokens that carry a single integer value we keep.
INT_FIELDS = {"depth": "depth", "nps": "nps", "multipv": "multipv"}


def _to_int(token: str | None) -> int | None:
    if token is None:
        return None
    try:
        return int(token)
    except ValueError:
        return None


def parse_info_line(line: str) -> ParsedUpdate | None:
    """Extract whatever fields an `info` line carries. Never raises.

    Returns None for anything that is not an info line. Fields that are
    missing or garbled stay None; the rest of the line is still read.
    """
    tokens = line.split()
    if not tokens or tokens[0] != INFO_MARKER:
        return None

    out = ParsedUpdate()
    i = 1
    while i < len(tokens):
        tok = tokens[i]
        nxt = tokens[i + 1] if i + 1 < len(tokens) else None
        if tok in INT_FIELDS:
            value = _to_int(nxt)
            if value is not None:
                setattr(out, INT_FIELDS[tok], value)
                i += 2
                continue
        elif tok == "score":
            # `score cp 20 mate 3` is malformed but survivable: keep both.
            j = i + 1
            while j + 1 < len(tokens) and tokens[j] in ("cp", "mate"):
                value = _to_int(tokens[j + 1])
                if value is None:
                    break
                if tokens[j] == "cp":
                    out.cp = value
                else:
                    out.mate = value
                j += 2
            i = max(j, i + 1)
            continue
        elif tok == "wdl":
            values = [_to_int(t) for t in tokens[i + 1:i + 4]]
            if len(values) == 3 and all(v is not None and v >= 0 for v in values):
                out.wdl = (values[0], values[1], values[2])
                i += 4
                continue
        elif tok == "pv":
            moves = tokens[i + 1:]
            if moves:
                out.pv = moves
            break
        elif tok == "string":
            # Free-form text runs to end of line.
            break
        i += 1
    return out


def parse_bestmove(line: str) -> str | None:
    """Return the recommended move of a `bestmove` line, else None."""
    tokens = line.split()
    if len(tokens) >= 2 and tokens[0] == BESTMOVE_MARKER:
        return tokens[1]
    return None


def to_white_pov(update: ParsedUpdate, turn: chess.Color) -> ParsedUpdate:
    """UCI scores are from the side to move; flip them when Black is to move."""
    if turn == chess.WHITE:
        return update
    return replace(
        update,
        cp=-update.cp if update.cp is not None else None,
        mate=-update.mate if update.mate is not None else None,
        wdl=update.wdl[::-1] if update.wdl is not None else None,
    )


def _option_value(value: str | int | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def format_command(command: EngineCommand) -> list[str]:
    """Encode one command as the UCI line(s) to write to the engine."""
    if isinstance(command, Init):
        return ["uci"]
    if isinstance(command, NewGame):
        return ["ucinewgame"]
    if isinstance(command, Stop):
        return ["stop"]
    if isinstance(command, Quit):
        return ["quit"]
    if isinstance(command, SetPosition):
        base = STARTPOS if command.fen == STARTPOS else f"fen {command.fen}"
        moves = f" moves {' '.join(command.moves)}" if command.moves else ""
        return [f"position {base}{moves}"]
    if isinstance(command, Go):
        parts = ["go"]
        if command.depth is not None:
            parts += ["depth", str(command.depth)]
        if command.movetime is not None:
            parts += ["movetime", str(command.movetime)]
        if command.multipv is not None:
            parts += ["multipv", str(command.multipv)]
        return [" ".join(parts)]
    if isinstance(command, SetOption):
        return [f"setoption name {command.name} value {_option_value(command.value)}"]
    raise TypeError(f"Unknown engine command: {command!r}")


def main():
    for line in sys.argv[1:] or sys.stdin:
        line = line.strip()
        move = parse_bestmove(line)
        if move is not None:
            print(f"bestmove: {move}")
            continue
        print(parse_info_line(line))


if __name__ == "__main__":
    main()
