#!/usr/bin/env python3
"""
Position features used by the probability heuristics.

Material balance, endgame flag, opposite-colored bishops and passed pawns,
all read straight off the board. Recomputed for every position.

Usage:
  python features.py "8/5k2/8/3P4/8/8/5K2/8 w - - 0 1"
"""

import sys
from pathlib import Path

import chess

sys.path.insert(0, str(Path(__file__).resolve().parent))
from models import PositionFeatures

PIECE_CP = {
    chess.PAWN: 100,
    chess.KNIGHT: 320,
    chess.BISHOP: 330,
    chess.ROOK: 500,
    chess.QUEEN: 900,
    chess.KING: 0,
}
ENDGAME_MAX_PIECES = 10
OPPOSITE_BISHOPS_MAX_PAWNS = 8


def get_pawns(board: chess.Board, color: chess.Color) -> list[tuple[int, int]]:
    """Get (file, rank) of pawns for color. Standard 0-7 coordinates."""
    return [(chess.square_file(sq), chess.square_rank(sq)) for sq in board.pieces(chess.PAWN, color)]


def material_cp(board: chess.Board) -> int:
    """White material minus Black material, in centipawns."""
    total = 0
    for piece in board.piece_map().values():
        value = PIECE_CP[piece.piece_type]
        total += value if piece.color == chess.WHITE else -value
    return total


def is_endgame(board: chess.Board) -> bool:
    """Queens off and at most 10 other pieces left (kings and pawns count)."""
    pieces = board.piece_map().values()
    queens = sum(1 for p in pieces if p.piece_type == chess.QUEEN)
    others = sum(1 for p in pieces if p.piece_type != chess.QUEEN)
    return queens == 0 and others <= ENDGAME_MAX_PIECES


def square_shade(square: chess.Square) -> int:
    return (chess.square_file(square) + chess.square_rank(square)) % 2


def bishops_opposite_colors(board: chess.Board) -> bool:
    """One bishop each on opposite square colors, no queens, at most 8 pawns."""
    white_bishops = list(board.pieces(chess.BISHOP, chess.WHITE))
    black_bishops = list(board.pieces(chess.BISHOP, chess.BLACK))
    if len(white_bishops) != 1 or len(black_bishops) != 1:
        return False
    if board.pieces(chess.QUEEN, chess.WHITE) or board.pieces(chess.QUEEN, chess.BLACK):
        return False
    pawns = len(board.pieces(chess.PAWN, chess.WHITE)) + len(board.pieces(chess.PAWN, chess.BLACK))
    if pawns > OPPOSITE_BISHOPS_MAX_PAWNS:
        return False
    return square_shade(white_bishops[0]) != square_shade(black_bishops[0])


def is_passed(file: int, rank: int, color: chess.Color, enemy_pawns: set[tuple[int, int]]) -> bool:
    """No enemy pawn ahead on this file or either neighbouring file."""
    ahead = range(rank + 1, 8) if color == chess.WHITE else range(rank - 1, -1, -1)
    for r in ahead:
        for f in (file - 1, file, file + 1):
            if (f, r) in enemy_pawns:
                return False
    return True


def passed_pawn_features(board: chess.Board) -> dict:
    white = get_pawns(board, chess.WHITE)
    black = get_pawns(board, chess.BLACK)
    white_passed = sum(1 for f, r in white if is_passed(f, r, chess.WHITE, set(black)))
    black_passed = sum(1 for f, r in black if is_passed(f, r, chess.BLACK, set(white)))
    return {
        "white_passers": white_passed,
        "black_passers": black_passed,
        # Whole-position flags, not per-pawn geometry.
        "connected": white_passed >= 2 or black_passed >= 2,
        "outside": white_passed >= 1 or black_passed >= 1,
    }


def extract_features(board: chess.Board) -> PositionFeatures:
    return PositionFeatures(
        material_cp=material_cp(board),
        endgame=is_endgame(board),
        opposite_bishops=bishops_opposite_colors(board),
        **passed_pawn_features(board),
    )


def main():
    fen = sys.argv[1] if len(sys.argv) > 1 else chess.STARTING_FEN
    try:
        board = chess.Board(fen)
    except ValueError as e:
        print(f"Invalid FEN {fen[:50]}: {e}", file=sys.stderr)
        sys.exit(1)
    print(extract_features(board))


if __name__ == "__main__":
    main()
