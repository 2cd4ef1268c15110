"""Tests for features.py"""

import sys
from pathlib import Path

import chess

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from features import (
    bishops_opposite_colors,
    extract_features,
    is_endgame,
    material_cp,
    passed_pawn_features,
)


def test_starting_position():
    features = extract_features(chess.Board())
    assert features.material_cp == 0
    assert features.endgame is False
    assert features.opposite_bishops is False
    assert features.white_passers == 0
    assert features.black_passers == 0
    assert features.connected is False
    assert features.outside is False


def test_material_is_white_minus_black():
    assert material_cp(chess.Board("4k3/8/8/8/8/8/8/3QK3 w - - 0 1")) == 900
    assert material_cp(chess.Board("rn2k3/8/8/8/8/8/8/4K3 w - - 0 1")) == -820


def test_endgame_needs_queens_off_and_few_pieces():
    assert is_endgame(chess.Board("8/8/4k3/8/8/3K4/8/R7 w - - 0 1")) is True
    assert is_endgame(chess.Board("4k3/8/8/8/8/8/8/3QK3 w - - 0 1")) is False
    # 11 non-queen pieces, kings and pawns included
    assert is_endgame(chess.Board("4k3/pppp4/8/8/8/8/PPPP4/R3K3 w - - 0 1")) is False
    assert is_endgame(chess.Board("4k3/ppp5/8/8/8/8/PPPP4/R3K3 w - - 0 1")) is True


def test_opposite_colored_bishops():
    # c2 and e7 sit on different square colors
    assert bishops_opposite_colors(chess.Board("8/4b3/4k3/8/8/8/2B1K3/8 w - - 0 1")) is True


def test_same_colored_bishops_are_not_flagged():
    # c2 and f7 share a square color
    assert bishops_opposite_colors(chess.Board("8/5b2/4k3/8/8/8/2B1K3/8 w - - 0 1")) is False


def test_opposite_bishops_rejected_with_queens_or_many_pawns():
    assert bishops_opposite_colors(chess.Board("q7/4b3/4k3/8/8/8/2B1K3/8 w - - 0 1")) is False
    crowded = "8/pppp1b2/4k3/8/8/8/PPPPPB2/4K3 w - - 0 1"
    assert bishops_opposite_colors(chess.Board(crowded)) is False


def test_lone_pawn_is_passed():
    result = passed_pawn_features(chess.Board("8/5k2/8/3P4/8/8/5K2/8 w - - 0 1"))
    assert result == {"white_passers": 1, "black_passers": 0, "connected": False, "outside": True}


def test_pawn_on_adjacent_file_ahead_blocks_passer():
    # Black e7 guards d6; white d5 guards e4
    result = passed_pawn_features(chess.Board("8/4pk2/8/3P4/8/8/5K2/8 w - - 0 1"))
    assert result["white_passers"] == 0
    assert result["black_passers"] == 0


def test_pawns_behind_each_other_do_not_block():
    result = passed_pawn_features(chess.Board("8/5k2/8/3P4/8/2p5/5K2/8 w - - 0 1"))
    assert result["white_passers"] == 1
    assert result["black_passers"] == 1


def test_two_passers_set_connected_flag():
    result = passed_pawn_features(chess.Board("8/5k2/8/3PP3/8/8/5K2/8 w - - 0 1"))
    assert result["white_passers"] == 2
    assert result["connected"] is True
    assert result["outside"] is True
