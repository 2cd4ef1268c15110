"""
Outcome probability model (POM).

Turns the current engine picture of a position into a White / Draw / Black
probability triple plus the reasons behind it, most decisive first.

Stages run in a fixed order and the triple is renormalized after each one:
  1. base mapping (engine WDL, or centipawns -> WDL)
  2. rating gap
  3. share of moves that keep the edge
  4. sharpness / volatility
  5. endgame material conversion
  6. opposite-colored bishops
  7. passed pawns
  8. drawish opening (optional)
  9. forced mate
 10. floors and ceilings

Each stage returns the adjusted (not yet renormalized) triple and an
optional explanation.
"""

import math
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))
from features import extract_features
from models import PomInputs, PomResult, PositionFeatures, TimeControl, VariationRecord

Triple = tuple[float, float, float]
StageResult = tuple[Triple, str | None]

DRAW_BASE: dict[TimeControl, float] = {
    "Bullet": 0.20,
    "Blitz": 0.28,
    "Rapid": 0.33,
    "Classical": 0.38,
}
MATE_CAP: dict[TimeControl, float] = {
    "Bullet": 0.95,
    "Blitz": 0.97,
    "Rapid": 0.98,
    "Classical": 0.99,
}

EVAL_CLAMP_CP = 1500
DRAW_DECAY_CP = 350
LOGISTIC_SCALE_CP = 120
RATING_WEIGHT = 0.18
RATING_GAP_NOTE = 100
KEEP_EDGE_WINDOW_CP = 50
MAX_DECISIVE_MASS = 0.98
OPPOSITE_BISHOPS_DRAW = 0.12
MATE_PLACEHOLDER = 0.001
OPENING_MAX_PLY = 14
OPENING_EQUAL_CP = 25
OPENING_DRAW_BUMP = 0.07
OPENING_DRAW_CEILING = 0.90


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def stddev(values: list[float]) -> float:
    """Population standard deviation; 0 for an empty list."""
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def renormalize(white: float, draw: float, black: float) -> Triple:
    """Rescale to sum 1. A non-positive sum falls back to the uniform triple."""
    total = white + draw + black
    if total <= 0:
        return (1 / 3, 1 / 3, 1 / 3)
    return (white / total, draw / total, black / total)


def expected_score(rating_diff: float) -> float:
    """Logistic expected score for the side `rating_diff` points stronger."""
    return 1 / (1 + 10 ** (-rating_diff / 400))


def best_variation(variations: list[VariationRecord]) -> VariationRecord | None:
    return next((v for v in variations if v.multipv == 1), None)


def best_eval(variations: list[VariationRecord], eval_cp: int | None) -> int:
    best = best_variation(variations)
    if best is not None and best.cp is not None:
        return best.cp
    return eval_cp or 0


def base_mapping(
    eval_cp: int | None,
    wdl_engine: tuple[int, int, int] | None,
    time_control: TimeControl,
) -> StageResult:
    if wdl_engine is not None:
        total = sum(wdl_engine) or 1
        w, d, b = wdl_engine
        return (w / total, d / total, b / total), "Engine WDL baseline"

    s = clamp(eval_cp or 0, -EVAL_CLAMP_CP, EVAL_CLAMP_CP)
    decisive = 1 - DRAW_BASE[time_control] * math.exp(-abs(s) / DRAW_DECAY_CP)
    white = decisive / (1 + math.exp(-s / LOGISTIC_SCALE_CP))
    return (white, 1 - decisive, decisive - white), "Centipawn-to-WDL baseline"


def rating_adjustment(p: Triple, white_rating: int, black_rating: int) -> StageResult:
    w, d, b = p
    gap = white_rating - black_rating
    e_white = expected_score(gap)
    w *= 1 + RATING_WEIGHT * (e_white - 0.5)
    b *= 1 + RATING_WEIGHT * ((1 - e_white) - 0.5)
    note = None
    if abs(gap) >= RATING_GAP_NOTE:
        note = f"Rating gap favors {'White' if gap > 0 else 'Black'} (~{round(abs(gap))})"
    return (w, d, b), note


def winning_moves_adjustment(p: Triple, variations: list[VariationRecord], best_cp: int, legal_count: int) -> StageResult:
    if not variations:
        return p, None
    w, d, b = p
    good = sum(1 for v in variations if v.cp is not None and v.cp >= best_cp - KEEP_EDGE_WINDOW_CP)
    ratio = good / max(1, legal_count)
    factor = clamp(1 + 0.6 * (ratio - 0.15), 0.7, 1.3)
    if best_cp >= 0:
        w *= factor
    else:
        b *= factor
    return (w, d, b), f"{ratio * 100:.0f}% of moves keep the edge"


def sharpness_adjustment(
    p: Triple,
    variations: list[VariationRecord],
    eval_cp: int | None,
    last_eval_cp: int | None,
) -> StageResult:
    w, d, b = p
    sharpness = stddev([v.cp if v.cp is not None else 0 for v in variations])
    volatility = 0 if last_eval_cp is None else abs((eval_cp or 0) - last_eval_cp)
    boost = clamp(sharpness / 80 + volatility / 100, 0, 0.20)
    mass = 1 - d
    target = clamp(mass * (1 + boost), 0, MAX_DECISIVE_MASS)
    scale = 1 if mass == 0 else target / mass
    w *= scale
    b *= scale
    d = 1 - (w + b)
    note = f"Sharp/volatile position (decisive +{boost * 100:.0f}%)" if boost > 0.01 else None
    return (w, d, b), note


def endgame_adjustment(p: Triple, features: PositionFeatures) -> StageResult:
    material = features.material_cp
    if not features.endgame or abs(material) <= 200:
        return p, None
    w, d, b = p
    bump = clamp((abs(material) - 200) / 600, 0, 0.25)
    if material > 0:
        w *= 1 + bump
    else:
        b *= 1 + bump
    leader = "White" if material > 0 else "Black"
    return (w, d, b), f"{leader} material edge in endgame (+{round(bump * 100)}% win)"


def opposite_bishops_adjustment(p: Triple, features: PositionFeatures) -> StageResult:
    if not features.opposite_bishops:
        return p, None
    w, d, b = p
    # May go negative here; the final clamp repairs it.
    half = OPPOSITE_BISHOPS_DRAW / 2
    return (w - half, d + OPPOSITE_BISHOPS_DRAW, b - half), "Opposite-colored bishops endgame (drawish)"


def passed_pawn_adjustment(p: Triple, features: PositionFeatures, best_cp: int) -> StageResult:
    if not (features.white_passers or features.black_passers):
        return p, None
    w, d, b = p
    boost = clamp(0.05 + 0.03 * features.connected + 0.02 * features.outside, 0, 0.12)
    if best_cp >= 0:
        w += boost
    else:
        b += boost
    return (w, d - boost, b), "Passed pawns improve convertibility"


def opening_adjustment(p: Triple, ply: int, eval_cp: int | None) -> StageResult:
    if ply > OPENING_MAX_PLY or abs(eval_cp or 0) >= OPENING_EQUAL_CP:
        return p, None
    w, d, b = p
    d = max(d, min(OPENING_DRAW_CEILING, d + OPENING_DRAW_BUMP))
    return (w, d, b), "Book-like equality (drawish opening)"


def mate_override(p: Triple, mate: int | None, time_control: TimeControl) -> StageResult:
    if mate is None:
        return p, None
    w, d, b = p
    cap = MATE_CAP[time_control]
    if mate > 0:
        w = max(w, cap)
        d = 1 - w
        b = MATE_PLACEHOLDER
    elif mate < 0:
        b = max(b, cap)
        d = 1 - b
        w = MATE_PLACEHOLDER
    return (w, d, b), f"Mate in {abs(mate)} detected"


def final_clamp(p: Triple) -> Triple:
    w, d, b = p
    return (clamp(w, 0.01, 0.99), clamp(d, 0.05, 0.99), clamp(b, 0.01, 0.99))


def compute_pom(inputs: PomInputs) -> PomResult:
    """Run every stage in order and return the published triple and reasons."""
    tc = inputs.time_control
    features = inputs.features or extract_features(inputs.board)
    variations = inputs.variations
    best_cp = best_eval(variations, inputs.eval_cp)
    best = best_variation(variations)

    stages = [
        lambda p: base_mapping(inputs.eval_cp, inputs.wdl_engine, tc),
        lambda p: rating_adjustment(p, inputs.white_rating, inputs.black_rating),
        lambda p: winning_moves_adjustment(p, variations, best_cp, inputs.legal_count),
        lambda p: sharpness_adjustment(p, variations, inputs.eval_cp, inputs.last_eval_cp),
        lambda p: endgame_adjustment(p, features),
        lambda p: opposite_bishops_adjustment(p, features),
        lambda p: passed_pawn_adjustment(p, features, best_cp),
    ]
    if inputs.use_book_heuristics:
        stages.append(lambda p: opening_adjustment(p, len(inputs.board.move_stack), inputs.eval_cp))
    stages.append(lambda p: mate_override(p, best.mate if best else None, tc))

    p: Triple = (1 / 3, 1 / 3, 1 / 3)
    why: list[str] = []
    for stage in stages:
        p, note = stage(p)
        p = renormalize(*p)
        if note:
            why.append(note)

    w, d, b = renormalize(*final_clamp(p))
    return PomResult(white=w, draw=d, black=b, why=why)
