"""Exponential smoothing of published probabilities, gated on search depth."""

import sys
from dataclasses import dataclass
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))
from models import OutcomeProbabilities
from pom import renormalize

DEFAULT_ALPHA = 0.3


@dataclass
class SmoothingState:
    probabilities: OutcomeProbabilities
    depth: int


class Smoother:
    def __init__(self, alpha: float = DEFAULT_ALPHA) -> None:
        self.alpha = alpha
        self._state: SmoothingState | None = None

    @property
    def state(self) -> SmoothingState | None:
        return self._state

    def reset(self) -> None:
        self._state = None

    def update(self, probs: OutcomeProbabilities, depth: int) -> OutcomeProbabilities:
        """
        Blend `probs` into the previous value when the search did not get
        shallower. A shallower result is published raw and becomes the new
        baseline.
        """
        prior = self._state
        if prior is None or depth < prior.depth:
            published = OutcomeProbabilities(*probs.as_tuple())
        else:
            a = self.alpha
            blended = [old + a * (new - old) for old, new in zip(prior.probabilities.as_tuple(), probs.as_tuple())]
            published = OutcomeProbabilities(*renormalize(*blended))
        self._state = SmoothingState(published, depth)
        return published
