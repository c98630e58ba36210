"""External score synthesis for the title detail screen.

TMDB only exposes its own vote average. Until a real critics/audience source
is wired in, the detail view shows scores derived from that average through a
:class:`RatingSynthesizer`, so the data source can be swapped without touching
the aggregator.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Protocol

from ..models import Title


@dataclass(frozen=True, slots=True)
class ExternalScores:
    critics_score: int
    audience_score: int
    secondary_score: float


class RatingSynthesizer(Protocol):
    def synthesize(self, vote_average: float | None) -> ExternalScores | None:
        """Return scores for a vote average, or ``None`` when unavailable."""


class RandomRatingSynthesizer:
    """Derive placeholder scores from the TMDB vote average.

    critics = round(vote * 10); audience = critics minus 5..15 (floored at 0);
    secondary is on a five-point scale, vote / 2 minus 0.1..0.5.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def synthesize(self, vote_average: float | None) -> ExternalScores | None:
        if vote_average is None:
            return None
        critics = round(vote_average * 10)
        audience = max(0, critics - self._rng.randint(5, 15))
        secondary = (vote_average / 2.0) - self._rng.uniform(0.1, 0.5)
        return ExternalScores(
            critics_score=critics,
            audience_score=audience,
            secondary_score=secondary,
        )


def apply_scores(title: Title, scores: ExternalScores | None) -> None:
    if scores is None:
        return
    title.critics_score = scores.critics_score
    title.audience_score = scores.audience_score
    title.secondary_score = scores.secondary_score
