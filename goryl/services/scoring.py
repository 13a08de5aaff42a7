"""
Scoring engine: deterministic relevance of an item for a user.

score = 100 * (w_c * category + w_p * popularity + w_r * recency)

Each component is normalized to [0, 1]:
  category    user's score for the item's category / user's max category score
  popularity  item popularity / max popularity across the candidate set
  recency     1 - age_days / cutoff_days, floored at 0

Users without affinity data get a category component of exactly 0.
"""

import math
from dataclasses import dataclass
from datetime import datetime

from goryl.domain.entities import Item, ItemSignal, ScoredItem, UserAffinity
from goryl.domain.errors import ValidationError

SECONDS_PER_DAY = 86_400.0


@dataclass(frozen=True)
class ScoringWeights:
    category: float = 0.5
    popularity: float = 0.3
    recency: float = 0.2

    def __post_init__(self) -> None:
        parts = (self.category, self.popularity, self.recency)
        if any(w < 0 for w in parts):
            raise ValidationError("Scoring weights must be non-negative")
        if not math.isclose(sum(parts), 1.0, abs_tol=1e-9):
            raise ValidationError(f"Scoring weights must sum to 1, got {sum(parts):.4f}")


@dataclass(frozen=True)
class ScoreBreakdown:
    category: float
    popularity: float
    recency: float
    total: float


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


class ScoringEngine:
    """Pure scoring functions. No I/O and no hidden state."""

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        recency_cutoff_days: float = 90.0,
    ) -> None:
        if recency_cutoff_days <= 0:
            raise ValidationError("recency_cutoff_days must be positive")
        self.weights = weights or ScoringWeights()
        self.recency_cutoff_days = recency_cutoff_days

    # ── Components ─────────────────────────────────

    @staticmethod
    def category_component(affinity: UserAffinity, category: str) -> float:
        top = affinity.max_category_score
        if top <= 0:
            return 0.0
        return _clamp(affinity.category_scores.get(category, 0.0) / top)

    @staticmethod
    def popularity_component(popularity: float, max_popularity: float) -> float:
        if max_popularity <= 0:
            return 0.0
        return _clamp(popularity / max_popularity)

    def recency_component(self, created_at: datetime, now: datetime) -> float:
        age_days = max(0.0, (now - created_at).total_seconds() / SECONDS_PER_DAY)
        return _clamp(1.0 - age_days / self.recency_cutoff_days)

    # ── Scoring ────────────────────────────────────

    def breakdown(
        self,
        affinity: UserAffinity,
        signal: ItemSignal,
        item: Item,
        *,
        now: datetime,
        max_popularity: float,
    ) -> ScoreBreakdown:
        category = self.category_component(affinity, item.category)
        popularity = self.popularity_component(signal.popularity, max_popularity)
        recency = self.recency_component(item.created_at, now)
        total = 100.0 * (
            self.weights.category * category
            + self.weights.popularity * popularity
            + self.weights.recency * recency
        )
        return ScoreBreakdown(category, popularity, recency, round(total, 6))

    def score(
        self,
        affinity: UserAffinity,
        signal: ItemSignal,
        item: Item,
        *,
        now: datetime,
        max_popularity: float,
    ) -> float:
        """Relevance of ``item`` in [0, 100]."""
        return self.breakdown(
            affinity, signal, item, now=now, max_popularity=max_popularity
        ).total

    @staticmethod
    def explain(breakdown: ScoreBreakdown, item: Item) -> str:
        if breakdown.category >= 0.5:
            return f"Matches your interest in {item.category}"
        if breakdown.popularity >= 0.8:
            return "Popular choice"
        if breakdown.recency >= 0.9:
            return "New arrival"
        return "Recommended for you"

    def rank(
        self,
        affinity: UserAffinity,
        candidates: list[tuple[Item, ItemSignal]],
        *,
        now: datetime,
    ) -> list[ScoredItem]:
        """
        Score every candidate and sort by score descending, item id ascending.

        Popularity is normalized against the maximum within ``candidates``.
        """
        max_popularity = max((signal.popularity for _, signal in candidates), default=0.0)
        scored: list[ScoredItem] = []
        for item, signal in candidates:
            parts = self.breakdown(
                affinity, signal, item, now=now, max_popularity=max_popularity
            )
            scored.append(ScoredItem(item=item, score=parts.total, reason=self.explain(parts, item)))
        scored.sort(key=lambda s: (-s.score, s.item.id))
        return scored
