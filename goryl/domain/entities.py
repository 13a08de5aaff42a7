"""Domain entities for the personalization pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from urllib.parse import quote

from goryl.domain.errors import ValidationError


def key_part(name: str, value: object) -> str:
    """Render one ``name=value`` cache-key segment. Separators in values are escaped."""
    return f"{name}={quote(str(value), safe='') if value else ''}"


class InteractionType(str, Enum):
    VIEW = "view"
    LIKE = "like"
    SAVE = "save"
    SHARE = "share"
    PURCHASE = "purchase"
    COMMENT = "comment"

    @classmethod
    def parse(cls, value: "InteractionType | str") -> "InteractionType":
        """Coerce a raw value into an interaction type. Raises ValidationError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise ValidationError(
                f"Unknown interaction type '{value}'. Expected one of: {allowed}"
            ) from None


DEFAULT_INTERACTION_WEIGHTS: dict[str, float] = {
    InteractionType.VIEW.value: 1.0,
    InteractionType.LIKE.value: 3.0,
    InteractionType.SAVE.value: 4.0,
    InteractionType.SHARE.value: 5.0,
    InteractionType.COMMENT.value: 3.0,
    InteractionType.PURCHASE.value: 10.0,
}


class RecommendationMode(str, Enum):
    PERSONALIZED = "personalized"
    CATEGORY = "category"
    COLD_START = "cold_start"
    SIMILAR = "similar"


@dataclass(frozen=True)
class InteractionEvent:
    """A single recorded user action on an item. Append-only, never mutated."""

    user_id: str
    item_id: str
    type: InteractionType
    weight: float
    timestamp: datetime
    category: str | None = None


@dataclass(frozen=True)
class Item:
    """
    Unified product shape.

    Only ``id``, ``category`` and ``created_at`` are required; everything
    else is optional enrichment carried through to the caller untouched.
    """

    id: str
    category: str
    created_at: datetime
    popularity: float = 0.0
    title: str | None = None
    price: float | None = None
    seller_id: str | None = None
    image_url: str | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class UserAffinity:
    """Materialized per-user preference view, folded from interactions."""

    user_id: str | None
    category_scores: dict[str, float] = field(default_factory=dict)
    recent_item_ids: tuple[str, ...] = field(default_factory=tuple)
    computed_at: datetime | None = None

    @classmethod
    def empty(cls, user_id: str | None = None) -> "UserAffinity":
        return cls(user_id=user_id)

    @property
    def is_empty(self) -> bool:
        return not self.category_scores

    @property
    def max_category_score(self) -> float:
        return max(self.category_scores.values(), default=0.0)

    def top_category(self) -> str | None:
        if not self.category_scores:
            return None
        return min(self.category_scores.items(), key=lambda kv: (-kv[1], kv[0]))[0]


@dataclass(frozen=True)
class ItemSignal:
    item_id: str
    category: str
    created_at: datetime
    popularity: float = 0.0
    computed_at: datetime | None = None

    @classmethod
    def from_item(cls, item: Item, computed_at: datetime | None = None) -> "ItemSignal":
        return cls(
            item_id=item.id,
            category=item.category,
            created_at=item.created_at,
            popularity=max(0.0, item.popularity),
            computed_at=computed_at,
        )


@dataclass(frozen=True)
class RecommendationRequest:
    """Ephemeral request for a ranked list of items."""

    user_id: str | None = None
    category: str | None = None
    limit: int = 20
    exclude_viewed: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit <= 0:
            raise ValidationError(f"limit must be a positive integer, got {self.limit!r}")

    @property
    def mode(self) -> RecommendationMode:
        if self.category:
            return RecommendationMode.CATEGORY
        if self.user_id:
            return RecommendationMode.PERSONALIZED
        return RecommendationMode.COLD_START

    def cache_key(self) -> str:
        """Deterministic key over every parameter that affects the result."""
        return ":".join(
            (
                key_part("u", self.user_id),
                key_part("c", self.category),
                f"l={self.limit}",
                f"x={int(self.exclude_viewed)}",
            )
        )


@dataclass(frozen=True)
class ScoredItem:
    """A ranked result with its score (0-100) and a short explanation."""

    item: Item
    score: float
    reason: str = "Recommended for you"
