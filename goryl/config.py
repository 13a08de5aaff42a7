"""Application settings loaded from environment variables."""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EventStoreBackend(str, Enum):
    MEMORY = "memory"
    SQL = "sql"
    DYNAMODB = "dynamodb"


class ProductStoreBackend(str, Enum):
    MEMORY = "memory"
    SQL = "sql"
    HTTP = "http"


class Settings(BaseSettings):
    """Tunable parameters for the personalization pipeline.

    Weights, TTLs and decay constants are configuration, not contracts:
    every one of them can be overridden with a ``GORYL_``-prefixed
    environment variable.
    """

    model_config = SettingsConfigDict(
        env_prefix="GORYL_",
        env_file=".env",
        extra="ignore",
    )

    # ── Backends ───────────────────────────────────
    event_store_backend: EventStoreBackend = EventStoreBackend.MEMORY
    product_store_backend: ProductStoreBackend = ProductStoreBackend.MEMORY
    database_url: str = "sqlite+aiosqlite:///./goryl.db"
    dynamodb_table: str = "goryl-interactions"
    dynamodb_endpoint_url: str | None = None
    aws_region: str = "ap-south-1"
    catalog_base_url: str = "http://localhost:3000/api"
    http_timeout_seconds: float = 5.0

    # ── Interaction weights ────────────────────────
    weight_view: float = 1.0
    weight_like: float = 3.0
    weight_save: float = 4.0
    weight_share: float = 5.0
    weight_comment: float = 3.0
    weight_purchase: float = 10.0

    # ── Aggregation ────────────────────────────────
    affinity_ttl_seconds: float = 60.0
    item_signal_ttl_seconds: float = 60.0
    recent_items_capacity: int = Field(default=50, gt=0)
    decay_half_life_days: float = Field(default=14.0, gt=0)

    # ── Scoring ────────────────────────────────────
    score_weight_category: float = 0.5
    score_weight_popularity: float = 0.3
    score_weight_recency: float = 0.2
    recency_cutoff_days: float = Field(default=90.0, gt=0)

    # ── Retrieval ──────────────────────────────────
    candidate_pool_size: int = Field(default=500, gt=0)
    default_limit: int = Field(default=20, gt=0)
    max_limit: int = Field(default=100, gt=0)
    fetch_timeout_seconds: float = Field(default=3.0, gt=0)

    # ── Cache / coordinator ────────────────────────
    recommendation_cache_ttl_seconds: float = 30.0
    sweep_interval_seconds: float = 300.0
    sweep_regions: list[str] = Field(default_factory=lambda: ["recommendations"])

    log_level: str = "INFO"

    def interaction_weights(self) -> dict[str, float]:
        """Weight lookup table keyed by interaction type value."""
        return {
            "view": self.weight_view,
            "like": self.weight_like,
            "save": self.weight_save,
            "share": self.weight_share,
            "comment": self.weight_comment,
            "purchase": self.weight_purchase,
        }


settings = Settings()
