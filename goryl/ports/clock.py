"""Clock port: injectable source of the current time."""

from abc import ABC, abstractmethod
from datetime import datetime


class Clock(ABC):
    """Abstraction over wall-clock time so scoring and expiry stay deterministic."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current instant as a timezone-aware UTC datetime."""
        ...
