"""
Clock interface.

Date-window computations depend on "now"; the clock is injected so the engine
stays deterministic under test.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime


class IClock(ABC):
    """Abstract source of the current instant."""

    @abstractmethod
    def now(self) -> datetime:
        """Current instant, timezone-aware UTC."""
        pass

    @abstractmethod
    def today(self, tz_name: str) -> date:
        """Current calendar date in the given IANA timezone."""
        pass
