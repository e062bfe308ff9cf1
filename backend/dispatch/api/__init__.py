"""API routers."""

from dispatch.api import occurrences, recurring_plans

__all__ = ["occurrences", "recurring_plans"]
