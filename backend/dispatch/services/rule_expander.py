"""
Recurrence rule expansion.

Turns a rule plus a date window into the ordered candidate calendar dates.
Times of day are resolved separately by the constraint resolver.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterator, Optional

from dispatch.core.exceptions import ValidationError
from dispatch.models.enums import Frequency
from dispatch.models.recurring_plan import RecurringRule, rule_problems


def validate_rule(rule: RecurringRule) -> None:
    """Re-check frequency-specific fields (rules may be built without validation)."""
    problems = rule_problems(rule.frequency, rule.by_weekday, rule.by_month_day, rule.by_month)
    if rule.interval < 1:
        problems.append(("interval", "Interval must be a positive integer"))
    if problems:
        field, message = problems[0]
        raise ValidationError(message, field=field, details={"problems": problems})


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def _month_index(day: date) -> int:
    return day.year * 12 + day.month - 1


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    """Build a date, or None when the day does not exist in that month."""
    try:
        return date(year, month, day)
    except ValueError:
        return None


class RuleExpander:
    """
    Expand a recurrence rule into candidate dates.

    The anchor is the plan's start date (in the plan timezone). Periods are
    counted from the anchor: day N, week N, month N or year N where N is a
    multiple of ``interval``. Days that do not exist in a given month are
    skipped rather than clamped.

    ``expand`` returns a fresh generator on every call, so it can be
    restarted with a different window.
    """

    def expand(
        self,
        rule: RecurringRule,
        anchor: date,
        window_start: date,
        window_end: date,
        until: Optional[date] = None,
    ) -> Iterator[date]:
        """
        Yield dates in ascending order within ``[window_start, window_end]``.

        Args:
            rule: Recurrence definition
            anchor: Plan start date; nothing before it is emitted
            window_start: First date of interest (inclusive)
            window_end: Last date of interest (inclusive)
            until: Optional last allowed date derived from the plan end
        """
        lo = max(anchor, window_start)
        hi = window_end if until is None else min(window_end, until)
        if lo > hi:
            return iter(())

        if rule.frequency == Frequency.DAILY:
            return self._daily(rule, anchor, lo, hi)
        if rule.frequency == Frequency.WEEKLY:
            return self._weekly(rule, anchor, lo, hi)
        if rule.frequency == Frequency.MONTHLY:
            return self._monthly(rule, anchor, lo, hi)
        if rule.frequency == Frequency.YEARLY:
            return self._yearly(rule, anchor, lo, hi)
        raise ValidationError(f"Unsupported frequency: {rule.frequency}", field="frequency")

    def _daily(self, rule: RecurringRule, anchor: date, lo: date, hi: date) -> Iterator[date]:
        step = rule.interval
        k = _ceil_div((lo - anchor).days, step)
        current = anchor + timedelta(days=k * step)
        while current <= hi:
            yield current
            current += timedelta(days=step)

    def _weekly(self, rule: RecurringRule, anchor: date, lo: date, hi: date) -> Iterator[date]:
        step = rule.interval
        anchor_monday = anchor - timedelta(days=anchor.weekday())
        offsets = [wd.index for wd in rule.by_weekday or []]

        # First included week that is not entirely before ``lo``
        week = _ceil_div((lo - anchor_monday).days // 7, step) * step
        monday = anchor_monday + timedelta(weeks=week)
        while monday <= hi:
            for offset in offsets:
                candidate = monday + timedelta(days=offset)
                if lo <= candidate <= hi:
                    yield candidate
            monday += timedelta(weeks=step)

    def _monthly(self, rule: RecurringRule, anchor: date, lo: date, hi: date) -> Iterator[date]:
        step = rule.interval
        anchor_idx = _month_index(anchor)
        idx = anchor_idx + _ceil_div(_month_index(lo) - anchor_idx, step) * step
        last_idx = _month_index(hi)
        while idx <= last_idx:
            candidate = _safe_date(idx // 12, idx % 12 + 1, rule.by_month_day)
            if candidate is not None and lo <= candidate <= hi:
                yield candidate
            idx += step

    def _yearly(self, rule: RecurringRule, anchor: date, lo: date, hi: date) -> Iterator[date]:
        step = rule.interval
        day = rule.by_month_day or anchor.day
        year = anchor.year + _ceil_div(lo.year - anchor.year, step) * step
        while year <= hi.year:
            candidate = _safe_date(year, rule.by_month, day)
            if candidate is not None and lo <= candidate <= hi:
                yield candidate
            year += step
