"""
System clock backed by the host's UTC time.
"""

from datetime import date, datetime

from dispatch.interfaces.clock import IClock
from dispatch.utils.datetime_utils import local_today, now_utc


class SystemClock(IClock):
    def now(self) -> datetime:
        return now_utc()

    def today(self, tz_name: str) -> date:
        return local_today(tz_name, self.now())
