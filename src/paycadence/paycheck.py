"""
Paycheck projection — where "today" sits in the biweekly pay rhythm.

Given the date of a known paycheck, projects the next and the following
pay dates relative to today. The cadence is fixed at 14 days.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from paycadence.dates import add_days, days_between
from paycadence.models.financial import PaycheckSettings

logger = logging.getLogger("paycadence.paycheck")

BIWEEKLY_INTERVAL_DAYS = 14


@dataclass(frozen=True)
class PaycheckProjection:
    """The next two pay dates as seen from a given day."""

    next_pay_date: date | None = None
    following_pay_date: date | None = None
    days_until_next_pay: int | None = None
    days_until_following_pay: int | None = None

    @property
    def is_known(self) -> bool:
        return self.next_pay_date is not None and self.following_pay_date is not None


class PaycheckProjector:
    """Project biweekly pay dates from a reference paycheck.

    Usage::

        projector = PaycheckProjector(PaycheckSettings(last_paycheck_date=date(2025, 1, 3)))
        projection = projector.project(date(2025, 1, 10))
        projection.next_pay_date        # 2025-01-17
        projection.following_pay_date   # 2025-01-31
    """

    def __init__(self, settings: PaycheckSettings | None = None) -> None:
        self.settings = settings or PaycheckSettings()

    @property
    def last_paycheck_date(self) -> date | None:
        return self.settings.last_paycheck_date

    def project(self, today: date) -> PaycheckProjection:
        anchor = self.last_paycheck_date
        if anchor is None:
            return PaycheckProjection()

        next_pay = self._first_after(add_days(anchor, BIWEEKLY_INTERVAL_DAYS), today)
        following_pay = self._first_after(add_days(anchor, 2 * BIWEEKLY_INTERVAL_DAYS), today)
        # The two loops advance independently and can land on the same date
        while following_pay <= next_pay:
            following_pay = add_days(following_pay, BIWEEKLY_INTERVAL_DAYS)

        return PaycheckProjection(
            next_pay_date=next_pay,
            following_pay_date=following_pay,
            days_until_next_pay=days_between(today, next_pay),
            days_until_following_pay=days_between(today, following_pay),
        )

    def pay_dates_between(self, start: date, end: date) -> list[date]:
        """Every pay date in ``[start, end]`` on this rhythm."""
        anchor = self.last_paycheck_date
        if anchor is None or end < start:
            return []
        offset = days_between(anchor, start) % BIWEEKLY_INTERVAL_DAYS
        current = start if offset == 0 else add_days(start, BIWEEKLY_INTERVAL_DAYS - offset)
        dates: list[date] = []
        while current <= end:
            dates.append(current)
            current = add_days(current, BIWEEKLY_INTERVAL_DAYS)
        return dates

    @staticmethod
    def _first_after(candidate: date, today: date) -> date:
        while candidate <= today:
            candidate = add_days(candidate, BIWEEKLY_INTERVAL_DAYS)
        return candidate
