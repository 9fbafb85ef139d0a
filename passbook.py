"""Digital passbook: classify calendar days of a member's cycle.

Each day is one of inactive, paid, covered, future or missed. A day with
more than one deposit banks the extras as credit; a later day with no
deposit draws one unit of that credit and shows as covered. Credit is
folded once, left to right, over a precomputed table of daily deposit
counts.
"""

import calendar
import math
from collections import Counter
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from enum import Enum
from typing import List

from models import TransactionType
from utils import local_date

# Flat month length used by the consistency figure.
DAYS_PER_MONTH = 30


class DayStatus(str, Enum):
    INACTIVE = 'inactive'
    PAID = 'paid'
    COVERED = 'covered'
    FUTURE = 'future'
    MISSED = 'missed'


@dataclass(frozen=True)
class DayCell:
    day: object
    status: DayStatus
    count: int

    def to_dict(self):
        return {
            'date': self.day.isoformat(),
            'status': self.status.value,
            'count': self.count,
            'multiple': self.count > 1,
        }


@dataclass(frozen=True)
class MonthView:
    year: int
    month: int
    days: List[DayCell]
    paid_count: int

    @property
    def days_in_month(self):
        return len(self.days)

    def to_dict(self):
        return {
            'month': f"{self.year:04d}-{self.month:02d}",
            'paid_count': self.paid_count,
            'days_in_month': self.days_in_month,
            'days': [cell.to_dict() for cell in self.days],
        }


@dataclass(frozen=True)
class Summary:
    total_saved: Decimal
    contribution_count: int
    consistency_percent: int

    def to_dict(self):
        return {
            'total_saved': self.total_saved,
            'contribution_count': self.contribution_count,
            'consistency_percent': self.consistency_percent,
        }


def cycle_deposits(transactions, start_date, tz=None):
    """Deposits dated on or after the first day of the cycle"""
    return [
        t for t in transactions
        if t.type == TransactionType.DEPOSIT and local_date(t.date, tz) >= start_date
    ]


def daily_deposit_counts(transactions, start_date, tz=None):
    return Counter(local_date(t.date, tz) for t in cycle_deposits(transactions, start_date, tz))


class CreditLedger:
    """Surplus credit available at the start of each day from `start_date`.

    Built in one pass up to `end_date`; days past the end report the
    closing credit.
    """

    def __init__(self, counts, start_date, end_date):
        self.start_date = start_date
        self.end_date = end_date
        self._before = {}

        credit = 0
        day = start_date
        while day <= end_date:
            self._before[day] = credit
            count = counts.get(day, 0)
            if count > 1:
                credit += count - 1
            elif count == 0 and credit > 0:
                credit -= 1
            day += timedelta(days=1)
        self._closing = credit

    def credit_before(self, day):
        if day < self.start_date:
            return 0
        if day > self.end_date:
            return self._closing
        return self._before[day]


def _status(day, start_date, today, count, ledger):
    if day < start_date:
        return DayStatus.INACTIVE
    if count > 0:
        return DayStatus.PAID
    if day <= today and ledger.credit_before(day) > 0:
        return DayStatus.COVERED
    if day > today:
        return DayStatus.FUTURE
    return DayStatus.MISSED


def classify_day(day, start_date, today, transactions, tz=None) -> DayStatus:
    """Status of a single calendar day.

    `start_date` and `today` are calendar dates; transaction timestamps are
    bucketed into days in `tz`.
    """
    if day < start_date:
        return DayStatus.INACTIVE
    counts = daily_deposit_counts(transactions, start_date, tz)
    ledger = CreditLedger(counts, start_date, min(day, today))
    return _status(day, start_date, today, counts.get(day, 0), ledger)


def _add_months(year, month, offset):
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def project_months(start_date, months, today, transactions, tz=None) -> List[MonthView]:
    """Day grid for `months` calendar months from the start date's month"""
    counts = daily_deposit_counts(transactions, start_date, tz)
    if months <= 0:
        return []

    last_year, last_month = _add_months(start_date.year, start_date.month, months - 1)
    last_day = start_date.replace(
        year=last_year, month=last_month,
        day=calendar.monthrange(last_year, last_month)[1],
    )
    ledger = CreditLedger(counts, start_date, min(last_day, today))

    views = []
    for offset in range(months):
        year, month = _add_months(start_date.year, start_date.month, offset)
        first = start_date.replace(year=year, month=month, day=1)
        cells = []
        for i in range(calendar.monthrange(year, month)[1]):
            day = first + timedelta(days=i)
            count = counts.get(day, 0)
            cells.append(DayCell(day, _status(day, start_date, today, count, ledger), count))
        paid = sum(n for d, n in counts.items() if d.year == year and d.month == month)
        views.append(MonthView(year=year, month=month, days=cells, paid_count=paid))
    return views


def project_month(year, month, start_date, today, transactions, tz=None) -> MonthView:
    """Day grid for a single calendar month"""
    offset = (year - start_date.year) * 12 + (month - start_date.month)
    if offset < 0:
        first = start_date.replace(year=year, month=month, day=1)
        cells = [
            DayCell(first + timedelta(days=i), DayStatus.INACTIVE, 0)
            for i in range(calendar.monthrange(year, month)[1])
        ]
        return MonthView(year=year, month=month, days=cells, paid_count=0)
    return project_months(start_date, offset + 1, today, transactions, tz)[-1]


def render_summary(transactions, start_date, months_displayed, tz=None) -> Summary:
    """Saved total, deposit count and consistency over the displayed months.

    Consistency is deposits / (months * 30), rounded half up and clamped to
    [0, 100].
    """
    deposits = cycle_deposits(transactions, start_date, tz)
    total = sum((t.amount for t in deposits), Decimal('0'))
    count = len(deposits)

    if months_displayed <= 0:
        percent = 0
    else:
        percent = math.floor(count / (months_displayed * DAYS_PER_MONTH) * 100 + 0.5)
    return Summary(
        total_saved=total,
        contribution_count=count,
        consistency_percent=max(0, min(100, percent)),
    )
