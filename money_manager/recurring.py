# money_manager/recurring.py
from __future__ import annotations

from calendar import monthrange
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

FREQUENCY_LABELS = {
    "daily": "Daily",
    "weekly": "Weekly",
    "bi-weekly": "Bi-Weekly",
    "monthly": "Monthly",
    "quarterly": "Quarterly",
    "yearly": "Yearly",
    "irregular": "Irregular",
}

# Upper bound (exclusive) of the mean gap in days for each frequency.
_INTERVAL_BOUNDS = (
    (2, "daily"),
    (5, "weekly"),
    (10, "bi-weekly"),
    (20, "monthly"),
    (100, "quarterly"),
    (400, "yearly"),
)

_MONTHLY_FACTORS = {
    "daily": 30,
    "weekly": 4.33,
    "bi-weekly": 2.17,
    "monthly": 1,
    "quarterly": 1 / 3,
    "yearly": 1 / 12,
    "irregular": 0,
}


@dataclass
class RecurringPattern:
    merchant: str
    amount: float
    frequency: str
    last_date: date
    next_date: date
    confidence: float
    occurrences: int


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value).date()
    raise ValueError(f"Unrecognized date value: {value!r}")


def _add_months(original_date: date, months: int) -> date:
    month_index = original_date.month - 1 + months
    year = original_date.year + month_index // 12
    month = month_index % 12 + 1
    day = min(original_date.day, monthrange(year, month)[1])
    return date(year, month, day)


def next_occurrence(last_date: date, frequency: str) -> date:
    if frequency == "daily":
        return last_date + timedelta(days=1)
    if frequency == "weekly":
        return last_date + timedelta(weeks=1)
    if frequency == "bi-weekly":
        return last_date + timedelta(weeks=2)
    if frequency == "monthly":
        return _add_months(last_date, 1)
    if frequency == "quarterly":
        return _add_months(last_date, 3)
    if frequency == "yearly":
        return _add_months(last_date, 12)
    raise ValueError(f"Unsupported frequency '{frequency}'.")


def detect_frequency(dates: List[date]) -> Optional[str]:
    if len(dates) < 2:
        return None
    gaps = [(b - a).days for a, b in zip(dates, dates[1:])]
    mean_gap = sum(gaps) / len(gaps)
    for bound, frequency in _INTERVAL_BOUNDS:
        if mean_gap < bound:
            return frequency
    return None


def _confidence(occurrences: int) -> float:
    if occurrences < 3:
        return 0.3
    if occurrences < 6:
        return 0.6
    return 0.9


def detect_recurring_patterns(transactions: Iterable, min_occurrences: int = 3) -> List[RecurringPattern]:
    """
    Find merchants that charge a stable amount at a regular interval.

    Amounts must all sit within 10% of the merchant's mean. Patterns are
    returned most confident first.
    """
    by_merchant = defaultdict(list)
    for tx in transactions:
        by_merchant[tx.merchant].append((_as_date(tx.date), float(tx.amount)))

    patterns = []
    for merchant, entries in by_merchant.items():
        if len(entries) < min_occurrences:
            continue
        entries.sort(key=lambda e: e[0])
        amounts = [amt for _, amt in entries]
        mean = sum(amounts) / len(amounts)
        if not all(abs(a - mean) < mean * 0.1 for a in amounts):
            continue

        dates = [d for d, _ in entries]
        frequency = detect_frequency(dates)
        if frequency is None:
            continue
        patterns.append(
            RecurringPattern(
                merchant=merchant,
                amount=mean,
                frequency=frequency,
                last_date=dates[-1],
                next_date=next_occurrence(dates[-1], frequency),
                confidence=_confidence(len(entries)),
                occurrences=len(entries),
            )
        )

    return sorted(patterns, key=lambda p: p.confidence, reverse=True)


def get_upcoming_payments(patterns, days_ahead: int = 30, today: date | None = None):
    today = today or date.today()
    horizon = today + timedelta(days=days_ahead)
    return [p for p in patterns if today <= p.next_date <= horizon]


def get_overdue_payments(patterns, today: date | None = None):
    today = today or date.today()
    return [p for p in patterns if p.next_date < today]


def monthly_equivalent(amount: float, frequency: str) -> float:
    return amount * _MONTHLY_FACTORS[frequency]


def total_monthly_recurring(patterns) -> float:
    return sum(monthly_equivalent(p.amount, p.frequency) for p in patterns)


def summarize(patterns, today: date | None = None) -> dict:
    by_frequency: dict = {}
    for p in patterns:
        by_frequency[p.frequency] = by_frequency.get(p.frequency, 0) + 1
    return {
        "total_patterns": len(patterns),
        "total_monthly_amount": total_monthly_recurring(patterns),
        "upcoming_this_week": len(get_upcoming_payments(patterns, 7, today)),
        "overdue_count": len(get_overdue_payments(patterns, today)),
        "by_frequency": by_frequency,
    }


def format_pattern(pattern: RecurringPattern, today: date | None = None) -> str:
    today = today or date.today()
    days_until = (pattern.next_date - today).days
    if days_until < 0:
        status = f"Overdue by {abs(days_until)} days"
    elif days_until == 0:
        status = "Due today"
    elif days_until <= 7:
        status = f"Due in {days_until} days"
    else:
        status = f"Due {pattern.next_date.isoformat()}"
    label = FREQUENCY_LABELS[pattern.frequency]
    return f"{pattern.merchant} - Rs.{pattern.amount:,.2f} ({label}) - {status}"


def matches_pattern(transaction, pattern: RecurringPattern, tolerance: float = 0.1) -> bool:
    if transaction.merchant.lower() != pattern.merchant.lower():
        return False
    return abs(float(transaction.amount) - pattern.amount) <= pattern.amount * tolerance
