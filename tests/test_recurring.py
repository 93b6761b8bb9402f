from datetime import date, datetime, timedelta

import pytest

from conftest import make_tx
from money_manager import recurring
from money_manager.recurring import RecurringPattern


def series(merchant, amount, start, gap_days, count):
    return [
        make_tx(amount, merchant=merchant, when=start + timedelta(days=gap_days * i))
        for i in range(count)
    ]


def pattern(merchant="Netflix", amount=500.0, frequency="monthly", next_date=date(2025, 12, 10)):
    return RecurringPattern(
        merchant=merchant, amount=amount, frequency=frequency,
        last_date=next_date - timedelta(days=15), next_date=next_date,
        confidence=0.6, occurrences=4,
    )


@pytest.mark.parametrize(
    "gap, expected",
    [(1, "daily"), (3, "weekly"), (7, "bi-weekly"), (14, "monthly"), (30, "quarterly"), (365, "yearly")],
)
def test_detect_frequency_buckets(gap, expected):
    start = date(2025, 1, 1)
    dates = [start + timedelta(days=gap * i) for i in range(3)]
    assert recurring.detect_frequency(dates) == expected


def test_detect_frequency_needs_two_dates_and_bounded_gap():
    assert recurring.detect_frequency([date(2025, 1, 1)]) is None
    assert recurring.detect_frequency([date(2020, 1, 1), date(2022, 1, 1)]) is None


def test_detect_recurring_patterns():
    txs = (
        series("Gym", 1000, datetime(2025, 1, 1), 14, 6)
        + series("Spotify", 119, datetime(2025, 6, 1), 3, 4)
        + series("Coffee", 150, datetime(2025, 1, 1), 1, 2)
        + [make_tx(a, merchant="Grocer", when=datetime(2025, 3, d)) for a, d in ((100, 1), (400, 4), (120, 8))]
    )
    patterns = recurring.detect_recurring_patterns(txs)

    assert [p.merchant for p in patterns] == ["Gym", "Spotify"]
    gym, spotify = patterns
    assert gym.frequency == "monthly"
    assert gym.confidence == 0.9
    assert gym.occurrences == 6
    assert gym.last_date == date(2025, 3, 12)
    assert gym.next_date == date(2025, 4, 12)
    assert spotify.frequency == "weekly"
    assert spotify.confidence == 0.6
    assert spotify.next_date == date(2025, 6, 17)


def test_amounts_within_ten_percent_are_averaged():
    txs = [
        make_tx(amt, merchant="Electricity", when=datetime(2025, 1, 1) + timedelta(days=14 * i))
        for i, amt in enumerate((950, 1000, 1050))
    ]
    (found,) = recurring.detect_recurring_patterns(txs)
    assert found.amount == 1000
    assert recurring.detect_recurring_patterns(txs, min_occurrences=4) == []


def test_next_occurrence_clamps_month_end():
    assert recurring.next_occurrence(date(2025, 1, 31), "monthly") == date(2025, 2, 28)
    assert recurring.next_occurrence(date(2025, 11, 30), "quarterly") == date(2026, 2, 28)
    assert recurring.next_occurrence(date(2024, 2, 29), "yearly") == date(2025, 2, 28)
    assert recurring.next_occurrence(date(2025, 1, 1), "bi-weekly") == date(2025, 1, 15)
    with pytest.raises(ValueError):
        recurring.next_occurrence(date(2025, 1, 1), "irregular")


def test_upcoming_overdue_and_summary():
    today = date(2025, 12, 5)
    due_soon = pattern("Netflix", 500, "monthly", date(2025, 12, 8))
    later = pattern("Insurance", 3000, "yearly", date(2025, 12, 30))
    late = pattern("Milk", 40, "daily", date(2025, 12, 1))
    patterns = [due_soon, later, late]

    assert recurring.get_upcoming_payments(patterns, today=today) == [due_soon, later]
    assert recurring.get_upcoming_payments(patterns, 7, today) == [due_soon]
    assert recurring.get_overdue_payments(patterns, today) == [late]

    summary = recurring.summarize(patterns, today)
    assert summary["total_patterns"] == 3
    assert summary["upcoming_this_week"] == 1
    assert summary["overdue_count"] == 1
    assert summary["by_frequency"] == {"monthly": 1, "yearly": 1, "daily": 1}
    assert summary["total_monthly_amount"] == pytest.approx(500 + 250 + 1200)


def test_monthly_equivalent():
    assert recurring.monthly_equivalent(100, "weekly") == pytest.approx(433)
    assert recurring.monthly_equivalent(300, "quarterly") == pytest.approx(100)
    assert recurring.monthly_equivalent(100, "irregular") == 0


def test_format_pattern():
    today = date(2025, 12, 5)
    assert recurring.format_pattern(pattern(next_date=date(2025, 12, 8)), today) == (
        "Netflix - Rs.500.00 (Monthly) - Due in 3 days"
    )
    assert recurring.format_pattern(pattern(next_date=today), today).endswith("Due today")
    assert recurring.format_pattern(pattern(next_date=date(2025, 12, 1)), today).endswith("Overdue by 4 days")
    assert recurring.format_pattern(pattern(next_date=date(2025, 12, 31)), today).endswith("Due 2025-12-31")


def test_matches_pattern():
    p = pattern("Netflix", 500)
    assert recurring.matches_pattern(make_tx(520, merchant="NETFLIX"), p)
    assert not recurring.matches_pattern(make_tx(600, merchant="Netflix"), p)
    assert not recurring.matches_pattern(make_tx(500, merchant="Hotstar"), p)
