from datetime import date, datetime, time

import pytest

from conftest import NOW, make_tx
from money_manager.core.models import Account
from money_manager.filters import FilterOptions, apply_filters, calculate_stats, get_date_range, top_merchants


def test_named_date_ranges():
    end = datetime(2025, 12, 2, 23, 59, 59, 999999)
    assert get_date_range("today", now=NOW) == (datetime(2025, 12, 2), end)
    assert get_date_range("week", now=NOW) == (datetime(2025, 11, 25), end)
    assert get_date_range("month", now=NOW) == (datetime(2025, 12, 1), end)
    assert get_date_range("year", now=NOW) == (datetime(2025, 1, 1), end)


def test_custom_date_range():
    start, end = get_date_range("custom", "2025-11-01", date(2025, 11, 15), now=NOW)
    assert start == datetime(2025, 11, 1)
    assert end == datetime.combine(date(2025, 11, 15), time.max)
    with pytest.raises(ValueError):
        get_date_range("custom", "2025-11-01", now=NOW)
    with pytest.raises(ValueError):
        get_date_range("fortnight", now=NOW)


@pytest.fixture
def transactions():
    return [
        make_tx(1200, merchant="Amazon", when=datetime(2025, 12, 1, 9), category_id="shop", tags=["sms_hdfc"]),
        make_tx(300, merchant="Swiggy", when=datetime(2025, 11, 28), category_id="food", account_id="acc2",
                notes="team lunch"),
        make_tx(500, merchant="Rohan", when=datetime(2025, 11, 20), type="upi", category_id="transfer"),
        make_tx(25000, merchant="Employer", when=datetime(2025, 12, 1), income=True, category_id="salary"),
        make_tx(900, merchant="Amazon Fresh", when=datetime(2025, 10, 5), category_id="food", is_linked=True),
    ]


def test_filter_by_date_range_and_type(transactions):
    month = apply_filters(transactions, FilterOptions(date_range="month"), now=NOW)
    assert [tx.merchant for tx in month] == ["Amazon", "Employer"]

    credits = apply_filters(transactions, FilterOptions(transaction_types=["credit"]))
    assert [tx.merchant for tx in credits] == ["Employer"]

    # every expense counts as a debit, upi included
    debits = apply_filters(transactions, FilterOptions(transaction_types=["debit"]))
    assert len(debits) == 4

    upi = apply_filters(transactions, FilterOptions(transaction_types=["upi"]))
    assert [tx.merchant for tx in upi] == ["Rohan"]


def test_filter_by_ids_tags_and_search(transactions):
    assert len(apply_filters(transactions, FilterOptions(account_ids=["acc2"]))) == 1
    assert len(apply_filters(transactions, FilterOptions(category_ids=["food", "salary"]))) == 3
    assert [t.merchant for t in apply_filters(transactions, FilterOptions(tags=["sms_hdfc"]))] == ["Amazon"]
    assert len(apply_filters(transactions, FilterOptions(merchant_search="  amazon "))) == 2
    assert [t.merchant for t in apply_filters(transactions, FilterOptions(search_term="lunch"))] == ["Swiggy"]


def test_filter_by_refund_status(transactions):
    linked = apply_filters(transactions, FilterOptions(refund_status="linked"))
    assert [t.merchant for t in linked] == ["Amazon Fresh"]
    assert len(apply_filters(transactions, FilterOptions(refund_status="unlinked"))) == 4
    with pytest.raises(ValueError):
        apply_filters(transactions, FilterOptions(refund_status="partial"))


def test_calculate_stats(transactions):
    accounts = [Account(id="acc1", user_id="u1", bank_name="HDFC", account_number="1234"),
                Account(id="acc2", user_id="u1", bank_name="ICICI", account_number="5678")]
    stats = calculate_stats(transactions, accounts)

    assert stats["total_transactions"] == 5
    assert stats["total_debit"] == 2900
    assert stats["total_credit"] == 25000
    assert stats["total_net"] == 22100
    assert stats["debit_count"] == 4
    assert stats["credit_count"] == 1
    assert stats["by_category"]["food"] == {"count": 2, "amount": 1200}
    assert stats["by_account"]["acc2"] == {"count": 1, "debit": 300, "credit": 0}
    assert stats["by_account"]["acc1"]["credit"] == 25000

    assert [m["merchant"] for m in top_merchants(stats, 2)] == ["Employer", "Amazon"]


def test_calculate_stats_with_full_refund():
    refunded = make_tx(700, merchant="Myntra", when=datetime(2025, 11, 12), category_id="shop",
                       account_id="acc1", net_amount=0.0, is_linked=True)
    accounts = [Account(id="acc1", user_id="u1", bank_name="HDFC", account_number="1234")]
    stats = calculate_stats([refunded], accounts)

    assert stats["total_debit"] == 0
    assert stats["debit_count"] == 1
    assert stats["by_category"]["shop"] == {"count": 1, "amount": 0}
    assert stats["by_account"]["acc1"]["debit"] == 0
