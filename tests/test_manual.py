from datetime import datetime

import pytest
import yaml

from conftest import make_tx
from money_manager import database
from money_manager.manual import import_manual_transactions, load_manual_transactions
from money_manager.utils import (
    dedupe_transactions,
    filter_transactions_by_month,
    format_currency,
    normalize_merchant_name,
)


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))
    return path


def test_load_manual_transactions(tmp_path):
    path = write_yaml(tmp_path / "manual.yaml", [
        {"date": "2025-11-20", "merchant": "  corner   CAFE ", "amount": 120},
        {"date": "2025-11-21", "amount": 40, "type": "debit", "category": "Travel", "notes": "auto"},
    ])
    first, second = load_manual_transactions(path)
    assert first["date"] == datetime(2025, 11, 20)
    assert first["merchant"] == "Corner Cafe"
    assert first["type"] == "cash"
    assert first["category"] is None
    assert second["merchant"] == "Cash"
    assert second["category"] == "Travel"
    assert second["notes"] == "auto"


@pytest.mark.parametrize("data", [
    {"date": "2025-11-20", "amount": 10},
    [{"amount": 10}],
    [{"date": "2025-11-20", "amount": 0}],
    [{"date": "2025-11-20", "amount": 10, "type": "barter"}],
])
def test_load_manual_transactions_rejects_bad_entries(tmp_path, data):
    path = write_yaml(tmp_path / "manual.yaml", data)
    with pytest.raises(ValueError):
        load_manual_transactions(path)


def test_import_manual_transactions(tmp_path, db_path):
    path = write_yaml(tmp_path / "manual.yaml", [
        {"date": "2025-11-20", "merchant": "swiggy", "amount": 250},
        {"date": "2025-11-22", "merchant": "Tuition refund", "amount": 1000, "type": "credit",
         "category": "Refund"},
    ])
    stored = import_manual_transactions(db_path, "u1", path)
    assert len(stored) == 2

    (account,) = database.get_accounts(db_path, "u1")
    assert account.bank_name == "Cash"
    assert account.account_number == "CASH"
    assert not account.created_from_sms

    food = database.get_transaction(db_path, stored[0].id)
    assert database.get_category(db_path, food.category_id).name == "Food"
    assert food.tags == ["manual"]
    assert food.is_expense

    refund = database.get_transaction(db_path, stored[1].id)
    assert refund.is_income and not refund.is_expense
    assert database.get_category(db_path, refund.category_id).name == "Refund"

    # a second import reuses the cash account
    import_manual_transactions(db_path, "u1", path)
    assert len(database.get_accounts(db_path, "u1")) == 1


def test_filter_transactions_by_month():
    txs = [make_tx(1, when=datetime(2025, 11, 30)), make_tx(2, when=datetime(2025, 12, 1))]
    assert [t.amount for t in filter_transactions_by_month(txs, "2025-12")] == [2]
    with pytest.raises(ValueError):
        filter_transactions_by_month(txs, "December")


def test_dedupe_transactions_keeps_first():
    a = make_tx(100, merchant="Uber", when=datetime(2025, 12, 1))
    b = make_tx(100, merchant="Uber", when=datetime(2025, 12, 1))
    c = make_tx(100, merchant="Uber", when=datetime(2025, 12, 1), income=True)
    assert dedupe_transactions([a, b, c]) == [a, c]


def test_normalize_and_format():
    assert normalize_merchant_name("  big   BAZAAR ") == "Big Bazaar"
    assert format_currency(1234.5) == "Rs. 1,234.50"
    assert format_currency(10, currency="INR") == "INR 10.00"
