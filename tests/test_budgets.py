from datetime import date, datetime

from conftest import make_tx
from money_manager import budgets, database
from money_manager.core.models import Budget


def test_create_budget_creates_category(db_path):
    budget = budgets.create_budget(db_path, "u1", "Groceries", 4000, 12, 2025)
    category = database.get_category_by_name(db_path, "u1", "Groceries")
    assert budget.category_id == category.id
    assert budget.warning_percent == 80
    assert budgets.get_category_budget(db_path, "u1", category.id, 12, 2025).id == budget.id
    assert budgets.get_category_budget(db_path, "u1", category.id, 1, 2026) is None


def test_category_spending_uses_net_amount_and_month():
    txs = [
        make_tx(1000, category_id="food", when=datetime(2025, 12, 1), net_amount=600),
        make_tx(200, category_id="food", when=datetime(2025, 12, 15)),
        make_tx(999, category_id="food", when=datetime(2025, 11, 30)),
        make_tx(50, category_id="travel", when=datetime(2025, 12, 3)),
        make_tx(5000, category_id="food", when=datetime(2025, 12, 5), income=True),
    ]
    assert budgets.calculate_category_spending(txs, "food", 12, 2025) == 800


def test_generate_budget_alerts():
    today = date(2025, 12, 20)
    food = Budget(id="b1", user_id="u1", category_id="food", month=12, year=2025, amount=1000)
    travel = Budget(id="b2", user_id="u1", category_id="travel", month=12, year=2025, amount=500)
    rent = Budget(id="b3", user_id="u1", category_id="rent", month=12, year=2025, amount=20000)
    old = Budget(id="b4", user_id="u1", category_id="food", month=11, year=2025, amount=10)
    txs = [
        make_tx(850, category_id="food", when=datetime(2025, 12, 2)),
        make_tx(600, category_id="travel", when=datetime(2025, 12, 3)),
        make_tx(5000, category_id="rent", when=datetime(2025, 12, 1)),
    ]

    alerts = {a.budget_id: a for a in budgets.generate_budget_alerts([food, travel, rent, old], txs, today)}
    assert set(alerts) == {"b1", "b2", "b3"}
    assert alerts["b1"].status == "warning"
    assert alerts["b1"].percentage_used == 85
    assert alerts["b2"].status == "exceeded"
    assert alerts["b2"].current_usage == 600
    assert alerts["b3"].status == "ok"
    assert alerts["b3"].percentage_used == 25


def test_calculate_budget_progress():
    assert budgets.calculate_budget_progress(50, 100) == {
        "percentage": 50, "color": "#34C759", "label": "On Track",
    }
    assert budgets.calculate_budget_progress(85, 100)["label"] == "Near Limit"
    over = budgets.calculate_budget_progress(150, 100)
    assert over["percentage"] == 100
    assert over["label"] == "Exceeded"
    assert budgets.calculate_budget_progress(10, 0)["label"] == "Exceeded"


def test_fully_refunded_expense_counts_as_zero_spend():
    txs = [
        make_tx(1500, category_id="travel", when=datetime(2025, 12, 4), net_amount=0.0, is_linked=True),
        make_tx(200, category_id="travel", when=datetime(2025, 12, 9)),
    ]
    assert budgets.calculate_category_spending(txs, "travel", 12, 2025) == 200
    assert budgets.calculate_category_spending(txs[:1], "travel", 12, 2025) == 0
