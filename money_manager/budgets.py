# money_manager/budgets.py
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from money_manager import database
from money_manager.core.models import Budget, Transaction


@dataclass
class BudgetAlert:
    budget_id: str
    category_id: str
    threshold: float
    current_usage: float
    percentage_used: int
    status: str  # ok | warning | exceeded


def create_budget(db_path, user_id, category_name, amount, month, year,
                  warning_percent=80, critical_percent=100) -> Budget:
    """Create a monthly budget for a category, creating the category if needed."""
    category = database.get_or_create_category(db_path, user_id, category_name)
    return database.create_budget(
        db_path, user_id, category.id, month, year, amount,
        warning_percent=warning_percent, critical_percent=critical_percent,
    )


def get_category_budget(db_path, user_id, category_id, month, year) -> Optional[Budget]:
    for budget in database.get_budgets(db_path, user_id, month, year):
        if budget.category_id == category_id:
            return budget
    return None


def calculate_category_spending(transactions: Iterable[Transaction], category_id, month, year) -> float:
    """Expense total for one category in a calendar month (month is 1-12)."""
    return sum(
        tx.effective_amount
        for tx in transactions
        if tx.is_expense
        and tx.category_id == category_id
        and tx.date.month == month
        and tx.date.year == year
    )


def _status(percentage, budget):
    if percentage >= budget.critical_percent:
        return 'exceeded'
    if percentage >= budget.warning_percent:
        return 'warning'
    return 'ok'


def generate_budget_alerts(budgets: Iterable[Budget], transactions, today: date = None) -> List[BudgetAlert]:
    """Alerts for the budgets covering the current month."""
    today = today or date.today()
    transactions = list(transactions)
    alerts = []
    for budget in budgets:
        if budget.month != today.month or budget.year != today.year:
            continue
        spending = calculate_category_spending(transactions, budget.category_id, budget.month, budget.year)
        percentage = spending / budget.amount * 100 if budget.amount else 0.0
        alerts.append(BudgetAlert(
            budget_id=budget.id,
            category_id=budget.category_id,
            threshold=budget.amount,
            current_usage=spending,
            percentage_used=round(percentage),
            status=_status(percentage, budget),
        ))
    return alerts


def calculate_budget_progress(spending, budget_amount):
    """Progress bar values: percentage capped at 100 plus a colour and label."""
    percentage = min(spending / budget_amount * 100, 100) if budget_amount else 100
    if percentage >= 100:
        color, label = '#FF3B30', 'Exceeded'
    elif percentage >= 80:
        color, label = '#FF9500', 'Near Limit'
    else:
        color, label = '#34C759', 'On Track'
    return {'percentage': round(percentage), 'color': color, 'label': label}
