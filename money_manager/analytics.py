# money_manager/analytics.py
"""Spending analytics over stored transactions.

Every function works on plain ``Transaction`` lists. Category names are
looked up through an optional ``category_names`` mapping (id -> name);
unknown or missing categories are reported as ``Other``.
"""
from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Dict, List

from money_manager import budgets, database

REPORT_PERIODS = {'weekly': 7, 'monthly': 30, 'yearly': 365}


def _category(tx, category_names) -> str:
    return (category_names or {}).get(tx.category_id) or 'Other'


def calculate_monthly_stats(transactions) -> List[dict]:
    months: Dict[str, dict] = {}
    for tx in transactions:
        key = tx.date.strftime('%Y-%m')
        m = months.setdefault(key, {'month': key, 'income': 0.0, 'expense': 0.0, 'transactions': 0})
        if tx.is_income:
            m['income'] += tx.amount
        else:
            m['expense'] += tx.effective_amount
        m['transactions'] += 1
    for m in months.values():
        m['net'] = m['income'] - m['expense']
    return [months[k] for k in sorted(months)]


def category_trend(transactions, category, category_names=None, now=None) -> str:
    """Compare the last two weeks of spend in a category with the two before."""
    now = now or datetime.now()
    two_weeks_ago = now - timedelta(days=14)
    four_weeks_ago = now - timedelta(days=28)
    old = new = 0.0
    for tx in transactions:
        if not tx.is_expense or _category(tx, category_names) != category:
            continue
        if four_weeks_ago <= tx.date < two_weeks_ago:
            old += tx.effective_amount
        elif two_weeks_ago <= tx.date <= now:
            new += tx.effective_amount
    if new > old * 1.1:
        return 'up'
    if new < old * 0.9:
        return 'down'
    return 'stable'


def analyze_category_distribution(transactions, category_names=None, now=None) -> List[dict]:
    transactions = list(transactions)
    totals: Dict[str, dict] = {}
    grand_total = 0.0
    for tx in transactions:
        if not tx.is_expense:
            continue
        name = _category(tx, category_names)
        entry = totals.setdefault(name, {'amount': 0.0, 'transactions': 0})
        entry['amount'] += tx.effective_amount
        entry['transactions'] += 1
        grand_total += tx.effective_amount

    result = [
        {
            'category': name,
            'amount': entry['amount'],
            'transactions': entry['transactions'],
            'percentage': round(entry['amount'] / grand_total * 100, 1) if grand_total else 0.0,
            'trend': category_trend(transactions, name, category_names, now),
        }
        for name, entry in totals.items()
    ]
    return sorted(result, key=lambda c: c['amount'], reverse=True)


def get_daily_trend(transactions, category_names=None) -> List[dict]:
    days: Dict[str, dict] = {}
    for tx in transactions:
        key = tx.date.date().isoformat()
        day = days.setdefault(key, {'date': key, 'amount': 0.0, 'category': _category(tx, category_names)})
        if tx.is_expense:
            day['amount'] += tx.effective_amount
    return [days[k] for k in sorted(days)]


def generate_report(transactions, period='monthly', category_names=None, now=None) -> dict:
    if period not in REPORT_PERIODS:
        raise ValueError(f"Unknown report period '{period}'. Expected one of {tuple(REPORT_PERIODS)}")
    now = now or datetime.now()
    days = REPORT_PERIODS[period]
    start = now - timedelta(days=days)
    in_period = [tx for tx in transactions if start <= tx.date <= now]

    income = sum(tx.amount for tx in in_period if tx.is_income)
    expense = sum(tx.effective_amount for tx in in_period if tx.is_expense)
    net = income - expense
    count = len(in_period)
    return {
        'period': period,
        'start_date': start,
        'end_date': now,
        'total_income': income,
        'total_expense': expense,
        'net_income': net,
        'savings_rate': net / income * 100 if income > 0 else 0.0,
        'average_daily_spend': round(expense / days),
        'average_transaction_value': round(expense / count) if count else 0,
        'top_categories': analyze_category_distribution(in_period, category_names, now)[:5],
        'monthly_stats': calculate_monthly_stats(in_period),
        'trends': get_daily_trend(in_period, category_names),
    }


def year_over_year(current_year, previous_year) -> dict:
    current = sum(tx.effective_amount for tx in current_year if tx.is_expense)
    previous = sum(tx.effective_amount for tx in previous_year if tx.is_expense)
    change = (current - previous) / previous * 100 if previous > 0 else 0.0
    return {
        'current_year_total': current,
        'previous_year_total': previous,
        'percent_change': round(change, 1),
        'trend': 'up' if change > 0 else 'down',
    }


def calculate_health_score(report) -> int:
    """
    Score 0-100. Deductions: negative net income (20), savings rate under
    10% (15) or under 20% (10), month-to-month expense variation above 0.5
    (15) or 0.3 (10).
    """
    score = 100
    if report['net_income'] < 0:
        score -= 20

    if report['savings_rate'] < 10:
        score -= 15
    elif report['savings_rate'] < 20:
        score -= 10

    expenses = [m['expense'] for m in report['monthly_stats']]
    if expenses:
        mean = sum(expenses) / len(expenses)
        variance = sum((e - mean) ** 2 for e in expenses) / len(expenses)
        cv = math.sqrt(variance) / mean if mean > 0 else 0.0
        if cv > 0.5:
            score -= 15
        elif cv > 0.3:
            score -= 10

    return max(0, min(100, score))


def get_insights(report) -> List[str]:
    insights = []
    if report['net_income'] <= 0:
        insights.append("You're spending more than you earn. Focus on reducing expenses.")
    elif report['savings_rate'] > 30:
        insights.append("Excellent! You're saving 30%+ of your income.")
    elif report['savings_rate'] > 20:
        insights.append("Good job! You're saving 20%+ of your income.")

    top = report['top_categories']
    if top:
        insights.append(f"{top[0]['category']} is your top expense ({top[0]['percentage']}%)")
        rising = [c for c in top if c['trend'] == 'up']
        if rising:
            insights.append(f"Watch out: {rising[0]['category']} spending is trending up")

    if report['average_daily_spend'] > 0:
        insights.append(f"You spend Rs.{report['average_daily_spend']} per day on average")
    return insights


def _previous_month(today: date):
    first = today.replace(day=1)
    last_month = first - timedelta(days=1)
    return last_month.month, last_month.year


def dashboard_stats(db_path, user_id, today=None, recent_limit=10) -> dict:
    """Headline numbers for the current month plus per-account and budget status."""
    today = today or date.today()
    transactions = database.fetch_transactions(db_path, user_id)
    accounts = database.get_accounts(db_path, user_id)
    category_names = {c.id: c.name for c in database.get_categories(db_path, user_id)}

    def in_month(tx, month, year):
        return tx.date.month == month and tx.date.year == year

    prev_month, prev_year = _previous_month(today)
    month_expense = sum(
        tx.effective_amount for tx in transactions
        if tx.is_expense and in_month(tx, today.month, today.year)
    )
    month_income = sum(
        tx.amount for tx in transactions
        if tx.is_income and in_month(tx, today.month, today.year)
    )
    previous_month_income = sum(
        tx.amount for tx in transactions if tx.is_income and in_month(tx, prev_month, prev_year)
    )

    by_account = {
        acc.id: {'bank': acc.bank_name, 'balance': acc.balance, 'debit': 0.0, 'credit': 0.0}
        for acc in accounts
    }
    by_category: Dict[str, float] = {}
    for tx in transactions:
        if not in_month(tx, today.month, today.year):
            continue
        acc = by_account.get(tx.account_id)
        if acc is not None:
            acc['debit' if tx.is_expense else 'credit'] += tx.effective_amount
        if tx.is_expense:
            name = _category(tx, category_names)
            by_category[name] = by_category.get(name, 0.0) + tx.effective_amount

    month_budgets = database.get_budgets(db_path, user_id, today.month, today.year)
    budget_status = [
        {
            'category': category_names.get(alert.category_id, 'Other'),
            'budget': alert.threshold,
            'spent': alert.current_usage,
            'percentage': alert.percentage_used,
            'status': alert.status,
        }
        for alert in budgets.generate_budget_alerts(month_budgets, transactions, today)
    ]

    return {
        'total_balance': sum(acc.balance for acc in accounts),
        'month_expense': month_expense,
        'month_income': month_income,
        'previous_month_income': previous_month_income,
        'recent_transactions': sorted(transactions, key=lambda t: t.date, reverse=True)[:recent_limit],
        'by_account': by_account,
        'by_category': by_category,
        'budget_status': budget_status,
    }
