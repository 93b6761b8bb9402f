# money_manager/utils.py
import re


def filter_transactions_by_month(transactions, month_str):
    """
    Return only those transactions whose date falls in the given YYYY-MM.
    """
    try:
        year, month = map(int, month_str.split('-'))
    except ValueError:
        raise ValueError(f"Month must look like YYYY-MM, got '{month_str}'")
    return [tx for tx in transactions if tx.date.year == year and tx.date.month == month]


def dedupe_transactions(transactions):
    """
    Remove duplicates based on (date, merchant, amount, type).
    """
    seen = set()
    unique = []
    for tx in transactions:
        key = (tx.date, tx.merchant, tx.amount, tx.type)
        if key not in seen:
            seen.add(key)
            unique.append(tx)
    return unique


def normalize_merchant_name(merchant):
    """'  big   BAZAAR ' -> 'Big Bazaar'"""
    words = re.sub(r'\s+', ' ', merchant.strip().lower()).split(' ')
    return ' '.join(w[:1].upper() + w[1:] for w in words)


def format_currency(amount, currency='Rs.'):
    return f"{currency} {amount:,.2f}"
