# money_manager/filters.py
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import List, Optional

DATE_RANGES = ('today', 'week', 'month', 'year', 'custom')
REFUND_STATUSES = ('linked', 'unlinked')


@dataclass
class FilterOptions:
    date_range: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    transaction_types: List[str] = field(default_factory=list)
    account_ids: List[str] = field(default_factory=list)
    category_ids: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    merchant_search: str = ''
    search_term: str = ''
    refund_status: Optional[str] = None


def get_date_range(range_type, custom_start=None, custom_end=None, now=None):
    """
    Return the (start, end) datetimes covered by a named range.

    ``week`` is the last seven days, ``month`` and ``year`` start on the
    first day of the current month or year. Every range ends at the last
    moment of today, except ``custom`` which uses the given bounds.
    """
    now = now or datetime.now()
    if range_type == 'custom':
        if custom_start is None or custom_end is None:
            raise ValueError("Custom date range needs both a start and an end")
        return _as_datetime(custom_start), _as_datetime(custom_end, end_of_day=True)

    end = datetime.combine(now.date(), time.max)
    today = datetime.combine(now.date(), time.min)
    if range_type == 'today':
        start = today
    elif range_type == 'week':
        start = today - timedelta(days=7)
    elif range_type == 'month':
        start = today.replace(day=1)
    elif range_type == 'year':
        start = today.replace(month=1, day=1)
    else:
        raise ValueError(f"Unknown date range '{range_type}'. Expected one of {DATE_RANGES}")
    return start, end


def _as_datetime(value, end_of_day=False):
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min)
    return _as_datetime(date.fromisoformat(str(value)), end_of_day)


def _matches_type(tx, types):
    if 'debit' in types and tx.is_expense:
        return True
    if 'credit' in types and tx.is_income:
        return True
    return tx.type in types


def apply_filters(transactions, options: FilterOptions, now=None):
    """Return the transactions matching every criterion set on ``options``."""
    filtered = list(transactions)

    if options.date_range:
        start, end = get_date_range(options.date_range, options.start, options.end, now)
        filtered = [tx for tx in filtered if start <= tx.date <= end]

    if options.transaction_types:
        filtered = [tx for tx in filtered if _matches_type(tx, options.transaction_types)]

    if options.account_ids:
        filtered = [tx for tx in filtered if tx.account_id in options.account_ids]

    if options.category_ids:
        filtered = [tx for tx in filtered if tx.category_id in options.category_ids]

    if options.tags:
        wanted = set(options.tags)
        filtered = [tx for tx in filtered if wanted.intersection(tx.tags or [])]

    if options.merchant_search.strip():
        needle = options.merchant_search.strip().lower()
        filtered = [tx for tx in filtered if needle in (tx.merchant or '').lower()]

    if options.search_term.strip():
        needle = options.search_term.strip().lower()
        filtered = [
            tx for tx in filtered
            if needle in (tx.merchant or '').lower() or needle in (tx.notes or '').lower()
        ]

    if options.refund_status:
        if options.refund_status not in REFUND_STATUSES:
            raise ValueError(f"Unknown refund status '{options.refund_status}'")
        want_linked = options.refund_status == 'linked'
        filtered = [tx for tx in filtered if tx.is_linked == want_linked]

    return filtered


def calculate_stats(transactions, accounts=()):
    stats = {
        'total_transactions': 0,
        'total_debit': 0.0,
        'total_credit': 0.0,
        'total_net': 0.0,
        'debit_count': 0,
        'credit_count': 0,
        'by_category': {},
        'by_merchant': [],
        'by_account': {acc.id: {'count': 0, 'debit': 0.0, 'credit': 0.0} for acc in accounts},
    }
    merchants = {}
    for tx in transactions:
        amount = tx.effective_amount
        stats['total_transactions'] += 1
        if tx.is_expense:
            stats['total_debit'] += amount
            stats['debit_count'] += 1
        elif tx.is_income:
            stats['total_credit'] += amount
            stats['credit_count'] += 1

        cat = stats['by_category'].setdefault(tx.category_id, {'count': 0, 'amount': 0.0})
        cat['count'] += 1
        cat['amount'] += amount

        if tx.merchant:
            m = merchants.setdefault(tx.merchant, {'merchant': tx.merchant, 'count': 0, 'amount': 0.0})
            m['count'] += 1
            m['amount'] += amount

        acc = stats['by_account'].get(tx.account_id)
        if acc is not None:
            acc['count'] += 1
            acc['debit' if tx.is_expense else 'credit'] += amount

    stats['total_net'] = stats['total_credit'] - stats['total_debit']
    stats['by_merchant'] = sorted(merchants.values(), key=lambda m: m['amount'], reverse=True)
    return stats


def top_merchants(stats, limit=5):
    return stats['by_merchant'][:limit]
