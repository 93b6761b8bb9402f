# money_manager/backup.py
"""JSON backup and restore of a user's accounts, categories and transactions."""
import json
import logging
from dataclasses import asdict
from datetime import date, datetime

from money_manager import database

logger = logging.getLogger(__name__)

BACKUP_VERSION = '1.0.0'
_REQUIRED_KEYS = ('version', 'accounts', 'transactions')


def _jsonable(record):
    return {
        key: value.isoformat() if isinstance(value, (date, datetime)) else value
        for key, value in asdict(record).items()
    }


def export_data(db_path, user_id, now=None):
    transactions = database.fetch_transactions(db_path, user_id)
    accounts = database.get_accounts(db_path, user_id)
    categories = database.get_categories(db_path, user_id)
    return {
        'version': BACKUP_VERSION,
        'timestamp': (now or datetime.now()).isoformat(timespec='seconds'),
        'accounts': [_jsonable(a) for a in accounts],
        'categories': [_jsonable(c) for c in categories],
        'transactions': [_jsonable(t) for t in transactions],
        'metadata': {
            'total_transactions': len(transactions),
            'total_accounts': len(accounts),
        },
    }


def write_backup(db_path, user_id, path):
    data = export_data(db_path, user_id)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    logger.info(
        "Backup written to %s (%d transactions, %d accounts)",
        path, data['metadata']['total_transactions'], data['metadata']['total_accounts'],
    )
    return data


def read_backup(path):
    with open(path, encoding='utf-8') as f:
        data = json.load(f)
    missing = [k for k in _REQUIRED_KEYS if not isinstance(data, dict) or k not in data]
    if missing:
        raise ValueError(f"Invalid backup file {path}: missing {', '.join(missing)}")
    return data


def import_data(db_path, user_id, data):
    """
    Restore a backup into ``user_id``'s data.

    Accounts are restored before the transactions that reference them.
    Categories that already exist by name are reused. Records whose id is
    already present are left untouched. Returns the number of rows inserted
    per table.
    """
    missing = [k for k in _REQUIRED_KEYS if k not in data]
    if missing:
        raise ValueError(f"Invalid backup: missing {', '.join(missing)}")

    counts = {}
    accounts = [dict(a, user_id=user_id) for a in data['accounts']]
    counts['accounts'] = database.restore_records(db_path, 'accounts', accounts)

    category_ids = {}
    new_categories = []
    for cat in data.get('categories', []):
        existing = database.get_category_by_name(db_path, user_id, cat['name'])
        if existing is not None:
            category_ids[cat['id']] = existing.id
        else:
            category_ids[cat['id']] = cat['id']
            new_categories.append(dict(cat, user_id=user_id))
    counts['categories'] = database.restore_records(db_path, 'categories', new_categories)

    transactions = []
    for tx in data['transactions']:
        category_id = tx.get('category_id')
        transactions.append(dict(tx, user_id=user_id, category_id=category_ids.get(category_id, category_id)))
    counts['transactions'] = database.restore_records(db_path, 'transactions', transactions)

    logger.info("Backup restored: %s", counts)
    return counts


def backup_stats(data):
    size_kb = len(json.dumps(data)) / 1024
    dates = [datetime.fromisoformat(t['date']) for t in data.get('transactions', [])]
    if dates:
        date_range = f"{min(dates).date().isoformat()} - {max(dates).date().isoformat()}"
    else:
        date_range = 'Unknown'
    metadata = data.get('metadata', {})
    return {
        'size': f"{size_kb:.2f} KB",
        'transaction_count': metadata.get('total_transactions', len(data.get('transactions', []))),
        'account_count': metadata.get('total_accounts', len(data.get('accounts', []))),
        'date_range': date_range,
    }
