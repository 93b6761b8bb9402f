# money_manager/manual.py
import logging
from datetime import datetime

import yaml

from money_manager import database
from money_manager.core.categorizer import categorize
from money_manager.core.models import TRANSACTION_TYPES
from money_manager.utils import normalize_merchant_name

logger = logging.getLogger(__name__)

CASH_BANK = 'Cash'
CASH_ACCOUNT_NUMBER = 'CASH'


def load_manual_transactions(path):
    """
    Load manual entries from a YAML list.

    Each entry needs a ``date`` and an ``amount``; ``merchant``, ``type``
    (default ``cash``), ``category`` and ``notes`` are optional.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or []
    if not isinstance(data, list):
        raise ValueError(f"Manual transactions file {path} must contain a list")

    entries = []
    for entry in data:
        date_str = entry.get('date')
        if not date_str:
            raise ValueError(f"Missing 'date' in manual entry: {entry}")
        txn_type = entry.get('type', 'cash')
        if txn_type not in TRANSACTION_TYPES:
            raise ValueError(f"Unknown type '{txn_type}' in manual entry: {entry}")
        amount = float(entry.get('amount', 0.0))
        if amount <= 0:
            raise ValueError(f"Manual entry amount must be positive: {entry}")
        entries.append({
            'date': datetime.fromisoformat(str(date_str)),
            'merchant': normalize_merchant_name(entry.get('merchant') or 'Cash'),
            'amount': amount,
            'type': txn_type,
            'category': entry.get('category'),
            'notes': entry.get('notes'),
        })
    return entries


def import_manual_transactions(db_path, user_id, path, keywords=None):
    """Store the entries of a manual YAML file on the user's Cash account."""
    entries = load_manual_transactions(path)
    account = database.get_or_create_account(
        db_path, user_id, CASH_BANK, CASH_ACCOUNT_NUMBER, created_from_sms=False
    )
    mappings = database.merchant_category_map(db_path, user_id)

    stored = []
    for entry in entries:
        category_name = entry['category'] or categorize(entry['merchant'], mappings, keywords)
        category = database.get_or_create_category(db_path, user_id, category_name)
        is_income = entry['type'] == 'credit'
        stored.append(database.create_transaction(
            db_path,
            user_id,
            account_id=account.id,
            amount=entry['amount'],
            type=entry['type'],
            merchant=entry['merchant'],
            date=entry['date'],
            category_id=category.id,
            tags=['manual'],
            is_income=is_income,
            is_expense=not is_income,
            notes=entry['notes'],
        ))
    logger.info("Imported %d manual transactions from %s", len(stored), path)
    return stored
