# money_manager/sms.py
import json
import logging
import os
from datetime import datetime, timedelta

import pandas as pd

from money_manager import database
from money_manager.core.models import RawSMS

logger = logging.getLogger(__name__)

TRANSACTION_KEYWORDS = [
    'debit', 'credit', 'amount', 'balance', 'transaction',
    'payment', 'transferred', 'received', 'debited', 'credited',
    'rupees', 'rs', '₹', 'account', 'card', 'atm', 'upi',
    'hdfc', 'icici', 'axis', 'sbi', 'bank',
]

BANK_SENDER_PATTERNS = {
    'HDFC': ['hdfc', 'hdfcbank'],
    'ICICI': ['icici', 'icicbank'],
    'AXIS': ['axis', 'axisbank'],
    'SBI': ['sbi', 'sbisecurity'],
    'UPI': ['upi', 'gpay', 'paytm', 'phonepe'],
}

_REQUIRED_COLUMNS = ('id', 'sender', 'body', 'timestamp')


def _to_timestamp(value, source):
    """Epoch milliseconds from an int/float, numeric string or ISO datetime string."""
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    if hasattr(value, 'item'):
        value = value.item()
    if isinstance(value, (int, float)) and not pd.isna(value):
        return int(value)
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    try:
        return int(datetime.fromisoformat(text).timestamp() * 1000)
    except ValueError:
        raise ValueError(f"Could not parse timestamp '{value}' in {source}")


def _to_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in {'1', 'true', 'yes'}
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return False
    return bool(value)


def _record_to_sms(record, source):
    missing = [c for c in _REQUIRED_COLUMNS if c not in record]
    if missing:
        raise ValueError(f"Missing field(s) {', '.join(missing)} in {source}: {record}")
    return RawSMS(
        id=str(record['id']),
        sender=str(record['sender']),
        body=str(record['body']),
        timestamp=_to_timestamp(record['timestamp'], source),
        read=_to_bool(record.get('read', False)),
    )


def load_sms_export(path):
    """
    Read an exported SMS inbox.

    ``.json`` files hold a list of message objects, or an object with a
    ``messages`` list. ``.csv`` and ``.xlsx`` files need the columns
    id, sender, body and timestamp (``read`` is optional).
    """
    ext = os.path.splitext(path)[1].lower()
    if ext == '.json':
        with open(path, encoding='utf-8') as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get('messages', [])
        records = data
    elif ext in ('.csv', '.xlsx'):
        if ext == '.csv':
            df = pd.read_csv(path, dtype={'id': str, 'sender': str, 'body': str})
        else:
            df = pd.read_excel(path, engine='openpyxl', dtype={'id': str, 'sender': str, 'body': str})
        df.columns = [str(c).strip().lower() for c in df.columns]
        records = df.to_dict(orient='records')
    else:
        raise ValueError(f"Unsupported SMS export format '{ext}' for {path}")

    return [_record_to_sms(r, path) for r in records]


def filter_transaction_sms(messages):
    """Keep messages whose body looks like a money movement."""
    return [
        sms for sms in messages
        if any(kw in sms.body.lower() for kw in TRANSACTION_KEYWORDS)
    ]


def sms_by_bank(messages, bank):
    patterns = BANK_SENDER_PATTERNS.get(bank.upper(), [])
    return [
        sms for sms in messages
        if any(p in sms.sender.lower() for p in patterns)
    ]


class SMSInbox:
    """
    File-backed SMS source with a persistent processed-message set.

    The processed set lives in the ``processed_sms`` table of ``db_path`` so
    a message is only ingested once across runs.
    """

    def __init__(self, path, db_path, limit=100, days_back=30, filter='transaction'):
        self.path = path
        self.db_path = db_path
        self.limit = limit
        self.days_back = days_back
        self.filter = filter
        self._processed = None

    @property
    def processed_ids(self):
        if self._processed is None:
            self._processed = database.get_processed_sms_ids(self.db_path)
        return self._processed

    def request_permissions(self):
        """True when the inbox export can be read."""
        if not self.path or not os.path.isfile(self.path):
            logger.error("SMS export not found: %s", self.path)
            return False
        if not os.access(self.path, os.R_OK):
            logger.error("SMS export not readable: %s", self.path)
            return False
        self._processed = database.get_processed_sms_ids(self.db_path)
        return True

    def read_sms(self, limit=None, filter=None, days_back=None, now=None, exclude=()):
        """
        Return inbox messages newest first, like a phone inbox.

        Messages whose id is in ``exclude`` are dropped before ``limit`` is
        applied.
        """
        limit = self.limit if limit is None else limit
        filter = filter or self.filter
        days_back = self.days_back if days_back is None else days_back
        now = now or datetime.now()

        messages = load_sms_export(self.path)
        logger.info("Reading SMS (limit: %s, days: %s) from %s", limit, days_back, self.path)

        if days_back:
            cutoff = int((now - timedelta(days=days_back)).timestamp() * 1000)
            messages = [sms for sms in messages if sms.timestamp > cutoff]
        if filter == 'transaction':
            messages = filter_transaction_sms(messages)
        messages.sort(key=lambda sms: sms.timestamp, reverse=True)
        if exclude:
            messages = [sms for sms in messages if sms.id not in exclude]
        if limit:
            messages = messages[:limit]

        logger.info("Read %d SMS messages", len(messages))
        return messages

    def is_new_sms(self, sms):
        return sms.id not in self.processed_ids

    def get_unprocessed_sms(self, now=None):
        """The newest unprocessed messages, returned oldest first."""
        fresh = self.read_sms(now=now, exclude=self.processed_ids)[::-1]
        logger.info("Found %d new SMS messages", len(fresh))
        return fresh

    def mark_processed(self, sms):
        database.mark_sms_processed(self.db_path, sms.id)
        self.processed_ids.add(sms.id)
        logger.debug("Marked SMS as processed: %s", sms.id)

    def clear_processed_sms(self):
        database.clear_processed_sms(self.db_path)
        self._processed = set()
        logger.info("Cleared processed SMS history")
