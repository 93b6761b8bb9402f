import itertools
import json
from datetime import datetime

import pytest

from money_manager.core.models import RawSMS, Transaction

NOW = datetime(2025, 12, 2, 12, 0)

HDFC_DEBIT = (
    "Debit card xxxx1234 debited for Rs.1,250 at AMAZON.COM on 23-Nov-25. "
    "Balance: Rs.50,000. Ref: TXN123456"
)
HDFC_CREDIT = "Rs.25,000.00 credited to your a/c XX5678 on 01-Dec-25. Avl Bal: Rs.75,000.00"
ICICI_DEBIT = (
    "Amount Rs.5,000 debited from your account. Txn Ref: ABC123. "
    "Balance: Rs.45,000. Merchant: Flipkart"
)
AXIS_DEBIT = "Rs.2,500 debited towards Ola Ride. Ref: XYZ789. Balance: Rs.47,500"
UPI_SENT = "You sent Rs.500 to Rohan via UPI. Ref: 202511231234567"


def ms(dt):
    return int(dt.timestamp() * 1000)


def make_sms(id, sender, body, when=datetime(2025, 11, 25, 10, 0)):
    return RawSMS(id=str(id), sender=sender, body=body, timestamp=ms(when))


_tx_ids = itertools.count(1)


def make_tx(amount, merchant="Shop", when=NOW, income=False, category_id=None, account_id="acc1", type=None, **fields):
    return Transaction(
        id=f"t{next(_tx_ids)}",
        user_id="u1",
        account_id=account_id,
        amount=amount,
        type=type or ("credit" if income else "debit"),
        merchant=merchant,
        date=when,
        category_id=category_id,
        is_income=income,
        is_expense=not income,
        **fields,
    )


SAMPLE_MESSAGES = [
    {"id": "1", "sender": "AD-HDFCBK", "body": HDFC_DEBIT, "timestamp": "2025-11-23T10:15:00"},
    {"id": "2", "sender": "VM-ICICIB", "body": ICICI_DEBIT, "timestamp": "2025-11-23T12:40:00"},
    {"id": "3", "sender": "AX-AXISBK", "body": AXIS_DEBIT, "timestamp": "2025-11-24T08:05:00"},
    {"id": "4", "sender": "GPAY", "body": UPI_SENT, "timestamp": "2025-11-24T19:30:00"},
    {"id": "5", "sender": "AD-HDFCBK", "body": HDFC_CREDIT, "timestamp": "2025-12-01T09:00:00"},
    {"id": "6", "sender": "JM-FRIEND", "body": "Are we still on for dinner tonight?",
     "timestamp": "2025-12-01T18:00:00"},
]


def write_inbox(path, messages=None):
    path.write_text(json.dumps({"messages": SAMPLE_MESSAGES if messages is None else messages}))
    return path


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "money.db")


@pytest.fixture
def inbox_path(tmp_path):
    return write_inbox(tmp_path / "inbox.json")
