# money_manager/parsers/generic.py
import re

from money_manager.parsers.base import BaseParser


class GenericParser(BaseParser):
    """Best-effort fallback for senders no bank parser claims."""
    amount_rx = re.compile(r"([₹$]|\bRs\.?)\s*([\d,]+(?:\.\d+)?)", re.I)
    reference_rx = None
    account_rx = None

    def detect_type(self, text):
        low = text.lower()
        if 'debit' in low:
            return 'debit'
        if 'credit' in low:
            return 'credit'
        return 'cash'
