# money_manager/parsers/base.py
import re
from abc import ABC, abstractmethod

from money_manager.core.models import ParsedSMS

# First rupee figure in the body; commas are thousands separators (1,00,000).
AMOUNT_RX = re.compile(r"(?:\bRs\.?|\bINR|₹)\s*([\d,]+(?:\.\d+)?)", re.I)
BALANCE_RX = re.compile(
    r"\b(?:Avl\.?\s*|Available\s+)?Bal(?:ance)?\s*[:.]?\s*(?:is\s+)?"
    r"(?:\bRs\.?|\bINR|₹)\s*([\d,]+(?:\.\d+)?)",
    re.I,
)
ACCOUNT_RX = re.compile(
    r"(?:card|a/c|acct|account)\s*(?:no\.?\s*)?(?:ending\s*(?:with\s*)?)?[xX*]*(\d{4})\b",
    re.I,
)
REF_RX = re.compile(r"Ref:\s*([A-Z0-9]+)", re.I)
MERCHANT_END = r"(?=\s+(?:on|via)\s|\s*\.(?:\s|$)|\s*$|\s*[^A-Za-z0-9&'.\- ])"


def merchant_rx(prefix):
    """Pattern capturing a merchant name that follows ``prefix``."""
    return re.compile(prefix + r"([A-Za-z][A-Za-z0-9&'.\- ]*?)" + MERCHANT_END, re.I)


MERCHANT_AT_RX = merchant_rx(r"\bat\s+")


def to_amount(raw):
    """Turn a captured figure like ``1,00,000.50`` into a float."""
    cleaned = raw.replace(',', '').rstrip('.')
    if not cleaned:
        return None
    return float(cleaned)


class BaseParser(ABC):
    """Regex parser for one bank's SMS format.

    Subclasses set the patterns and implement ``detect_type``. ``parse``
    returns ``None`` when the body carries no recognisable amount.
    """
    bank = None
    amount_rx = AMOUNT_RX
    merchant_patterns = ()
    reference_rx = REF_RX
    account_rx = ACCOUNT_RX
    balance_rx = BALANCE_RX

    @abstractmethod
    def detect_type(self, text):
        """Return one of the transaction type codes for this body."""

    def parse(self, sms):
        text = sms.body
        amount = self.extract_amount(text)
        if amount is None:
            return None
        return ParsedSMS(
            type=self.detect_type(text),
            amount=amount,
            date=sms.date,
            raw_sms=sms,
            merchant=self.extract_merchant(text),
            account=self._search(self.account_rx, text),
            reference=self._search(self.reference_rx, text),
            bank=self.bank,
            balance=self.extract_balance(text),
        )

    def extract_amount(self, text):
        m = self.amount_rx.search(text)
        if not m:
            return None
        return to_amount(m.group(m.lastindex))

    def extract_balance(self, text):
        raw = self._search(self.balance_rx, text)
        return to_amount(raw) if raw else None

    def extract_merchant(self, text):
        for rx in self.merchant_patterns:
            found = self._search(rx, text)
            if found:
                return found
        return None

    @staticmethod
    def _search(rx, text):
        if rx is None:
            return None
        m = rx.search(text)
        if not m:
            return None
        value = m.group(1).strip()
        return value or None
