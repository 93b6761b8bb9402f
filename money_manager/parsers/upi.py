# money_manager/parsers/upi.py
import re

from money_manager.parsers.base import BaseParser

# Recipient name or VPA, e.g. "to Rohan" / "to rohan.k@okaxis"
_RECIPIENT_RX = re.compile(r"\bto\s+([A-Za-z0-9@._\-]+)", re.I)


class UPIParser(BaseParser):
    """
    UPI app notifications (GPay, PhonePe, Paytm ...), e.g.
      "You sent Rs.500 to Rohan via UPI. Ref: 202511231234567"

    The type is always ``upi``; the merchant is the recipient.
    """
    bank = 'UPI'

    def detect_type(self, text):
        return 'upi'

    def extract_merchant(self, text):
        m = _RECIPIENT_RX.search(text)
        if not m:
            return None
        return m.group(1).rstrip('.') or None
