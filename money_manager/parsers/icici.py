# money_manager/parsers/icici.py
import re

from money_manager.parsers.base import BaseParser, MERCHANT_AT_RX, merchant_rx


class ICICIParser(BaseParser):
    """
    ICICI Bank alerts, e.g.
      "Amount Rs.5,000 debited from your account. Txn Ref: ABC123.
       Balance: Rs.45,000. Merchant: Flipkart"
    """
    bank = 'ICICI'
    reference_rx = re.compile(r"Txn Ref:\s*([A-Z0-9]+)", re.I)
    merchant_patterns = (merchant_rx(r"\bMerchant:\s*"), MERCHANT_AT_RX)

    def detect_type(self, text):
        return 'credit' if 'credited' in text.lower() else 'debit'
