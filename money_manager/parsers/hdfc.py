# money_manager/parsers/hdfc.py
from money_manager.parsers.base import BaseParser, MERCHANT_AT_RX, merchant_rx


class HDFCParser(BaseParser):
    """
    HDFC Bank alerts, e.g.
      "Debit card xxxx1234 debited for Rs.1,250 at AMAZON.COM on 23-Nov-25.
       Balance: Rs.50,000. Ref: TXN123456"

    Any mention of "credit" marks a credit; "atm" overrides both.
    """
    bank = 'HDFC'
    merchant_patterns = (MERCHANT_AT_RX, merchant_rx(r"\bon\s+"))

    def detect_type(self, text):
        low = text.lower()
        txn_type = 'debit'
        if 'credit' in low:
            txn_type = 'credit'
        if 'atm' in low:
            txn_type = 'atm'
        return txn_type
