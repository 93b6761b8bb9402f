# money_manager/parsers/sbi.py
from money_manager.parsers.base import BaseParser, MERCHANT_AT_RX


class SBIParser(BaseParser):
    bank = 'SBI'
    merchant_patterns = (MERCHANT_AT_RX,)

    def detect_type(self, text):
        low = text.lower()
        if 'atm' in low:
            return 'atm'
        if 'credit' in low:
            return 'credit'
        return 'debit'
