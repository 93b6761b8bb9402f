# money_manager/parsers/axis.py
from money_manager.parsers.base import BaseParser, merchant_rx


class AxisParser(BaseParser):
    """
    Axis Bank alerts, e.g.
      "Rs.2,500 debited towards Ola Ride. Ref: XYZ789. Balance: Rs.47,500"
    """
    bank = 'AXIS'
    merchant_patterns = (merchant_rx(r"\btowards\s+"),)

    def detect_type(self, text):
        return 'credit' if 'credited' in text.lower() else 'debit'
