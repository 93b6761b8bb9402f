# money_manager/parsers/__init__.py
import logging
from importlib import import_module

from money_manager.core.models import TRANSACTION_TYPES

logger = logging.getLogger(__name__)

UNKNOWN_BANK = 'UNKNOWN'

# Checked in order; the first bank whose fragment occurs in the sender wins.
DEFAULT_SENDER_PATTERNS = {
    'HDFC': ['hdfc'],
    'ICICI': ['icici'],
    'AXIS': ['axis'],
    'SBI': ['sbi'],
    'UPI': ['upi', 'pay'],
}

DEFAULT_BANK_PARSERS = {
    'HDFC': 'money_manager.parsers.hdfc.HDFCParser',
    'ICICI': 'money_manager.parsers.icici.ICICIParser',
    'AXIS': 'money_manager.parsers.axis.AxisParser',
    'SBI': 'money_manager.parsers.sbi.SBIParser',
    'UPI': 'money_manager.parsers.upi.UPIParser',
    UNKNOWN_BANK: 'money_manager.parsers.generic.GenericParser',
}


def get_parser(name, config=None):
    parsers = (config or {}).get('bank_parsers') or DEFAULT_BANK_PARSERS
    parser_path = parsers.get(name) or parsers.get(UNKNOWN_BANK) or DEFAULT_BANK_PARSERS[UNKNOWN_BANK]
    module_name, cls_name = parser_path.rsplit('.', 1)
    mod = import_module(module_name)
    return getattr(mod, cls_name)()


def detect_bank(sender, sender_patterns=None):
    low = (sender or '').lower()
    for bank, fragments in (sender_patterns or DEFAULT_SENDER_PATTERNS).items():
        if any(frag.lower() in low for frag in fragments):
            return bank
    return UNKNOWN_BANK


class TransactionParser:
    """Routes each SMS to its bank's parser and validates the result."""

    def __init__(self, config=None):
        self.config = config or {}
        self.sender_patterns = self.config.get('sender_patterns') or DEFAULT_SENDER_PATTERNS
        self._parsers = {}

    def parser_for(self, bank):
        if bank not in self._parsers:
            self._parsers[bank] = get_parser(bank, self.config)
        return self._parsers[bank]

    def detect_bank(self, sender):
        return detect_bank(sender, self.sender_patterns)

    def parse(self, sms):
        """Return a ParsedSMS, or None when the message cannot be parsed."""
        try:
            bank = self.detect_bank(sms.sender)
            logger.debug("Parsing SMS %s from %s as %s", sms.id, sms.sender, bank)
            return self.parser_for(bank).parse(sms)
        except Exception:
            logger.exception("Failed to parse SMS %s", sms.id)
            return None

    @staticmethod
    def validate(parsed):
        if not parsed.amount or parsed.amount <= 0:
            logger.warning("Invalid amount: %r", parsed.amount)
            return False
        if parsed.date is None:
            logger.warning("Missing date for SMS %s", parsed.raw_sms.id)
            return False
        if parsed.type not in TRANSACTION_TYPES:
            logger.warning("Invalid type: %r", parsed.type)
            return False
        return True

    def parse_multiple(self, messages):
        parsed = []
        for sms in messages:
            result = self.parse(sms)
            if result and self.validate(result):
                parsed.append(result)
                logger.info("Parsed: %s of Rs.%s", result.type, result.amount)
            else:
                logger.warning("Failed to parse SMS from %s", sms.sender)
        return parsed
