# money_manager/accounts.py
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from money_manager import database
from money_manager.core.categorizer import DEFAULT_CATEGORY_KEYWORDS, categorize
from money_manager.parsers import TransactionParser

logger = logging.getLogger(__name__)

DEFAULT_BANK = 'Other'

# Sender fragment -> account bank name. Checked in order.
BANK_SENDER_MAP = {
    'HDFC': 'HDFC',
    'ICICI': 'ICICI',
    'SBI': 'SBI',
    'AXIS': 'Axis',
    'UPI': 'Paytm',
    'GPAY': 'Paytm',
    'PHONEPE': 'PhonePe',
    'PAYTM': 'Paytm',
    'WHATSAPP': 'Other',
}


@dataclass
class ProcessResult:
    success: bool
    bank: Optional[str] = None
    account_id: Optional[str] = None
    transaction_id: Optional[str] = None
    account_created: bool = False
    duplicate: bool = False
    error: Optional[str] = None


@dataclass
class BatchResult:
    total: int = 0
    successful: int = 0
    failed: int = 0
    new_accounts: set = field(default_factory=set)
    results: List[ProcessResult] = field(default_factory=list)


class AccountDetector:
    """
    Turns one SMS into a stored transaction:
    parse -> find or create the bank account -> categorize -> store
    -> apply the reported balance.
    """

    def __init__(self, db_path, config=None, parser=None):
        self.db_path = db_path
        self.config = config or {}
        self.parser = parser or TransactionParser(self.config)
        self.keywords = self.config.get('categories') or DEFAULT_CATEGORY_KEYWORDS

    @staticmethod
    def detect_bank(sms):
        sender = sms.sender.upper()
        for key, bank in BANK_SENDER_MAP.items():
            if key in sender:
                logger.debug("Detected bank: %s (sender: %s)", bank, sms.sender)
                return bank
        logger.debug("Could not detect bank from sender %s, defaulting to %s", sms.sender, DEFAULT_BANK)
        return DEFAULT_BANK

    def find_existing_account(self, bank, user_id, account_number=None):
        """
        Return the id of the user's account at ``bank``.

        With ``account_number`` (last digits from the SMS) only an account whose
        number ends with those digits matches; without it the most recent
        account at that bank is used.
        """
        accounts = [a for a in database.get_accounts(self.db_path, user_id) if a.bank_name == bank]
        if account_number:
            accounts = [a for a in accounts if a.account_number.endswith(account_number)]
        if accounts:
            return accounts[0].id
        return None

    def create_new_account(self, bank, user_id, balance=None, account_number=None):
        number = account_number or f"{bank.upper()}_{int(time.time() * 1000)}"
        account = database.create_account(
            self.db_path,
            user_id,
            bank_name=bank,
            account_number=number,
            balance=balance or 0.0,
            created_from_sms=True,
        )
        logger.info("Created new account %s for %s", account.id, bank)
        return account.id

    def update_account_balance(self, account_id, balance):
        database.update_account(self.db_path, account_id, balance=float(balance))
        logger.debug("Account %s balance updated to %s", account_id, balance)

    def process_sms(self, sms, user_id):
        bank = self.detect_bank(sms)

        parsed = self.parser.parse(sms)
        if parsed is None or not self.parser.validate(parsed):
            return ProcessResult(
                success=False, bank=bank,
                error='Failed to parse SMS or invalid transaction format',
            )

        existing = database.get_transaction_by_sms(self.db_path, user_id, sms.id)
        if existing is not None:
            return ProcessResult(
                success=True, bank=bank, account_id=existing.account_id,
                transaction_id=existing.id, duplicate=True,
            )

        account_created = False
        account_id = self.find_existing_account(bank, user_id, parsed.account)
        if account_id is None:
            account_id = self.create_new_account(bank, user_id, parsed.balance, parsed.account)
            account_created = True

        mappings = database.merchant_category_map(self.db_path, user_id)
        category_name = categorize(parsed.merchant, mappings, self.keywords)
        category = database.get_or_create_category(self.db_path, user_id, category_name)

        is_income = parsed.type == 'credit'
        tx = database.create_transaction(
            self.db_path,
            user_id,
            account_id=account_id,
            amount=parsed.amount,
            type=parsed.type,
            merchant=parsed.merchant or 'Unknown',
            date=parsed.date,
            category_id=category.id,
            tags=[f"sms_{bank.lower()}"],
            is_income=is_income,
            is_expense=not is_income,
            notes=f"SMS from {bank}",
            sms_id=sms.id,
            reference=parsed.reference,
        )

        if parsed.balance is not None:
            self.update_account_balance(account_id, parsed.balance)

        logger.info(
            "Stored %s of %.2f at %s (%s) in account %s",
            parsed.type, parsed.amount, tx.merchant, category.name, account_id,
        )
        return ProcessResult(
            success=True, bank=bank, account_id=account_id,
            transaction_id=tx.id, account_created=account_created,
        )

    def process_multiple_sms(self, messages, user_id):
        batch = BatchResult(total=len(messages))
        for sms in messages:
            try:
                result = self.process_sms(sms, user_id)
            except Exception as exc:
                logger.exception("Error processing SMS %s", sms.id)
                result = ProcessResult(success=False, error=str(exc))
            batch.results.append(result)
            if result.success:
                batch.successful += 1
                if result.account_created:
                    batch.new_accounts.add(result.account_id)
            else:
                batch.failed += 1

        logger.info(
            "Batch processing complete: total=%d successful=%d failed=%d new_accounts=%d",
            batch.total, batch.successful, batch.failed, len(batch.new_accounts),
        )
        return batch
