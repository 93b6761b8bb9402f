# money_manager/core/models.py
from dataclasses import dataclass, field
from datetime import date as date_cls, datetime
from typing import List, Optional

TRANSACTION_TYPES = ('debit', 'credit', 'atm', 'cash', 'upi')
DUE_STATUSES = ('pending', 'completed', 'overdue', 'cancelled')
DUE_TYPES = ('credit', 'debit')


@dataclass
class RawSMS:
    id: str
    sender: str
    body: str
    timestamp: int  # epoch milliseconds
    read: bool = False

    @property
    def date(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000)


@dataclass
class ParsedSMS:
    type: str
    amount: float
    date: datetime
    raw_sms: RawSMS
    merchant: Optional[str] = None
    account: Optional[str] = None
    reference: Optional[str] = None
    bank: Optional[str] = None
    balance: Optional[float] = None


@dataclass
class Account:
    id: str
    user_id: str
    bank_name: str
    account_number: str
    balance: float = 0.0
    created_from_sms: bool = False
    is_active: bool = True
    created_at: str = None
    updated_at: str = None


@dataclass
class Category:
    id: str
    user_id: str
    name: str
    color: str = None
    icon: str = None
    created_at: str = None


@dataclass
class Transaction:
    id: str
    user_id: str
    account_id: str
    amount: float
    type: str
    merchant: str
    date: datetime
    category_id: str = None
    tags: List[str] = field(default_factory=list)
    is_income: bool = False
    is_expense: bool = False
    original_amount: float = None
    net_amount: float = None
    linked_to_expense_id: str = None
    is_linked: bool = False
    notes: str = None
    sms_id: str = None
    reference: str = None
    created_at: str = None
    updated_at: str = None

    def __post_init__(self):
        if self.original_amount is None:
            self.original_amount = self.amount
        if self.net_amount is None:
            self.net_amount = self.amount

    @property
    def effective_amount(self) -> float:
        """Amount after refunds, falling back to the gross amount."""
        return self.amount if self.net_amount is None else self.net_amount


@dataclass
class Budget:
    id: str
    user_id: str
    category_id: str
    month: int
    year: int
    amount: float
    warning_percent: float = 80
    critical_percent: float = 100
    created_at: str = None
    updated_at: str = None


@dataclass
class Due:
    id: str
    user_id: str
    contact_name: str
    amount: float
    due_date: date_cls
    due_type: str = 'debit'
    status: str = 'pending'
    reminder_days_before: int = 1
    contact_phone: str = None
    transaction_id: str = None
    notes: str = None
    created_at: str = None
    updated_at: str = None


@dataclass
class MerchantMapping:
    id: str
    user_id: str
    merchant_name: str
    category_id: str
    tags: List[str] = field(default_factory=list)
    visit_count: int = 1
    last_assigned_at: str = None
    created_at: str = None


@dataclass
class RefundLink:
    id: str
    user_id: str
    expense_txn_id: str
    refund_txn_id: str
    amount_linked: float
    created_at: str = None


@dataclass
class SyncProgress:
    stage: str
    current: int
    total: int
    message: str


@dataclass
class SyncResult:
    success: bool
    sms_read: int = 0
    sms_processed: int = 0
    accounts_created: int = 0
    transactions_stored: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    duration: int = 0
    timestamp: str = None
