# money_manager/outputs/base.py
from abc import ABC, abstractmethod

HEADERS = ['date', 'bank', 'type', 'merchant', 'category', 'amount', 'net_amount', 'reference']


class BaseOutput(ABC):
    @abstractmethod
    def write(self, transactions, category_names=None, account_names=None):
        """Write transactions to the chosen sink and return its path."""
        pass

    @staticmethod
    def to_row(tx, category_names=None, account_names=None):
        return [
            tx.date.date().isoformat(),
            (account_names or {}).get(tx.account_id, ''),
            tx.type,
            tx.merchant,
            (category_names or {}).get(tx.category_id, 'Other'),
            float(tx.amount),
            float(tx.effective_amount),
            tx.reference or '',
        ]
