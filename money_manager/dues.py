# money_manager/dues.py
import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime

from money_manager import database
from money_manager.core.models import DUE_TYPES, Due

logger = logging.getLogger(__name__)


@dataclass
class DueWithDetails(Due):
    days_due: int = None
    is_overdue: bool = False


def _parse_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def create_due(db_path, user_id, contact_name, amount, due_date, due_type='debit',
               contact_phone=None, transaction_id=None, reminder_days_before=1, notes=None):
    if due_type not in DUE_TYPES:
        raise ValueError(f"Unsupported due type '{due_type}'. Expected one of {DUE_TYPES}")
    if amount <= 0:
        raise ValueError(f"Due amount must be positive, got {amount}")
    return database.create_due(
        db_path,
        user_id,
        contact_name=contact_name,
        amount=float(amount),
        due_date=_parse_date(due_date),
        due_type=due_type,
        contact_phone=contact_phone,
        transaction_id=transaction_id,
        reminder_days_before=reminder_days_before,
        notes=notes,
    )


def enrich_due(due, today=None):
    today = today or date.today()
    days_due = (due.due_date - today).days
    return DueWithDetails(
        **asdict(due),
        days_due=days_due,
        is_overdue=days_due < 0 and due.status == 'pending',
    )


def get_dues(db_path, user_id, today=None):
    return [enrich_due(d, today) for d in database.get_dues(db_path, user_id)]


def get_overdue_dues(db_path, user_id, today=None):
    return [d for d in get_dues(db_path, user_id, today) if d.is_overdue]


def get_upcoming_dues(db_path, user_id, days_ahead=7, today=None):
    """Pending dues falling due in the next ``days_ahead`` days (not today)."""
    return [
        d for d in get_dues(db_path, user_id, today)
        if d.status == 'pending' and 0 < d.days_due <= days_ahead
    ]


def complete_due(db_path, due_id):
    return database.update_due(db_path, due_id, status='completed')


def delete_due(db_path, due_id):
    database.delete_due(db_path, due_id)
    logger.info("Due deleted: %s", due_id)
