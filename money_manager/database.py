import json
import logging
import re
import sqlite3
import uuid
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Tuple

from money_manager.core.models import (
    Account,
    Budget,
    Category,
    Due,
    MerchantMapping,
    RefundLink,
    Transaction,
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: Dict[str, Tuple[str, str]] = {
    "Food": ("#FF6B6B", "utensils"),
    "Entertainment": ("#4ECDC4", "film"),
    "Travel": ("#45B7D1", "plane"),
    "Shopping": ("#FFA07A", "shopping-bag"),
    "Utilities": ("#98D8C8", "plug"),
    "Salary": ("#6BCF7F", "briefcase"),
    "Medical": ("#FF8C00", "heart"),
    "Education": ("#9D84B7", "book"),
    "Rent": ("#C8B6FF", "home"),
    "Savings": ("#2ECC71", "piggy-bank"),
    "Investment": ("#3498DB", "trending-up"),
    "Bills": ("#E74C3C", "receipt"),
    "Loan": ("#34495E", "credit-card"),
    "Insurance": ("#F39C12", "shield"),
    "Gifts": ("#E91E63", "gift"),
    "Refund": ("#27AE60", "undo"),
    "Other": ("#95A5A6", "circle"),
}

_SCHEMA = """
CREATE TABLE IF NOT EXISTS accounts (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    bank_name TEXT NOT NULL,
    account_number TEXT NOT NULL,
    balance REAL NOT NULL DEFAULT 0,
    created_from_sms INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS categories (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    color TEXT,
    icon TEXT,
    created_at TEXT NOT NULL,
    UNIQUE(user_id, name)
);
CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    account_id TEXT NOT NULL REFERENCES accounts(id),
    amount REAL NOT NULL,
    type TEXT NOT NULL,
    merchant TEXT NOT NULL,
    category_id TEXT REFERENCES categories(id),
    tags TEXT NOT NULL DEFAULT '[]',
    date TEXT NOT NULL,
    is_income INTEGER NOT NULL DEFAULT 0,
    is_expense INTEGER NOT NULL DEFAULT 0,
    original_amount REAL NOT NULL,
    net_amount REAL NOT NULL,
    linked_to_expense_id TEXT,
    is_linked INTEGER NOT NULL DEFAULT 0,
    notes TEXT,
    sms_id TEXT,
    reference TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE(user_id, sms_id)
);
CREATE TABLE IF NOT EXISTS budgets (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    category_id TEXT NOT NULL REFERENCES categories(id),
    month INTEGER NOT NULL,
    year INTEGER NOT NULL,
    amount REAL NOT NULL,
    warning_percent REAL NOT NULL DEFAULT 80,
    critical_percent REAL NOT NULL DEFAULT 100,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE(user_id, category_id, month, year)
);
CREATE TABLE IF NOT EXISTS dues (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    transaction_id TEXT REFERENCES transactions(id),
    contact_name TEXT NOT NULL,
    contact_phone TEXT,
    amount REAL NOT NULL,
    due_date TEXT NOT NULL,
    due_type TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    reminder_days_before INTEGER NOT NULL DEFAULT 1,
    notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS merchant_mapping (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    merchant_name TEXT NOT NULL,
    category_id TEXT NOT NULL REFERENCES categories(id),
    tags TEXT NOT NULL DEFAULT '[]',
    visit_count INTEGER NOT NULL DEFAULT 1,
    last_assigned_at TEXT NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE(user_id, merchant_name)
);
CREATE TABLE IF NOT EXISTS refund_links (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    expense_txn_id TEXT NOT NULL REFERENCES transactions(id),
    refund_txn_id TEXT NOT NULL REFERENCES transactions(id),
    amount_linked REAL NOT NULL,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS processed_sms (
    sms_id TEXT PRIMARY KEY,
    processed_at TEXT NOT NULL
);
"""

# Columns that may be changed through the update_* helpers.
_UPDATABLE = {
    "accounts": {"bank_name", "account_number", "balance", "created_from_sms", "is_active"},
    "transactions": {
        "account_id", "amount", "type", "merchant", "category_id", "tags", "date",
        "is_income", "is_expense", "original_amount", "net_amount",
        "linked_to_expense_id", "is_linked", "notes", "reference",
    },
    "budgets": {"amount", "warning_percent", "critical_percent", "month", "year", "category_id"},
    "dues": {
        "contact_name", "contact_phone", "amount", "due_date", "due_type", "status",
        "reminder_days_before", "notes", "transaction_id",
    },
    "merchant_mapping": {"category_id", "tags", "visit_count", "last_assigned_at"},
}


def _init_db(conn: sqlite3.Connection) -> None:
    conn.executescript(_SCHEMA)
    conn.commit()


def _connect(db_path: str) -> sqlite3.Connection:
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    _init_db(conn)
    return conn


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _to_db(value):
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return json.dumps(list(value))
    return value


def _insert(conn: sqlite3.Connection, table: str, record: dict) -> None:
    cols = list(record)
    placeholders = ", ".join("?" for _ in cols)
    conn.execute(
        f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({placeholders})",
        [_to_db(record[c]) for c in cols],
    )


def _update(db_path: str, table: str, record_id: str, updates: dict, touch: bool = True) -> None:
    unknown = set(updates) - _UPDATABLE[table]
    if unknown:
        raise ValueError(f"Cannot update {table} column(s): {', '.join(sorted(unknown))}")
    fields = dict(updates)
    if touch:
        fields["updated_at"] = _now()
    if not fields:
        return
    assignments = ", ".join(f"{col} = ?" for col in fields)
    conn = _connect(db_path)
    try:
        cur = conn.execute(
            f"UPDATE {table} SET {assignments} WHERE id = ?",
            [_to_db(v) for v in fields.values()] + [record_id],
        )
        if cur.rowcount == 0:
            raise RuntimeError(f"No {table} row with id {record_id}")
        conn.commit()
    finally:
        conn.close()


def _delete(db_path: str, table: str, record_id: str) -> None:
    conn = _connect(db_path)
    try:
        conn.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
        conn.commit()
    finally:
        conn.close()


def _select(db_path: str, query: str, params: Iterable = ()) -> List[sqlite3.Row]:
    conn = _connect(db_path)
    try:
        return conn.execute(query, list(params)).fetchall()
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Row -> record conversion
# ---------------------------------------------------------------------------

def _row_to_account(r) -> Account:
    return Account(
        id=r["id"],
        user_id=r["user_id"],
        bank_name=r["bank_name"],
        account_number=r["account_number"],
        balance=float(r["balance"]),
        created_from_sms=bool(r["created_from_sms"]),
        is_active=bool(r["is_active"]),
        created_at=r["created_at"],
        updated_at=r["updated_at"],
    )


def _row_to_category(r) -> Category:
    return Category(
        id=r["id"], user_id=r["user_id"], name=r["name"],
        color=r["color"], icon=r["icon"], created_at=r["created_at"],
    )


def _row_to_transaction(r) -> Transaction:
    return Transaction(
        id=r["id"],
        user_id=r["user_id"],
        account_id=r["account_id"],
        amount=float(r["amount"]),
        type=r["type"],
        merchant=r["merchant"],
        date=datetime.fromisoformat(r["date"]),
        category_id=r["category_id"],
        tags=json.loads(r["tags"] or "[]"),
        is_income=bool(r["is_income"]),
        is_expense=bool(r["is_expense"]),
        original_amount=float(r["original_amount"]),
        net_amount=float(r["net_amount"]),
        linked_to_expense_id=r["linked_to_expense_id"],
        is_linked=bool(r["is_linked"]),
        notes=r["notes"],
        sms_id=r["sms_id"],
        reference=r["reference"],
        created_at=r["created_at"],
        updated_at=r["updated_at"],
    )


def _row_to_budget(r) -> Budget:
    return Budget(
        id=r["id"], user_id=r["user_id"], category_id=r["category_id"],
        month=int(r["month"]), year=int(r["year"]), amount=float(r["amount"]),
        warning_percent=float(r["warning_percent"]),
        critical_percent=float(r["critical_percent"]),
        created_at=r["created_at"], updated_at=r["updated_at"],
    )


def _row_to_due(r) -> Due:
    return Due(
        id=r["id"], user_id=r["user_id"], contact_name=r["contact_name"],
        amount=float(r["amount"]), due_date=date.fromisoformat(r["due_date"]),
        due_type=r["due_type"], status=r["status"],
        reminder_days_before=int(r["reminder_days_before"]),
        contact_phone=r["contact_phone"], transaction_id=r["transaction_id"],
        notes=r["notes"], created_at=r["created_at"], updated_at=r["updated_at"],
    )


def _row_to_mapping(r) -> MerchantMapping:
    return MerchantMapping(
        id=r["id"], user_id=r["user_id"], merchant_name=r["merchant_name"],
        category_id=r["category_id"], tags=json.loads(r["tags"] or "[]"),
        visit_count=int(r["visit_count"]), last_assigned_at=r["last_assigned_at"],
        created_at=r["created_at"],
    )


def _row_to_refund_link(r) -> RefundLink:
    return RefundLink(
        id=r["id"], user_id=r["user_id"], expense_txn_id=r["expense_txn_id"],
        refund_txn_id=r["refund_txn_id"], amount_linked=float(r["amount_linked"]),
        created_at=r["created_at"],
    )


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

def get_accounts(db_path: str, user_id: str) -> List[Account]:
    rows = _select(
        db_path,
        "SELECT * FROM accounts WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
        (user_id,),
    )
    return [_row_to_account(r) for r in rows]


def get_account(db_path: str, account_id: str) -> Account | None:
    rows = _select(db_path, "SELECT * FROM accounts WHERE id = ?", (account_id,))
    return _row_to_account(rows[0]) if rows else None


def create_account(
    db_path: str,
    user_id: str,
    bank_name: str,
    account_number: str,
    balance: float = 0.0,
    created_from_sms: bool = False,
    is_active: bool = True,
) -> Account:
    now = _now()
    account = Account(
        id=_new_id(), user_id=user_id, bank_name=bank_name,
        account_number=account_number, balance=float(balance),
        created_from_sms=created_from_sms, is_active=is_active,
        created_at=now, updated_at=now,
    )
    conn = _connect(db_path)
    try:
        _insert(conn, "accounts", asdict(account))
        conn.commit()
    finally:
        conn.close()
    return account


def update_account(db_path: str, account_id: str, **updates) -> Account:
    _update(db_path, "accounts", account_id, updates)
    return get_account(db_path, account_id)


def get_or_create_account(
    db_path: str, user_id: str, bank_name: str, account_number: str, created_from_sms: bool = True
) -> Account:
    rows = _select(
        db_path,
        "SELECT * FROM accounts WHERE user_id = ? AND bank_name = ? AND account_number = ?",
        (user_id, bank_name, account_number),
    )
    if rows:
        return _row_to_account(rows[0])
    return create_account(
        db_path, user_id, bank_name, account_number, created_from_sms=created_from_sms,
    )


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def get_categories(db_path: str, user_id: str) -> List[Category]:
    rows = _select(
        db_path, "SELECT * FROM categories WHERE user_id = ? ORDER BY name", (user_id,)
    )
    return [_row_to_category(r) for r in rows]


def get_category(db_path: str, category_id: str) -> Category | None:
    rows = _select(db_path, "SELECT * FROM categories WHERE id = ?", (category_id,))
    return _row_to_category(rows[0]) if rows else None


def get_category_by_name(db_path: str, user_id: str, name: str) -> Category | None:
    rows = _select(
        db_path,
        "SELECT * FROM categories WHERE user_id = ? AND lower(name) = lower(?)",
        (user_id, name),
    )
    return _row_to_category(rows[0]) if rows else None


def create_category(
    db_path: str, user_id: str, name: str, color: str | None = None, icon: str | None = None
) -> Category:
    default_color, default_icon = DEFAULT_CATEGORIES.get(name, ("#95A5A6", "circle"))
    category = Category(
        id=_new_id(), user_id=user_id, name=name,
        color=color or default_color, icon=icon or default_icon, created_at=_now(),
    )
    conn = _connect(db_path)
    try:
        _insert(conn, "categories", asdict(category))
        conn.commit()
    finally:
        conn.close()
    return category


def get_or_create_category(db_path: str, user_id: str, name: str) -> Category:
    return get_category_by_name(db_path, user_id, name) or create_category(db_path, user_id, name)


def seed_default_categories(db_path: str, user_id: str) -> List[Category]:
    """Create the built-in categories a user does not have yet."""
    for name in DEFAULT_CATEGORIES:
        get_or_create_category(db_path, user_id, name)
    return get_categories(db_path, user_id)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

def create_transaction(db_path: str, user_id: str, **fields) -> Transaction:
    """Insert a transaction built from ``fields`` and return it.

    Raises sqlite3.IntegrityError when the same SMS was already stored for
    this user.
    """
    now = _now()
    tx = Transaction(id=_new_id(), user_id=user_id, created_at=now, updated_at=now, **fields)
    conn = _connect(db_path)
    try:
        _insert(conn, "transactions", asdict(tx))
        conn.commit()
    finally:
        conn.close()
    return tx


def get_transaction(db_path: str, transaction_id: str) -> Transaction | None:
    rows = _select(db_path, "SELECT * FROM transactions WHERE id = ?", (transaction_id,))
    return _row_to_transaction(rows[0]) if rows else None


def get_transaction_by_sms(db_path: str, user_id: str, sms_id: str) -> Transaction | None:
    rows = _select(
        db_path,
        "SELECT * FROM transactions WHERE user_id = ? AND sms_id = ?",
        (user_id, sms_id),
    )
    return _row_to_transaction(rows[0]) if rows else None


def get_transactions(db_path: str, user_id: str, limit: int = 50, offset: int = 0) -> Dict[str, object]:
    """Return one page of a user's transactions, newest first."""
    conn = _connect(db_path)
    try:
        total = conn.execute(
            "SELECT COUNT(*) FROM transactions WHERE user_id = ?", (user_id,)
        ).fetchone()[0]
        rows = conn.execute(
            """
            SELECT * FROM transactions
            WHERE user_id = ?
            ORDER BY date DESC, rowid DESC
            LIMIT ? OFFSET ?
            """,
            (user_id, limit, offset),
        ).fetchall()
    finally:
        conn.close()
    return {
        "data": [_row_to_transaction(r) for r in rows],
        "total": int(total),
        "page": offset // limit + 1 if limit else 1,
        "page_size": limit,
        "has_more": total > offset + limit,
    }


def update_transaction(db_path: str, transaction_id: str, **updates) -> Transaction:
    _update(db_path, "transactions", transaction_id, updates)
    return get_transaction(db_path, transaction_id)


def delete_transaction(db_path: str, transaction_id: str) -> None:
    _delete(db_path, "transactions", transaction_id)


def fetch_transactions(
    db_path: str,
    user_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
    category_id: str | None = None,
    merchant_regex: str | None = None,
) -> List[Transaction]:
    """Retrieve a user's transactions, oldest first.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.
    user_id:
        Owner of the transactions.
    start_date, end_date:
        Optional inclusive date bounds.
    category_id:
        Optional category to filter on.
    merchant_regex:
        Optional regular expression matched against merchant names.
    """
    where, params = _build_filters(user_id, start_date, end_date, category_id)
    rows = _select(
        db_path,
        f"SELECT * FROM transactions{where} ORDER BY date, rowid",
        params,
    )
    txs = [_row_to_transaction(r) for r in rows]
    if merchant_regex:
        pattern = re.compile(merchant_regex, re.IGNORECASE)
        txs = [t for t in txs if pattern.search(t.merchant)]
    return txs


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------

def get_budgets(db_path: str, user_id: str, month: int | None = None, year: int | None = None) -> List[Budget]:
    query = "SELECT * FROM budgets WHERE user_id = ?"
    params: list = [user_id]
    if month is not None and year is not None:
        query += " AND month = ? AND year = ?"
        params += [month, year]
    rows = _select(db_path, query + " ORDER BY year, month", params)
    return [_row_to_budget(r) for r in rows]


def get_budget(db_path: str, budget_id: str) -> Budget | None:
    rows = _select(db_path, "SELECT * FROM budgets WHERE id = ?", (budget_id,))
    return _row_to_budget(rows[0]) if rows else None


def create_budget(
    db_path: str,
    user_id: str,
    category_id: str,
    month: int,
    year: int,
    amount: float,
    warning_percent: float = 80,
    critical_percent: float = 100,
) -> Budget:
    if not 1 <= int(month) <= 12:
        raise ValueError(f"Budget month must be 1-12, got {month}")
    if amount <= 0:
        raise ValueError(f"Budget amount must be positive, got {amount}")
    now = _now()
    budget = Budget(
        id=_new_id(), user_id=user_id, category_id=category_id,
        month=int(month), year=int(year), amount=float(amount),
        warning_percent=warning_percent, critical_percent=critical_percent,
        created_at=now, updated_at=now,
    )
    conn = _connect(db_path)
    try:
        _insert(conn, "budgets", asdict(budget))
        conn.commit()
    finally:
        conn.close()
    return budget


def update_budget(db_path: str, budget_id: str, **updates) -> Budget:
    _update(db_path, "budgets", budget_id, updates)
    return get_budget(db_path, budget_id)


def delete_budget(db_path: str, budget_id: str) -> None:
    _delete(db_path, "budgets", budget_id)


# ---------------------------------------------------------------------------
# Dues
# ---------------------------------------------------------------------------

def get_dues(db_path: str, user_id: str) -> List[Due]:
    rows = _select(
        db_path, "SELECT * FROM dues WHERE user_id = ? ORDER BY due_date", (user_id,)
    )
    return [_row_to_due(r) for r in rows]


def get_due(db_path: str, due_id: str) -> Due | None:
    rows = _select(db_path, "SELECT * FROM dues WHERE id = ?", (due_id,))
    return _row_to_due(rows[0]) if rows else None


def create_due(db_path: str, user_id: str, **fields) -> Due:
    now = _now()
    due = Due(id=_new_id(), user_id=user_id, created_at=now, updated_at=now, **fields)
    conn = _connect(db_path)
    try:
        _insert(conn, "dues", asdict(due))
        conn.commit()
    finally:
        conn.close()
    return due


def update_due(db_path: str, due_id: str, **updates) -> Due:
    _update(db_path, "dues", due_id, updates)
    return get_due(db_path, due_id)


def delete_due(db_path: str, due_id: str) -> None:
    _delete(db_path, "dues", due_id)


# ---------------------------------------------------------------------------
# Merchant mappings
# ---------------------------------------------------------------------------

def get_merchant_mappings(db_path: str, user_id: str) -> List[MerchantMapping]:
    rows = _select(
        db_path,
        "SELECT * FROM merchant_mapping WHERE user_id = ? ORDER BY merchant_name",
        (user_id,),
    )
    return [_row_to_mapping(r) for r in rows]


def get_merchant_mapping(db_path: str, user_id: str, merchant_name: str) -> MerchantMapping | None:
    rows = _select(
        db_path,
        "SELECT * FROM merchant_mapping WHERE user_id = ? AND merchant_name = ?",
        (user_id, merchant_name),
    )
    return _row_to_mapping(rows[0]) if rows else None


def create_merchant_mapping(
    db_path: str, user_id: str, merchant_name: str, category_id: str, tags: List[str] | None = None
) -> MerchantMapping:
    now = _now()
    mapping = MerchantMapping(
        id=_new_id(), user_id=user_id, merchant_name=merchant_name,
        category_id=category_id, tags=list(tags or []), visit_count=1,
        last_assigned_at=now, created_at=now,
    )
    conn = _connect(db_path)
    try:
        _insert(conn, "merchant_mapping", asdict(mapping))
        conn.commit()
    finally:
        conn.close()
    return mapping


def update_merchant_mapping(db_path: str, mapping_id: str, **updates) -> MerchantMapping:
    _update(db_path, "merchant_mapping", mapping_id, updates, touch=False)
    rows = _select(db_path, "SELECT * FROM merchant_mapping WHERE id = ?", (mapping_id,))
    return _row_to_mapping(rows[0])


def merchant_category_map(db_path: str, user_id: str) -> Dict[str, str]:
    """Merchant name -> category name, the lookup shape the categorizer takes."""
    rows = _select(
        db_path,
        """
        SELECT m.merchant_name, c.name
        FROM merchant_mapping m JOIN categories c ON c.id = m.category_id
        WHERE m.user_id = ?
        ORDER BY m.visit_count DESC, m.merchant_name
        """,
        (user_id,),
    )
    return {r[0]: r[1] for r in rows}


# ---------------------------------------------------------------------------
# Refund links
# ---------------------------------------------------------------------------

def get_refund_links_for_expense(db_path: str, expense_id: str) -> List[RefundLink]:
    rows = _select(
        db_path, "SELECT * FROM refund_links WHERE expense_txn_id = ?", (expense_id,)
    )
    return [_row_to_refund_link(r) for r in rows]


def create_refund_link(
    db_path: str, user_id: str, expense_id: str, refund_id: str, amount: float
) -> RefundLink:
    link = RefundLink(
        id=_new_id(), user_id=user_id, expense_txn_id=expense_id,
        refund_txn_id=refund_id, amount_linked=float(amount), created_at=_now(),
    )
    conn = _connect(db_path)
    try:
        _insert(conn, "refund_links", asdict(link))
        conn.commit()
    finally:
        conn.close()
    return link


def delete_refund_link(db_path: str, refund_link_id: str) -> None:
    _delete(db_path, "refund_links", refund_link_id)


def link_refund(db_path: str, user_id: str, expense_id: str, refund_id: str, amount: float | None = None) -> RefundLink:
    """Attach a refund to an expense and reduce the expense's net amount."""
    expense = get_transaction(db_path, expense_id)
    refund = get_transaction(db_path, refund_id)
    if expense is None or refund is None:
        raise RuntimeError(f"Unknown transaction(s): {expense_id}, {refund_id}")
    if not expense.is_expense:
        raise ValueError(f"Transaction {expense_id} is not an expense")
    if not refund.is_income:
        raise ValueError(f"Transaction {refund_id} is not a credit")
    if refund.is_linked:
        raise ValueError(f"Refund {refund_id} is already linked to {refund.linked_to_expense_id}")
    linked = float(amount if amount is not None else refund.amount)
    if linked > refund.amount:
        raise ValueError(f"Refund amount {linked} exceeds the refund of {refund.amount}")
    if linked <= 0 or linked > expense.net_amount:
        raise ValueError(
            f"Refund amount {linked} must be positive and at most {expense.net_amount}"
        )
    link = create_refund_link(db_path, user_id, expense_id, refund_id, linked)
    update_transaction(db_path, expense_id, net_amount=expense.net_amount - linked, is_linked=True)
    update_transaction(db_path, refund_id, linked_to_expense_id=expense_id, is_linked=True)
    return link


# ---------------------------------------------------------------------------
# Processed SMS (dedup set)
# ---------------------------------------------------------------------------

def get_processed_sms_ids(db_path: str) -> set[str]:
    return {r[0] for r in _select(db_path, "SELECT sms_id FROM processed_sms")}


def mark_sms_processed(db_path: str, sms_id: str) -> None:
    conn = _connect(db_path)
    try:
        conn.execute(
            "INSERT OR IGNORE INTO processed_sms (sms_id, processed_at) VALUES (?, ?)",
            (sms_id, _now()),
        )
        conn.commit()
    finally:
        conn.close()


def clear_processed_sms(db_path: str) -> None:
    conn = _connect(db_path)
    try:
        conn.execute("DELETE FROM processed_sms")
        conn.commit()
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Backup restore
# ---------------------------------------------------------------------------

_RESTORABLE = ("accounts", "categories", "transactions")


def restore_records(db_path: str, table: str, records: Iterable[dict]) -> int:
    """Insert exported rows keeping their ids; rows that already exist are skipped.

    Returns the number of rows inserted.
    """
    if table not in _RESTORABLE:
        raise ValueError(f"Cannot restore table '{table}'")
    conn = _connect(db_path)
    try:
        columns = {r[1] for r in conn.execute(f"PRAGMA table_info({table})")}
        inserted = 0
        for record in records:
            unknown = set(record) - columns
            if unknown:
                raise ValueError(f"Unknown {table} column(s): {', '.join(sorted(unknown))}")
            cols = list(record)
            cur = conn.execute(
                f"INSERT OR IGNORE INTO {table} ({', '.join(cols)}) "
                f"VALUES ({', '.join('?' for _ in cols)})",
                [_to_db(record[c]) for c in cols],
            )
            inserted += cur.rowcount
        conn.commit()
    finally:
        conn.close()
    return inserted


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------

def _build_filters(
    user_id: str,
    start_date: date | None,
    end_date: date | None,
    category_id: str | None,
    expenses_only: bool = False,
    prefix: str = "",
) -> tuple[str, list[str]]:
    conditions: list[str] = [f"{prefix}user_id = ?"]
    params: list[str] = [user_id]
    if start_date:
        conditions.append(f"date({prefix}date) >= ?")
        params.append(start_date.isoformat())
    if end_date:
        conditions.append(f"date({prefix}date) <= ?")
        params.append(end_date.isoformat())
    if category_id:
        conditions.append(f"{prefix}category_id = ?")
        params.append(category_id)
    if expenses_only:
        conditions.append(f"{prefix}is_expense = 1")
    return " WHERE " + " AND ".join(conditions), params


def _summarize_range(
    conn: sqlite3.Connection,
    user_id: str,
    start_date: date | None,
    end_date: date | None,
    category_id: str | None,
) -> Tuple[float, int]:
    """Return the total spend and transaction count for a date range."""

    where, params = _build_filters(user_id, start_date, end_date, category_id, expenses_only=True)
    row = conn.execute(
        f"""
        SELECT COALESCE(SUM(net_amount), 0.0) AS total,
               COUNT(*) AS count
        FROM transactions
        {where}
        """,
        params,
    ).fetchone()
    return float(row[0] or 0.0), int(row[1] or 0)


def compare_spend_between_periods(
    db_path: str,
    user_id: str,
    first_start: date | None,
    first_end: date | None,
    second_start: date | None,
    second_end: date | None,
    category_id: str | None = None,
) -> Dict[str, object]:
    """Compare expense totals between two date ranges.

    The result holds each range's total, the difference (second minus first)
    and a percent change when the first total is not zero.
    """

    conn = _connect(db_path)
    try:
        first_total, first_count = _summarize_range(
            conn, user_id, first_start, first_end, category_id
        )
        second_total, second_count = _summarize_range(
            conn, user_id, second_start, second_end, category_id
        )
    finally:
        conn.close()

    diff = second_total - first_total
    return {
        "category_id": category_id,
        "first_period": {
            "start": first_start.isoformat() if first_start else None,
            "end": first_end.isoformat() if first_end else None,
            "total": first_total,
            "transactions": first_count,
        },
        "second_period": {
            "start": second_start.isoformat() if second_start else None,
            "end": second_end.isoformat() if second_end else None,
            "total": second_total,
            "transactions": second_count,
        },
        "difference": diff,
        "percent_change": diff / first_total if first_total else None,
    }


def summarize_by_category(
    db_path: str,
    user_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
) -> List[Dict[str, object]]:
    """Aggregate expense totals grouped by category name."""

    where, params = _build_filters(user_id, start_date, end_date, None, expenses_only=True, prefix="t.")
    rows = _select(
        db_path,
        f"""
        SELECT COALESCE(c.name, 'Other') AS category,
               SUM(t.net_amount) AS total,
               COUNT(*) AS count
        FROM transactions t
        LEFT JOIN categories c ON c.id = t.category_id
        {where}
        GROUP BY COALESCE(c.name, 'Other')
        ORDER BY total DESC
        """,
        params,
    )
    return [
        {"category": r[0], "total": float(r[1] or 0.0), "transactions": int(r[2])}
        for r in rows
    ]


_PERIOD_EXPRESSIONS: Dict[str, str] = {
    "month": "strftime('%Y-%m', date)",
    "quarter": (
        "printf('%s-Q%d', strftime('%Y', date), "
        "((CAST(strftime('%m', date) AS INTEGER) - 1) / 3) + 1)"
    ),
    "year": "strftime('%Y', date)",
}


def summarize_by_period(
    db_path: str,
    user_id: str,
    period: Literal["month", "quarter", "year"],
    start_date: date | None = None,
    end_date: date | None = None,
    category_id: str | None = None,
) -> List[Dict[str, object]]:
    """Income and expense totals grouped by month, quarter or year."""

    if period not in _PERIOD_EXPRESSIONS:
        raise ValueError(f"Unsupported period '{period}'")
    expr = _PERIOD_EXPRESSIONS[period]
    where, params = _build_filters(user_id, start_date, end_date, category_id)
    rows = _select(
        db_path,
        f"""
        SELECT {expr} AS period,
               SUM(CASE WHEN is_expense = 1 THEN net_amount ELSE 0 END) AS expense,
               SUM(CASE WHEN is_income = 1 THEN amount ELSE 0 END) AS income,
               COUNT(*) AS count
        FROM transactions
        {where}
        GROUP BY period
        ORDER BY period
        """,
        params,
    )
    return [
        {
            "period": r[0],
            "expense": float(r[1] or 0.0),
            "income": float(r[2] or 0.0),
            "transactions": int(r[3]),
        }
        for r in rows
    ]


def summarize_by_merchant(
    db_path: str,
    user_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
    category_id: str | None = None,
) -> List[Dict[str, object]]:
    """Merchant leaderboard: visits and total spend per merchant."""

    where, params = _build_filters(user_id, start_date, end_date, category_id, expenses_only=True)
    rows = _select(
        db_path,
        f"""
        SELECT merchant,
               SUM(net_amount) AS total,
               COUNT(*) AS count
        FROM transactions
        {where}
        GROUP BY merchant
        ORDER BY total DESC
        """,
        params,
    )
    return [
        {"merchant": r[0], "total": float(r[1] or 0.0), "transactions": int(r[2])}
        for r in rows
    ]
