# money_manager/cli.py
import functools
import logging
import os
from datetime import date, datetime

import click
from dotenv import load_dotenv

from money_manager import analytics, backup, budgets, database, dues, recurring
from money_manager.accounts import AccountDetector
from money_manager.config import load_config
from money_manager.core.categorizer import categorize, learn_mapping, suggest_by_amount
from money_manager.core.models import TRANSACTION_TYPES, RawSMS
from money_manager.filters import DATE_RANGES, FilterOptions, apply_filters
from money_manager.manual import import_manual_transactions
from money_manager.outputs import get_output
from money_manager.parsers import TransactionParser
from money_manager.sms import SMSInbox
from money_manager.sync import SyncManager, watch as watch_inbox
from money_manager.utils import filter_transactions_by_month, format_currency

logger = logging.getLogger(__name__)


def _handle_errors(func):
    """Report expected failures as a clean CLI error instead of a traceback."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (ValueError, RuntimeError, OSError) as exc:
            raise click.ClickException(str(exc))
    return wrapper


def _build_manager(cfg, inbox_path=None, limit=None, days_back=None, read_all=False):
    path = inbox_path or cfg.get('inbox_path')
    if not path:
        raise click.UsageError("No SMS inbox export given. Pass --inbox or set inbox_path in the config.")
    sms_cfg = cfg['sms']
    inbox = SMSInbox(
        path,
        cfg['db_path'],
        limit=sms_cfg['limit'] if limit is None else limit,
        days_back=sms_cfg['days_back'] if days_back is None else days_back,
        filter='all' if read_all else sms_cfg['filter'],
    )
    return SyncManager(inbox, AccountDetector(cfg['db_path'], cfg))


def _query_manager(cfg):
    inbox = SMSInbox(cfg.get('inbox_path'), cfg['db_path'])
    return SyncManager(inbox, AccountDetector(cfg['db_path'], cfg))


def _category_names(cfg):
    return {c.id: c.name for c in database.get_categories(cfg['db_path'], cfg['user_id'])}


def _echo_result(result):
    status = "Sync complete" if result.success else "Sync failed"
    click.echo(
        f"{status}: {result.sms_read} SMS read, {result.sms_processed} processed, "
        f"{result.transactions_stored} transaction(s) stored, "
        f"{result.accounts_created} new account(s), {result.failed} failed "
        f"in {result.duration} ms."
    )
    for err in result.errors:
        click.echo(f"  {err}", err=True)


@click.group()
@click.option(
    '--config', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help='Path to config.yaml'
)
@click.option(
    '--env-file', 'env_file',
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help='Optional .env file with MONEY_MANAGER_* settings'
)
@click.option(
    '--db', 'db_path',
    default=None,
    type=click.Path(dir_okay=False),
    help='SQLite database file (overrides config)'
)
@click.option('--user', 'user_id', default=None, help='User id the data belongs to')
@click.pass_context
def main(ctx, config_path, env_file, db_path, user_id):
    """
    Ingest bank and UPI SMS notifications into a local ledger of accounts
    and categorized transactions, then budget, report and export from it.
    """
    if env_file:
        load_dotenv(env_file)
    logging.basicConfig(
        level=os.environ.get('MONEY_MANAGER_LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    try:
        cfg = load_config(config_path)
    except ValueError as exc:
        raise click.ClickException(str(exc))
    if db_path:
        cfg['db_path'] = db_path
    if user_id:
        cfg['user_id'] = user_id
    ctx.obj = cfg


@main.command()
@click.option('--inbox', 'inbox_path', type=click.Path(dir_okay=False), help='Exported SMS inbox (.json, .csv, .xlsx)')
@click.option('--limit', type=int, default=None, help='Maximum number of SMS to read')
@click.option('--days-back', type=int, default=None, help='Only read SMS from the last N days')
@click.option('--all', 'read_all', is_flag=True, default=False, help='Read every SMS, not just transaction-looking ones')
@click.option('--progress', is_flag=True, default=False, help='Print each progress step')
@click.pass_obj
@_handle_errors
def sync(cfg, inbox_path, limit, days_back, read_all, progress):
    """Read new SMS from the inbox export and store their transactions."""
    manager = _build_manager(cfg, inbox_path, limit, days_back, read_all)
    if progress:
        manager.on_progress(lambda p: click.echo(f"[{p.stage}] {p.message} ({p.current}/{p.total})"))
    result = manager.perform_sync(cfg['user_id'])
    _echo_result(result)
    if not result.success:
        raise click.ClickException("; ".join(result.errors) or "Sync failed")


@main.command()
@click.option('--inbox', 'inbox_path', type=click.Path(dir_okay=False), help='Exported SMS inbox to watch')
@click.option('--poll-seconds', type=float, default=10.0, show_default=True)
@click.option('--max-iterations', type=int, default=None, help='Stop after N polls (default: run forever)')
@click.pass_obj
@_handle_errors
def watch(cfg, inbox_path, poll_seconds, max_iterations):
    """Sync again whenever the inbox export changes."""
    manager = _build_manager(cfg, inbox_path)
    click.echo(f"Watching {manager.inbox.path} (poll every {poll_seconds}s)")
    syncs = watch_inbox(
        manager, cfg['user_id'], poll_seconds=poll_seconds,
        max_iterations=max_iterations, on_result=_echo_result,
    )
    click.echo(f"Performed {syncs} sync(s).")


@main.command()
@click.argument('body')
@click.option('--sender', required=True, help='SMS sender id, e.g. VM-HDFCBK')
@click.pass_obj
def parse(cfg, body, sender):
    """Parse a single SMS body without storing it."""
    sms = RawSMS(id='cli', sender=sender, body=body, timestamp=int(datetime.now().timestamp() * 1000))
    parser = TransactionParser(cfg)
    parsed = parser.parse(sms)
    if parsed is None or not parser.validate(parsed):
        raise click.ClickException("Could not parse a transaction from this SMS.")
    click.echo(f"bank:      {parser.detect_bank(sender)}")
    click.echo(f"type:      {parsed.type}")
    click.echo(f"amount:    {format_currency(parsed.amount)}")
    click.echo(f"merchant:  {parsed.merchant or '-'}")
    click.echo(f"account:   {parsed.account or '-'}")
    click.echo(f"reference: {parsed.reference or '-'}")
    if parsed.balance is not None:
        click.echo(f"balance:   {format_currency(parsed.balance)}")
    click.echo(f"category:  {categorize(parsed.merchant, keywords=cfg['categories'])}")


@main.command()
@click.pass_obj
def accounts(cfg):
    """List accounts with their balance and transaction count."""
    summary = _query_manager(cfg).get_accounts_summary(cfg['user_id'])
    if not summary:
        click.echo("No accounts yet.")
        return
    for acc in summary:
        click.echo(
            f"{acc['bank']:<10} {acc['account_number']:<20} "
            f"{format_currency(acc['balance']):>16}  {acc['transaction_count']} transaction(s)"
        )


@main.command()
@click.option('--range', 'date_range', type=click.Choice(DATE_RANGES[:-1]), default=None)
@click.option('--month', default=None, help='Only show one month (YYYY-MM)')
@click.option('--type', 'types', multiple=True, type=click.Choice(TRANSACTION_TYPES))
@click.option('--search', default='', help='Text to look for in merchant or notes')
@click.option('--limit', type=int, default=20, show_default=True)
@click.pass_obj
@_handle_errors
def transactions(cfg, date_range, month, types, search, limit):
    """Show stored transactions, newest first."""
    txs = database.fetch_transactions(cfg['db_path'], cfg['user_id'])
    txs = apply_filters(txs, FilterOptions(date_range=date_range, transaction_types=list(types), search_term=search))
    if month:
        txs = filter_transactions_by_month(txs, month)
    names = _category_names(cfg)
    for tx in sorted(txs, key=lambda t: t.date, reverse=True)[:limit]:
        sign = '+' if tx.is_income else '-'
        click.echo(
            f"{tx.id}  {tx.date:%Y-%m-%d} {tx.type:<6} {sign}{format_currency(tx.effective_amount):>15} "
            f"{tx.merchant:<25} {names.get(tx.category_id, 'Other')}"
        )
    click.echo(f"{len(txs)} matching transaction(s).")


@main.command(name='categorize')
@click.argument('merchant')
@click.option('--amount', type=float, default=None, help='Also suggest categories for this amount')
@click.option('--type', 'txn_type', type=click.Choice(TRANSACTION_TYPES), default='debit', show_default=True)
@click.pass_obj
def categorize_cmd(cfg, merchant, amount, txn_type):
    """Show the category a merchant would be filed under."""
    mappings = database.merchant_category_map(cfg['db_path'], cfg['user_id'])
    click.echo(categorize(merchant, mappings, cfg['categories']))
    if amount is not None:
        click.echo("Suggestions: " + ", ".join(suggest_by_amount(amount, txn_type)))


@main.command()
@click.argument('merchant')
@click.argument('category')
@click.pass_obj
@_handle_errors
def learn(cfg, merchant, category):
    """Always file MERCHANT under CATEGORY from now on."""
    mapping = learn_mapping(cfg['db_path'], cfg['user_id'], merchant, category)
    click.echo(f"Mapped '{mapping.merchant_name}' to {category} (seen {mapping.visit_count}x).")


@main.group(name='budgets')
def budgets_group():
    """Monthly category budgets."""


@budgets_group.command(name='add')
@click.argument('category')
@click.argument('amount', type=float)
@click.option('--month', type=int, default=None, help='1-12 (default: current month)')
@click.option('--year', type=int, default=None)
@click.option('--warning', 'warning_percent', type=float, default=80, show_default=True)
@click.option('--critical', 'critical_percent', type=float, default=100, show_default=True)
@click.pass_obj
@_handle_errors
def budgets_add(cfg, category, amount, month, year, warning_percent, critical_percent):
    today = date.today()
    budget = budgets.create_budget(
        cfg['db_path'], cfg['user_id'], category, amount,
        month or today.month, year or today.year,
        warning_percent=warning_percent, critical_percent=critical_percent,
    )
    click.echo(f"Budget of {format_currency(budget.amount)} set for {category} {budget.month:02d}/{budget.year}.")


@budgets_group.command(name='status')
@click.pass_obj
def budgets_status(cfg):
    today = date.today()
    month_budgets = database.get_budgets(cfg['db_path'], cfg['user_id'], today.month, today.year)
    if not month_budgets:
        click.echo("No budgets for this month.")
        return
    txs = database.fetch_transactions(cfg['db_path'], cfg['user_id'])
    names = _category_names(cfg)
    for alert in budgets.generate_budget_alerts(month_budgets, txs, today):
        progress = budgets.calculate_budget_progress(alert.current_usage, alert.threshold)
        click.echo(
            f"{names.get(alert.category_id, 'Other'):<15} {format_currency(alert.current_usage)} / "
            f"{format_currency(alert.threshold)} ({alert.percentage_used}%) {progress['label']}"
        )


@main.group(name='dues')
def dues_group():
    """Money owed to or by contacts."""


@dues_group.command(name='add')
@click.argument('contact')
@click.argument('amount', type=float)
@click.argument('due_date')
@click.option('--type', 'due_type', type=click.Choice(['credit', 'debit']), default='debit', show_default=True,
              help='credit = to receive, debit = to pay')
@click.option('--notes', default=None)
@click.pass_obj
@_handle_errors
def dues_add(cfg, contact, amount, due_date, due_type, notes):
    due = dues.create_due(cfg['db_path'], cfg['user_id'], contact, amount, due_date, due_type=due_type, notes=notes)
    click.echo(f"Due {due.id} recorded: {contact} {format_currency(due.amount)} on {due.due_date}.")


@dues_group.command(name='list')
@click.option('--upcoming', is_flag=True, default=False, help='Only dues in the next 7 days')
@click.option('--overdue', is_flag=True, default=False, help='Only overdue dues')
@click.pass_obj
def dues_list(cfg, upcoming, overdue):
    if upcoming:
        items = dues.get_upcoming_dues(cfg['db_path'], cfg['user_id'])
    elif overdue:
        items = dues.get_overdue_dues(cfg['db_path'], cfg['user_id'])
    else:
        items = dues.get_dues(cfg['db_path'], cfg['user_id'])
    for due in items:
        flag = ' OVERDUE' if due.is_overdue else ''
        click.echo(
            f"{due.id}  {due.due_date}  {due.due_type:<6} {due.contact_name:<20} "
            f"{format_currency(due.amount):>14}  {due.status}{flag}"
        )


@dues_group.command(name='complete')
@click.argument('due_id')
@click.pass_obj
@_handle_errors
def dues_complete(cfg, due_id):
    dues.complete_due(cfg['db_path'], due_id)
    click.echo(f"Due {due_id} completed.")


@main.command(name='recurring')
@click.option('--min-occurrences', type=int, default=3, show_default=True)
@click.pass_obj
def recurring_cmd(cfg, min_occurrences):
    """Detect subscriptions and other regular payments."""
    txs = [t for t in database.fetch_transactions(cfg['db_path'], cfg['user_id']) if t.is_expense]
    patterns = recurring.detect_recurring_patterns(txs, min_occurrences)
    if not patterns:
        click.echo("No recurring payments found.")
        return
    for pattern in patterns:
        click.echo(recurring.format_pattern(pattern))
    summary = recurring.summarize(patterns)
    click.echo(f"Monthly recurring total: {format_currency(summary['total_monthly_amount'])}")


@main.command()
@click.option('--period', type=click.Choice(list(analytics.REPORT_PERIODS)), default='monthly', show_default=True)
@click.pass_obj
@_handle_errors
def report(cfg, period):
    """Income, spending and savings summary with a health score."""
    txs = database.fetch_transactions(cfg['db_path'], cfg['user_id'])
    rep = analytics.generate_report(txs, period, _category_names(cfg))
    click.echo(f"Period:        {rep['start_date']:%Y-%m-%d} - {rep['end_date']:%Y-%m-%d}")
    click.echo(f"Income:        {format_currency(rep['total_income'])}")
    click.echo(f"Expense:       {format_currency(rep['total_expense'])}")
    click.echo(f"Net:           {format_currency(rep['net_income'])}")
    click.echo(f"Savings rate:  {rep['savings_rate']:.1f}%")
    click.echo(f"Health score:  {analytics.calculate_health_score(rep)}/100")
    for cat in rep['top_categories']:
        click.echo(f"  {cat['category']:<15} {format_currency(cat['amount']):>14} {cat['percentage']}% ({cat['trend']})")
    for insight in analytics.get_insights(rep):
        click.echo(f"* {insight}")


@main.command()
@click.option('--by', 'group_by', default='category', show_default=True,
              type=click.Choice(['category', 'merchant', 'month', 'quarter', 'year']))
@click.option('--start', 'start_date', type=click.DateTime(formats=['%Y-%m-%d']), default=None)
@click.option('--end', 'end_date', type=click.DateTime(formats=['%Y-%m-%d']), default=None)
@click.pass_obj
@_handle_errors
def summary(cfg, group_by, start_date, end_date):
    """Spending totals grouped by category, merchant or period."""
    start = start_date.date() if start_date else None
    end = end_date.date() if end_date else None
    if group_by == 'category':
        rows = database.summarize_by_category(cfg['db_path'], cfg['user_id'], start, end)
        key = 'category'
    elif group_by == 'merchant':
        rows = database.summarize_by_merchant(cfg['db_path'], cfg['user_id'], start, end)
        key = 'merchant'
    else:
        rows = database.summarize_by_period(cfg['db_path'], cfg['user_id'], group_by, start, end)
        for row in rows:
            click.echo(
                f"{row['period']:<10} in {format_currency(row['income']):>15}  "
                f"out {format_currency(row['expense']):>15}  {row['transactions']} transaction(s)"
            )
        return
    for row in rows:
        click.echo(f"{row[key]:<25} {format_currency(row['total']):>15}  {row['transactions']} transaction(s)")


@main.command(name='link-refund')
@click.argument('expense_id')
@click.argument('refund_id')
@click.option('--amount', type=float, default=None, help='Part of the refund to link (default: all of it)')
@click.pass_obj
@_handle_errors
def link_refund(cfg, expense_id, refund_id, amount):
    """Offset an expense with a refund so reports use the net amount."""
    link = database.link_refund(cfg['db_path'], cfg['user_id'], expense_id, refund_id, amount)
    expense = database.get_transaction(cfg['db_path'], expense_id)
    click.echo(
        f"Linked {format_currency(link.amount_linked)} to {expense.merchant}; "
        f"net amount now {format_currency(expense.net_amount)}."
    )


@main.command()
@click.option('--output', 'output_format', default='csv', type=click.Choice(['csv', 'excel']),
              help='Output target: csv or excel')
@click.option('--month', default=None, help='Only export one month (YYYY-MM)')
@click.pass_obj
@_handle_errors
def export(cfg, output_format, month):
    """Write stored transactions to CSV or an Excel workbook."""
    txs = database.fetch_transactions(cfg['db_path'], cfg['user_id'])
    if month:
        txs = filter_transactions_by_month(txs, month)
    accounts_by_id = {a.id: a.bank_name for a in database.get_accounts(cfg['db_path'], cfg['user_id'])}
    out_path = get_output(output_format, cfg).write(txs, _category_names(cfg), accounts_by_id)
    if out_path is None:
        click.echo("No transactions to write.")
    else:
        click.echo(f"Exported {len(txs)} transaction(s) to {out_path}.")


@main.command(name='backup')
@click.argument('path', type=click.Path(dir_okay=False))
@click.pass_obj
@_handle_errors
def backup_cmd(cfg, path):
    """Write a JSON backup of accounts, categories and transactions."""
    data = backup.write_backup(cfg['db_path'], cfg['user_id'], path)
    stats = backup.backup_stats(data)
    click.echo(
        f"Backup written to {path}: {stats['transaction_count']} transaction(s), "
        f"{stats['account_count']} account(s), {stats['size']}, {stats['date_range']}."
    )


@main.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
@_handle_errors
def restore(cfg, path):
    """Restore a JSON backup into the database."""
    counts = backup.import_data(cfg['db_path'], cfg['user_id'], backup.read_backup(path))
    click.echo(
        f"Restored {counts['accounts']} account(s), {counts['categories']} categories "
        f"and {counts['transactions']} transaction(s)."
    )


@main.command(name='import-manual')
@click.argument('path', required=False, type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
@_handle_errors
def import_manual(cfg, path):
    """Add cash transactions from a YAML file (default: manual_transactions_file)."""
    path = path or cfg.get('manual_transactions_file')
    if not path:
        raise click.UsageError("No manual transactions file given.")
    stored = import_manual_transactions(cfg['db_path'], cfg['user_id'], path, cfg['categories'])
    click.echo(f"Imported {len(stored)} manual transaction(s).")


@main.command(name='clear-sync')
@click.pass_obj
def clear_sync(cfg):
    """Forget which SMS were processed so the next sync re-reads them."""
    _query_manager(cfg).clear_sync()
    click.echo("Cleared processed SMS history.")
