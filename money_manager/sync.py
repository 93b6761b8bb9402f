# money_manager/sync.py
"""SMS sync orchestration.

A sync reads unprocessed messages from the inbox export, runs each one
through the account detector and records which messages were stored.
Progress is reported to registered callbacks after every step.
"""
from __future__ import annotations

import hashlib
import logging
import os
import time
from datetime import datetime
from typing import Callable, List

from money_manager import database
from money_manager.accounts import AccountDetector
from money_manager.core.models import SyncProgress, SyncResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[SyncProgress], None]


def _timestamp() -> str:
    return datetime.now().isoformat()


class SyncManager:
    def __init__(self, inbox, detector: AccountDetector):
        self.inbox = inbox
        self.detector = detector
        self.db_path = detector.db_path
        self._in_progress = False
        self._callbacks: List[ProgressCallback] = []

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    def on_progress(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register a progress listener; the returned function unregisters it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def _notify(self, stage: str, current: int, total: int, message: str) -> None:
        progress = SyncProgress(stage=stage, current=current, total=total, message=message)
        logger.info("[%s] %s (%d/%d)", stage, message, current, total)
        for cb in list(self._callbacks):
            cb(progress)

    def perform_sync(self, user_id: str, now: datetime | None = None) -> SyncResult:
        if self._in_progress:
            return SyncResult(
                success=False, errors=['Sync already in progress'], timestamp=_timestamp()
            )

        self._in_progress = True
        start = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            self._notify('permissions', 0, 1, 'Requesting SMS permissions...')
            if not self.inbox.request_permissions():
                return SyncResult(
                    success=False,
                    errors=['SMS permissions not granted'],
                    duration=elapsed(),
                    timestamp=_timestamp(),
                )

            self._notify('reading', 0, 1, 'Reading SMS from inbox export...')
            messages = self.inbox.get_unprocessed_sms(now=now)
            sms_read = len(messages)
            self._notify('reading', 1, 1, f'Read {sms_read} unprocessed SMS')

            if sms_read == 0:
                return SyncResult(success=True, duration=elapsed(), timestamp=_timestamp())

            self._notify('parsing', 0, sms_read, f'Processing {sms_read} SMS messages...')

            processed = stored = failed = 0
            new_accounts = set()
            errors: List[str] = []
            for idx, sms in enumerate(messages, start=1):
                try:
                    result = self.detector.process_sms(sms, user_id)
                    if result.success:
                        processed += 1
                        if not result.duplicate:
                            stored += 1
                        if result.account_created:
                            new_accounts.add(result.account_id)
                        self.inbox.mark_processed(sms)
                    else:
                        failed += 1
                        errors.append(f'SMS {sms.id}: {result.error or "Failed to parse"}')
                except Exception as exc:
                    logger.exception("Error processing SMS %s", sms.id)
                    failed += 1
                    errors.append(f'SMS {sms.id}: {exc}')

                self._notify('processing', idx, sms_read, f'Processed {processed}/{sms_read} SMS')

            self._notify('complete', 1, 1, 'Sync complete')
            result = SyncResult(
                success=True,
                sms_read=sms_read,
                sms_processed=processed,
                accounts_created=len(new_accounts),
                transactions_stored=stored,
                failed=failed,
                errors=errors,
                duration=elapsed(),
                timestamp=_timestamp(),
            )
            logger.info(
                "Sync complete: read=%d processed=%d stored=%d failed=%d duration=%dms",
                sms_read, processed, stored, failed, result.duration,
            )
            return result
        except Exception as exc:
            logger.exception("Sync failed")
            return SyncResult(
                success=False, failed=1, errors=[str(exc)],
                duration=elapsed(), timestamp=_timestamp(),
            )
        finally:
            self._in_progress = False

    def get_accounts_summary(self, user_id: str) -> List[dict]:
        accounts = database.get_accounts(self.db_path, user_id)
        counts: dict = {}
        for tx in database.fetch_transactions(self.db_path, user_id):
            counts[tx.account_id] = counts.get(tx.account_id, 0) + 1
        return [
            {
                'bank': acc.bank_name,
                'account_id': acc.id,
                'account_number': acc.account_number,
                'balance': acc.balance,
                'transaction_count': counts.get(acc.id, 0),
            }
            for acc in accounts
        ]

    def get_recent_transactions(self, user_id: str, limit: int = 20):
        return database.get_transactions(self.db_path, user_id, limit=limit)['data']

    def clear_sync(self) -> None:
        self.inbox.clear_processed_sms()


def inbox_signature(path: str) -> str | None:
    """Content signature of the inbox export; None when it does not exist."""
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return None
    entry = f"{os.path.abspath(path)}:{st.st_mtime_ns}:{st.st_size}"
    return hashlib.sha1(entry.encode("utf-8")).hexdigest()


def watch(
    manager: SyncManager,
    user_id: str,
    poll_seconds: float = 10.0,
    max_iterations: int | None = None,
    on_result: Callable[[SyncResult], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Poll the inbox export and sync whenever it changes.

    Runs forever unless ``max_iterations`` is given. Returns the number of
    syncs performed.
    """
    last_sig = None
    syncs = 0
    iteration = 0
    while max_iterations is None or iteration < max_iterations:
        iteration += 1
        sig = inbox_signature(manager.inbox.path)
        if sig is not None and sig != last_sig:
            logger.info("Detected inbox changes. Syncing...")
            result = manager.perform_sync(user_id)
            syncs += 1
            if result.success:
                last_sig = sig
            else:
                logger.error("Sync error: %s", "; ".join(result.errors))
            if on_result:
                on_result(result)
        if max_iterations is None or iteration < max_iterations:
            sleep(poll_seconds)
    return syncs
