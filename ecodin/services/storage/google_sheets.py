"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the hosted store because:
1. Users can look at their own data directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: the quota check-then-write is best effort
- No server push: snapshots are published after writes made through this
  process, and refresh() re-reads the sheet on demand

The implementation follows the abstract interface, so another document
store can replace it without changing business logic.
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from ecodin.config import get_settings
from ecodin.models.audit import AuditEvent, AuditEventType, AuditSeverity
from ecodin.models.summary import QuotaRecord
from ecodin.models.transaction import (
    Category,
    DateRange,
    Transaction,
    TransactionType,
)
from ecodin.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    QuotaStorageInterface,
    SnapshotCallback,
    StorageError,
    Subscription,
    TransactionStorageInterface,
)
from ecodin.services.storage.subscriptions import SnapshotHub

logger = structlog.get_logger(__name__)


TRANSACTION_COLUMNS = [
    "user_id",
    "id",
    "type",
    "name",
    "amount",
    "category",
    "date",
    "updated_at",
]

QUOTA_COLUMNS = [
    "user_id",
    "usage_month",
    "usage_count",
    "updated_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, rows=1000
        )

    def get_quota_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.quota_sheet_name, QUOTA_COLUMNS, rows=200
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    All users share one worksheet; column A holds the owner's user id
    and every read filters on it.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._hub = SnapshotHub()

    def _transaction_to_row(self, user_id: str, transaction: Transaction) -> list:
        return [
            user_id,
            transaction.id or "",
            transaction.type.value,
            transaction.name,
            str(transaction.amount),
            transaction.category.value,
            transaction.date.isoformat(),
            _now_iso(),
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        return Transaction(
            id=_safe_get(row, 1),
            type=TransactionType(_safe_get(row, 2)),
            name=_safe_get(row, 3),
            amount=Decimal(_safe_get(row, 4)),
            category=Category(_safe_get(row, 5)),
            date=datetime.fromisoformat(_safe_get(row, 6)),
        )

    def _read_user_rows(self, user_id: str) -> list[tuple[int, list]]:
        """(sheet row number, row) pairs owned by user_id."""
        sheet = self._client.get_transactions_sheet()
        all_rows = sheet.get_all_values()
        # Row 1 is the header
        return [
            (idx, row)
            for idx, row in enumerate(all_rows[1:], start=2)
            if row and row[0] == user_id and _safe_get(row, 1)
        ]

    def _snapshot(self, user_id: str) -> list[Transaction]:
        transactions = []
        for _, row in self._read_user_rows(user_id):
            try:
                transactions.append(self._row_to_transaction(row))
            except Exception as e:
                # Skip malformed rows
                logger.warning("malformed_transaction_row", user_id=user_id, error=str(e))
        transactions.sort(key=lambda tx: tx.date)
        return transactions

    def _try_snapshot(self, user_id: str) -> Optional[list[Transaction]]:
        """Snapshot for subscribers; None when the sheet cannot be read right now."""
        try:
            return self._snapshot(user_id)
        except Exception as e:
            logger.warning("snapshot_read_failed", user_id=user_id, error=str(e))
            return None

    def _publish(self, user_id: str) -> None:
        # Runs after a committed write, so a failed re-read is only logged
        if not self._hub.has_listeners(user_id):
            return
        snapshot = self._try_snapshot(user_id)
        if snapshot is not None:
            self._hub.publish(user_id, snapshot)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_row(self, row: list) -> None:
        sheet = self._client.get_transactions_sheet()
        sheet.append_row(row, value_input_option="RAW")

    async def add_transaction(self, user_id: str, transaction: Transaction) -> Transaction:
        stored = transaction.model_copy(update={"id": uuid4().hex})
        try:
            self._append_row(self._transaction_to_row(user_id, stored))
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")
        self._publish(user_id)
        return stored

    async def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        try:
            for _, row in self._read_user_rows(user_id):
                if row[1] == transaction_id:
                    return self._row_to_transaction(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def update_transaction(self, user_id: str, transaction: Transaction) -> Transaction:
        try:
            sheet = self._client.get_transactions_sheet()
            for idx, row in self._read_user_rows(user_id):
                if row[1] == transaction.id:
                    sheet.update(
                        values=[self._transaction_to_row(user_id, transaction)],
                        range_name=f"A{idx}",
                        value_input_option="RAW",
                    )
                    break
            else:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")
        self._publish(user_id)
        return transaction

    async def delete_transaction(self, user_id: str, transaction_id: str) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            for idx, row in self._read_user_rows(user_id):
                if row[1] == transaction_id:
                    sheet.delete_rows(idx)
                    break
            else:
                return False
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")
        self._publish(user_id)
        return True

    async def list_transactions(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        try:
            window = DateRange(start=date_from, end=date_to)
            return [tx for tx in self._snapshot(user_id) if window.contains(tx.date)]
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

    def subscribe(self, user_id: str, callback: SnapshotCallback) -> Subscription:
        subscription = self._hub.add(user_id, callback)
        snapshot = self._try_snapshot(user_id)
        if snapshot is not None:
            self._hub.deliver_initial(callback, user_id, snapshot)
        return subscription

    def refresh(self, user_id: str) -> None:
        """Re-read the sheet and push a snapshot (picks up edits made elsewhere)."""
        self._publish(user_id)


class GoogleSheetsQuotaStorage(QuotaStorageInterface):
    """One row per user on the usage worksheet."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find_row(self, user_id: str) -> tuple[Optional[int], Optional[list]]:
        sheet = self._client.get_quota_sheet()
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == user_id:
                return idx, row
        return None, None

    async def get_quota(self, user_id: str) -> Optional[QuotaRecord]:
        try:
            _, row = self._find_row(user_id)
            if row is None or not _safe_get(row, 1):
                return None
            return QuotaRecord(
                usage_month=_safe_get(row, 1),
                usage_count=int(_safe_get(row, 2, "0")),
            )
        except Exception as e:
            # Covers hand-edited rows as well as API failures
            raise StorageError(f"Failed to read usage: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_quota(self, user_id: str, record: QuotaRecord) -> bool:
        row = [user_id, record.usage_month, str(record.usage_count), _now_iso()]
        try:
            sheet = self._client.get_quota_sheet()
            idx, _ = self._find_row(user_id)
            if idx is None:
                sheet.append_row(row, value_input_option="RAW")
            else:
                sheet.update(values=[row], range_name=f"A{idx}", value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save usage: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            user_id=_safe_get(row, 4) or None,
            entity_type=_safe_get(row, 5) or None,
            entity_id=_safe_get(row, 6) or None,
            correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]

            events = []
            for row in all_rows:
                if not row or not row[0]:
                    continue
                if user_id is not None and _safe_get(row, 4) != user_id:
                    continue
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue

            # Newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
