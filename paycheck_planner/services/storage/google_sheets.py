"""
Worksheet Storage

DESIGN DECISION: A shared Google spreadsheet holds the household plan, so
members can read debts, instances and allocations directly in Sheets.

Sheets has no unique constraints, so every insert scans the worksheet for
an existing key first. The scan is not atomic: two concurrent inserts can
both pass it. Queries read the whole worksheet and filter rows in Python,
which is acceptable at household volume.

Each record type lives in its own worksheet, one record per row, below a
header row naming the columns.
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Callable, Iterable, Optional, TypeVar
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from gspread.exceptions import APIError
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from paycheck_planner.config import GoogleSheetsSettings, get_settings
from paycheck_planner.models.planning import (
    Debt,
    DebtAllocation,
    DismissedWarning,
    IncomeSource,
    MonthlyDebtInstance,
    WarningType,
    utcnow,
)
from paycheck_planner.models.audit import AuditEvent, AuditEventType, AuditSeverity
from paycheck_planner.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PlanningStorageInterface,
    StorageError,
)


ModelT = TypeVar("ModelT", bound=BaseModel)


# Column mappings, one list per worksheet
INCOME_SOURCE_COLUMNS = [
    "id",
    "user_id",
    "name",
    "amount",
    "frequency",
    "start_date",
    "end_date",
    "is_active",
    "notes",
    "created_at",
    "updated_at",
]

DEBT_COLUMNS = [
    "id",
    "budget_account_id",
    "created_by_user_id",
    "name",
    "payment_amount",
    "interest_rate",
    "due_date",
    "category_id",
    "has_balance",
    "created_at",
    "updated_at",
]

MONTHLY_DEBT_INSTANCE_COLUMNS = [
    "id",
    "budget_account_id",
    "debt_id",
    "year",
    "month",
    "due_date",
    "is_active",
    "created_at",
    "updated_at",
]

DEBT_ALLOCATION_COLUMNS = [
    "id",
    "budget_account_id",
    "monthly_debt_instance_id",
    "paycheck_id",
    "user_id",
    "payment_amount",
    "payment_date",
    "is_paid",
    "paid_at",
    "note",
    "allocated_at",
    "created_at",
    "updated_at",
]

DISMISSED_WARNING_COLUMNS = [
    "id",
    "budget_account_id",
    "user_id",
    "warning_type",
    "warning_key",
    "dismissed_at",
]

# Matches AuditEvent.to_sheets_row()
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "budget_account_id",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


# Transport errors only. DuplicateError/NotFoundError must never be retried.
sheets_retry = retry(
    retry=retry_if_exception_type(APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _to_cell(value) -> str:
    """Render one field as a RAW cell value."""
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def model_to_row(record: BaseModel, columns: list[str]) -> list[str]:
    """Convert a record to a spreadsheet row in column order."""
    return [_to_cell(getattr(record, column)) for column in columns]


def row_to_model(model: type[ModelT], columns: list[str], row: list) -> ModelT:
    """
    Convert a spreadsheet row to a record.

    Empty cells become missing fields so model defaults apply.
    Pydantic parses the cell strings back into dates, decimals and enums.
    """
    data = {}
    for index, column in enumerate(columns):
        try:
            value = row[index]
        except IndexError:
            continue
        if value != "":
            data[column] = value
    return model.model_validate(data)


class GoogleSheetsClient:
    """
    Thin wrapper over gspread with retries on API errors.

    Handles authentication, worksheet creation and retry logic for API
    calls. Row indexes are 1-based sheet rows (row 1 is the header).
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
    ):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet
        self._settings = settings or get_settings().google_sheets
        self._worksheets: dict[str, gspread.Worksheet] = {}

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    def connect(self) -> gspread.Client:
        """
        Authorize gspread with the service account.

        Credentials come from the service account file in settings.
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
        """Open the household spreadsheet, connecting on first use."""
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

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        if title not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                # Missing worksheet: add it with its header row
                sheet = spreadsheet.add_worksheet(
                    title=title,
                    rows=1000,
                    cols=len(columns),
                )
                sheet.append_row(columns, value_input_option="RAW")
            self._worksheets[title] = sheet
        return self._worksheets[title]

    @sheets_retry
    def get_rows(self, title: str, columns: list[str]) -> list[tuple[int, list]]:
        """All non-empty data rows with their sheet row index."""
        sheet = self.get_worksheet(title, columns)
        all_rows = sheet.get_all_values()
        return [
            (idx, row)
            for idx, row in enumerate(all_rows[1:], start=2)  # Row 1 is header
            if row and row[0]
        ]

    @sheets_retry
    def append_row(self, title: str, columns: list[str], row: list[str]) -> None:
        sheet = self.get_worksheet(title, columns)
        sheet.append_row(row, value_input_option="RAW")

    @sheets_retry
    def update_row(
        self,
        title: str,
        columns: list[str],
        row_index: int,
        row: list[str],
    ) -> None:
        sheet = self.get_worksheet(title, columns)
        sheet.update(
            range_name=f"A{row_index}",
            values=[row],
            value_input_option="RAW",
        )

    @sheets_retry
    def delete_row(self, title: str, columns: list[str], row_index: int) -> None:
        sheet = self.get_worksheet(title, columns)
        sheet.delete_rows(row_index)


class GoogleSheetsPlanningStorage(PlanningStorageInterface):
    """
    Google Sheets implementation of planning storage.

    Uniqueness keys are enforced by scanning the worksheet before append.
    Two processes appending the same key at the same moment can both
    succeed; readers tolerate that because every uniqueness key is
    re-checked on the next insert.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        settings = self._client.settings
        self._income_sources_sheet = settings.income_sources_sheet_name
        self._debts_sheet = settings.debts_sheet_name
        self._instances_sheet = settings.monthly_debt_instances_sheet_name
        self._allocations_sheet = settings.debt_allocations_sheet_name
        self._dismissals_sheet = settings.dismissed_warnings_sheet_name

    # -------------------------------------------------------------------------
    # Generic row helpers
    # -------------------------------------------------------------------------

    def _load(
        self,
        title: str,
        columns: list[str],
        model: type[ModelT],
        predicate: Optional[Callable[[ModelT], bool]] = None,
    ) -> list[tuple[int, ModelT]]:
        """Parse every row of a worksheet, keeping those matching predicate."""
        records = []
        for idx, row in self._client.get_rows(title, columns):
            record = row_to_model(model, columns, row)
            if predicate is None or predicate(record):
                records.append((idx, record))
        return records

    def _insert(
        self,
        title: str,
        columns: list[str],
        record: ModelT,
        conflict: Callable[[ModelT], bool],
        description: str,
    ) -> ModelT:
        try:
            clashes = self._load(
                title,
                columns,
                type(record),
                lambda existing: existing.id == record.id or conflict(existing),
            )
            if clashes:
                raise DuplicateError(f"{description} already exists")
            self._client.append_row(title, columns, model_to_row(record, columns))
            return record
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert {description}: {e}")

    def _replace(
        self,
        title: str,
        columns: list[str],
        record: ModelT,
        description: str,
    ) -> ModelT:
        try:
            matches = self._load(
                title,
                columns,
                type(record),
                lambda existing: existing.id == record.id,
            )
            if not matches:
                raise NotFoundError(f"{description} not found: {record.id}")
            idx, existing = matches[0]
            if getattr(existing, "budget_account_id", None) != getattr(record, "budget_account_id", None):
                raise NotFoundError(f"{description} not found: {record.id}")

            updated = record.model_copy(update={"updated_at": utcnow()})
            self._client.update_row(title, columns, idx, model_to_row(updated, columns))
            return updated
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {description}: {e}")

    def _select(
        self,
        title: str,
        columns: list[str],
        model: type[ModelT],
        predicate: Callable[[ModelT], bool],
        description: str,
    ) -> list[ModelT]:
        try:
            return [record for _, record in self._load(title, columns, model, predicate)]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {description}: {e}")

    # -------------------------------------------------------------------------
    # Income sources
    # -------------------------------------------------------------------------

    async def insert_income_source(self, source: IncomeSource) -> IncomeSource:
        return self._insert(
            self._income_sources_sheet,
            INCOME_SOURCE_COLUMNS,
            source,
            lambda existing: False,
            "income source",
        )

    async def list_income_sources(
        self,
        user_id: Optional[str] = None,
        active_only: bool = False,
    ) -> list[IncomeSource]:
        sources = self._select(
            self._income_sources_sheet,
            INCOME_SOURCE_COLUMNS,
            IncomeSource,
            lambda s: (user_id is None or s.user_id == user_id)
            and (not active_only or s.is_active),
            "income sources",
        )
        sources.sort(key=lambda s: s.id)
        return sources

    # -------------------------------------------------------------------------
    # Debts
    # -------------------------------------------------------------------------

    async def insert_debt(self, debt: Debt) -> Debt:
        return self._insert(
            self._debts_sheet,
            DEBT_COLUMNS,
            debt,
            lambda existing: False,
            "debt",
        )

    async def list_debts(self, budget_account_id: str) -> list[Debt]:
        return self._select(
            self._debts_sheet,
            DEBT_COLUMNS,
            Debt,
            lambda d: d.budget_account_id == budget_account_id,
            "debts",
        )

    # -------------------------------------------------------------------------
    # Monthly debt instances
    # -------------------------------------------------------------------------

    async def insert_monthly_debt_instance(
        self,
        instance: MonthlyDebtInstance,
    ) -> MonthlyDebtInstance:
        return self._insert(
            self._instances_sheet,
            MONTHLY_DEBT_INSTANCE_COLUMNS,
            instance,
            lambda existing: existing.budget_account_id == instance.budget_account_id
            and existing.key == instance.key,
            "monthly debt instance",
        )

    async def get_monthly_debt_instance(
        self,
        budget_account_id: str,
        instance_id: str,
    ) -> Optional[MonthlyDebtInstance]:
        matches = self._select(
            self._instances_sheet,
            MONTHLY_DEBT_INSTANCE_COLUMNS,
            MonthlyDebtInstance,
            lambda i: i.id == instance_id and i.budget_account_id == budget_account_id,
            "monthly debt instance",
        )
        return matches[0] if matches else None

    async def list_monthly_debt_instances(
        self,
        budget_account_id: str,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
        is_active: Optional[bool] = None,
    ) -> list[MonthlyDebtInstance]:
        def matches(instance: MonthlyDebtInstance) -> bool:
            if instance.budget_account_id != budget_account_id:
                return False
            if due_from and instance.due_date < due_from:
                return False
            if due_to and instance.due_date > due_to:
                return False
            if is_active is not None and instance.is_active != is_active:
                return False
            return True

        instances = self._select(
            self._instances_sheet,
            MONTHLY_DEBT_INSTANCE_COLUMNS,
            MonthlyDebtInstance,
            matches,
            "monthly debt instances",
        )
        instances.sort(key=lambda i: (i.due_date, i.id))
        return instances

    async def update_monthly_debt_instance(
        self,
        instance: MonthlyDebtInstance,
    ) -> MonthlyDebtInstance:
        return self._replace(
            self._instances_sheet,
            MONTHLY_DEBT_INSTANCE_COLUMNS,
            instance,
            "Monthly debt instance",
        )

    # -------------------------------------------------------------------------
    # Allocations
    # -------------------------------------------------------------------------

    async def insert_debt_allocation(
        self,
        allocation: DebtAllocation,
    ) -> DebtAllocation:
        return self._insert(
            self._allocations_sheet,
            DEBT_ALLOCATION_COLUMNS,
            allocation,
            lambda existing: existing.budget_account_id == allocation.budget_account_id
            and existing.key == allocation.key,
            "allocation",
        )

    async def get_debt_allocation(
        self,
        budget_account_id: str,
        allocation_id: str,
    ) -> Optional[DebtAllocation]:
        matches = self._select(
            self._allocations_sheet,
            DEBT_ALLOCATION_COLUMNS,
            DebtAllocation,
            lambda a: a.id == allocation_id and a.budget_account_id == budget_account_id,
            "allocation",
        )
        return matches[0] if matches else None

    async def find_debt_allocation(
        self,
        budget_account_id: str,
        monthly_debt_instance_id: str,
        paycheck_id: str,
    ) -> Optional[DebtAllocation]:
        matches = self._select(
            self._allocations_sheet,
            DEBT_ALLOCATION_COLUMNS,
            DebtAllocation,
            lambda a: a.budget_account_id == budget_account_id
            and a.key == (monthly_debt_instance_id, paycheck_id),
            "allocation",
        )
        return matches[0] if matches else None

    async def list_debt_allocations(
        self,
        budget_account_id: str,
        paycheck_ids: Optional[Iterable[str]] = None,
    ) -> list[DebtAllocation]:
        wanted = set(paycheck_ids) if paycheck_ids is not None else None
        allocations = self._select(
            self._allocations_sheet,
            DEBT_ALLOCATION_COLUMNS,
            DebtAllocation,
            lambda a: a.budget_account_id == budget_account_id
            and (wanted is None or a.paycheck_id in wanted),
            "allocations",
        )
        allocations.sort(key=lambda a: (a.allocated_at, a.id))
        return allocations

    async def update_debt_allocation(
        self,
        allocation: DebtAllocation,
    ) -> DebtAllocation:
        return self._replace(
            self._allocations_sheet,
            DEBT_ALLOCATION_COLUMNS,
            allocation,
            "Allocation",
        )

    async def delete_debt_allocations(
        self,
        budget_account_id: str,
        monthly_debt_instance_id: str,
        paycheck_id: str,
    ) -> int:
        try:
            matches = self._load(
                self._allocations_sheet,
                DEBT_ALLOCATION_COLUMNS,
                DebtAllocation,
                lambda a: a.budget_account_id == budget_account_id
                and a.key == (monthly_debt_instance_id, paycheck_id),
            )
            # Bottom-up so earlier row indexes stay valid
            for idx, _ in sorted(matches, key=lambda m: m[0], reverse=True):
                self._client.delete_row(
                    self._allocations_sheet,
                    DEBT_ALLOCATION_COLUMNS,
                    idx,
                )
            return len(matches)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete allocations: {e}")

    # -------------------------------------------------------------------------
    # Dismissed warnings
    # -------------------------------------------------------------------------

    async def insert_dismissed_warning(
        self,
        dismissal: DismissedWarning,
    ) -> DismissedWarning:
        return self._insert(
            self._dismissals_sheet,
            DISMISSED_WARNING_COLUMNS,
            dismissal,
            lambda existing: existing.budget_account_id == dismissal.budget_account_id
            and existing.user_id == dismissal.user_id
            and existing.warning_type == dismissal.warning_type
            and existing.warning_key == dismissal.warning_key,
            "warning dismissal",
        )

    async def find_dismissed_warning(
        self,
        budget_account_id: str,
        user_id: str,
        warning_type: WarningType,
        warning_key: str,
    ) -> Optional[DismissedWarning]:
        matches = self._select(
            self._dismissals_sheet,
            DISMISSED_WARNING_COLUMNS,
            DismissedWarning,
            lambda d: d.budget_account_id == budget_account_id
            and d.user_id == user_id
            and d.warning_type == warning_type
            and d.warning_key == warning_key,
            "warning dismissal",
        )
        return matches[0] if matches else None

    async def list_dismissed_warnings(
        self,
        budget_account_id: str,
        user_id: str,
    ) -> list[DismissedWarning]:
        return self._select(
            self._dismissals_sheet,
            DISMISSED_WARNING_COLUMNS,
            DismissedWarning,
            lambda d: d.budget_account_id == budget_account_id and d.user_id == user_id,
            "warning dismissals",
        )


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Audit trail kept in the AuditLog worksheet.

    Rows are only ever appended, never rewritten.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._sheet = self._client.settings.audit_sheet_name

    def _row_to_event(self, row: list) -> AuditEvent:
        """Parse an AuditLog row back into an event."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            budget_account_id=safe_get(4) or None,
            user_id=safe_get(5) or None,
            entity_type=safe_get(6) or None,
            entity_id=safe_get(7) or None,
            correlation_id=UUID(safe_get(8)) if safe_get(8) else None,
            description=safe_get(9),
            details=json.loads(safe_get(10)) if safe_get(10) else {},
            error_message=safe_get(11) or None,
            is_user_action=safe_get(12).lower() == "true",
        )

    def _events(self, predicate: Callable[[list], bool]) -> list[AuditEvent]:
        try:
            rows = self._client.get_rows(self._sheet, AUDIT_COLUMNS)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for _, row in rows:
            if predicate(row):
                events.append(self._row_to_event(row))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append one row to the AuditLog worksheet."""
        try:
            self._client.append_row(self._sheet, AUDIT_COLUMNS, event.to_sheets_row())
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events of one request, oldest first."""
        events = self._events(
            lambda row: len(row) > 8 and row[8] == str(correlation_id)
        )
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Events about one record, oldest first."""
        events = self._events(
            lambda row: len(row) > 7 and row[6] == entity_type and row[7] == entity_id
        )
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._events(lambda row: True)
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
