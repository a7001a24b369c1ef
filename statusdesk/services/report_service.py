"""
Report / Export Engine — billing summaries over approved time logs.

Billing rule: only approved hours count toward ``total_hours`` and
``amount``. Pending and rejected hours are reported separately and never
enter a payable figure.

Periods are half-months (P1 = days 1–15, P2 = 16–end) or the whole month.
Hourly rates are read from the User at report time, so a rate change also
changes the figures for past periods.
"""

from __future__ import annotations

import calendar
import csv
import io
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from statusdesk.core.exceptions import ValidationError
from statusdesk.core.scope import Scope, SelfScope
from statusdesk.models.auth import TIME_LOGGING_ROLES, User
from statusdesk.models.timesheet import (
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    WORK_TYPES,
    TimeLog,
)
from statusdesk.services.helpers.repository import Repository, SQLAlchemyRepository

logger = logging.getLogger(__name__)

HALF_P1 = "P1"
HALF_P2 = "P2"
HALF_FULL = "full"
PERIOD_HALVES = (HALF_P1, HALF_P2, HALF_FULL)

TOTAL_BUCKET = "TOTAL"

EXPORT_COLUMNS = (
    "Developer", "Department", "Period", "Work Type",
    "Approved Hours", "Pending Hours", "Hourly Rate", "Amount",
)

HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
TOTAL_FONT = Font(bold=True)
TOTAL_FILL = PatternFill(start_color="EEF2F6", end_color="EEF2F6", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)


def _round(value: float) -> float:
    return round(float(value or 0.0), 2)


# ── Period ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ReportPeriod:
    year: int
    month: int
    half: str = HALF_FULL

    def __post_init__(self):
        if not isinstance(self.year, int) or not 2000 <= self.year <= 2100:
            raise ValidationError("year must be between 2000 and 2100", details={"year": "out of range"})
        if not isinstance(self.month, int) or not 1 <= self.month <= 12:
            raise ValidationError("month must be between 1 and 12", details={"month": "out of range"})
        if self.half not in PERIOD_HALVES:
            raise ValidationError(
                f"Invalid period: {self.half!r}",
                details={"period": f"must be one of {list(PERIOD_HALVES)}"},
            )

    @classmethod
    def halves_of(cls, year: int, month: int) -> tuple[ReportPeriod, ReportPeriod]:
        return cls(year, month, HALF_P1), cls(year, month, HALF_P2)

    @property
    def start(self) -> date:
        return date(self.year, self.month, 16 if self.half == HALF_P2 else 1)

    @property
    def end(self) -> date:
        if self.half == HALF_P1:
            return date(self.year, self.month, 15)
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def label(self) -> str:
        suffix = "" if self.half == HALF_FULL else f" {self.half}"
        return f"{self.year:04d}-{self.month:02d}{suffix}"

    @property
    def range_label(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "month": self.month,
            "half": self.half,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "label": self.label,
        }


# ── Summaries ────────────────────────────────────────────────────────────────


@dataclass
class DeveloperSummary:
    user_id: str
    name: str
    department: str | None = None
    hourly_rate: float = 0.0
    total_hours: float = 0.0
    pending_hours: float = 0.0
    rejected_hours: float = 0.0
    by_work_type: dict = field(default_factory=dict)
    entries: list = field(default_factory=list)

    @property
    def amount(self) -> float:
        return self.total_hours * self.hourly_rate

    def to_dict(self, include_entries: bool = True) -> dict:
        data = {
            "user_id": self.user_id,
            "name": self.name,
            "department": self.department,
            "hourly_rate": _round(self.hourly_rate),
            "total_hours": _round(self.total_hours),
            "pending_hours": _round(self.pending_hours),
            "rejected_hours": _round(self.rejected_hours),
            "by_work_type": {k: _round(v) for k, v in self.by_work_type.items()},
            "amount": _round(self.amount),
        }
        if include_entries:
            data["entries"] = [e.to_dict() for e in self.entries]
        return data


def _user_index(users) -> dict:
    if users is None:
        return {}
    if isinstance(users, dict):
        return users
    return {u.id: u for u in users}


def summarize_by_developer(entries, period: ReportPeriod, users=None) -> dict[str, DeveloperSummary]:
    """Group ``entries`` inside ``period`` by owner.

    ``users`` (mapping id → User, or an iterable of users) supplies the live
    hourly rate; owners missing from it are reported at rate 0 under their
    snapshotted name. Deleted entries and entries outside the period are
    ignored.
    """
    index = _user_index(users)
    summaries: dict[str, DeveloperSummary] = {}
    grouped = defaultdict(list)

    for entry in entries:
        if getattr(entry, "deleted_at", None) is not None or not period.contains(entry.date):
            continue
        grouped[entry.user_id].append(entry)

    for user_id, owned in grouped.items():
        user = index.get(user_id)
        summary = DeveloperSummary(
            user_id=user_id,
            name=user.name if user else owned[0].user_name,
            department=user.department if user else None,
            hourly_rate=float(user.hourly_rate or 0.0) if user else 0.0,
        )
        by_type = defaultdict(float)
        for entry in owned:
            if entry.status == STATUS_APPROVED:
                summary.total_hours += entry.hours
                by_type[entry.work_type] += entry.hours
            elif entry.status == STATUS_PENDING:
                summary.pending_hours += entry.hours
            elif entry.status == STATUS_REJECTED:
                summary.rejected_hours += entry.hours
        summary.by_work_type = {wt: by_type[wt] for wt in WORK_TYPES if wt in by_type}
        summary.entries = sorted(owned, key=lambda e: (e.date, e.created_at))
        summaries[user_id] = summary

    return summaries


def _empty_summary(user) -> DeveloperSummary:
    return DeveloperSummary(
        user_id=user.id,
        name=user.name,
        department=user.department,
        hourly_rate=float(user.hourly_rate or 0.0),
    )


# ── Export table ─────────────────────────────────────────────────────────────


@dataclass
class ExportRow:
    user_id: str
    developer: str
    department: str | None
    bucket: str
    hours: float
    pending_hours: float | None = None
    hourly_rate: float | None = None
    amount: float | None = None

    @property
    def is_total(self) -> bool:
        return self.bucket == TOTAL_BUCKET

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "developer": self.developer,
            "department": self.department,
            "work_type": self.bucket,
            "hours": _round(self.hours),
            "pending_hours": None if self.pending_hours is None else _round(self.pending_hours),
            "hourly_rate": None if self.hourly_rate is None else _round(self.hourly_rate),
            "amount": None if self.amount is None else _round(self.amount),
        }


@dataclass
class ExportTable:
    period: ReportPeriod
    rows: list[ExportRow] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def totals(self) -> list[ExportRow]:
        return [r for r in self.rows if r.is_total]

    @property
    def grand_total_hours(self) -> float:
        return sum(r.hours for r in self.totals)

    @property
    def grand_total_amount(self) -> float:
        return sum(r.amount or 0.0 for r in self.totals)

    def total_for(self, user_id: str) -> ExportRow | None:
        return next((r for r in self.totals if r.user_id == user_id), None)

    def to_dict(self) -> dict:
        return {
            "period": self.period.to_dict(),
            "columns": list(EXPORT_COLUMNS),
            "rows": [r.to_dict() for r in self.rows],
            "grand_total_hours": _round(self.grand_total_hours),
            "grand_total_amount": _round(self.grand_total_amount),
            "generated_at": self.generated_at.isoformat(),
        }


def build_export(period: ReportPeriod, developers, entries) -> ExportTable:
    """Tabulate approved hours for every developer in the roster.

    Each developer gets one row per work type with approved hours, then a
    TOTAL row. Developers with nothing approved still get a zero TOTAL row.
    Owners of entries who are not in the roster are added so no approved
    hours are dropped. Rows are ordered by developer name.
    """
    roster = list(developers)
    summaries = summarize_by_developer(entries, period, roster)
    for user in roster:
        summaries.setdefault(user.id, _empty_summary(user))

    table = ExportTable(period=period)
    for summary in sorted(summaries.values(), key=lambda s: (s.name.lower(), s.user_id)):
        for work_type, hours in summary.by_work_type.items():
            table.rows.append(ExportRow(
                user_id=summary.user_id,
                developer=summary.name,
                department=summary.department,
                bucket=work_type,
                hours=hours,
            ))
        table.rows.append(ExportRow(
            user_id=summary.user_id,
            developer=summary.name,
            department=summary.department,
            bucket=TOTAL_BUCKET,
            hours=summary.total_hours,
            pending_hours=summary.pending_hours,
            hourly_rate=summary.hourly_rate,
            amount=summary.amount,
        ))
    return table


class ReportService:
    """Loads users and entries for a period and runs the aggregations."""

    def __init__(self, entries: Repository | None = None, users: Repository | None = None) -> None:
        self.entries = entries or SQLAlchemyRepository(TimeLog)
        self.users = users or SQLAlchemyRepository(User)

    def _entries_in(self, period: ReportPeriod, **filters) -> list[TimeLog]:
        return self.entries.find(
            date__gte=period.start,
            date__lte=period.end,
            order_by=("date", "created_at"),
            **filters,
        )

    def roster(self) -> list[User]:
        return self.users.find(role__in=sorted(TIME_LOGGING_ROLES), order_by=("name",))

    def generate_summary(self, year: int, month: int, half: str = HALF_FULL, scope: Scope | None = None) -> list[dict]:
        """Per-developer summaries for the period, sorted by name.

        Under a SelfScope only the caller's own summary is returned.
        """
        period = ReportPeriod(year, month, half)
        filters = {"user_id": scope.user_id} if isinstance(scope, SelfScope) else {}
        entries = self._entries_in(period, **filters)
        owner_ids = {e.user_id for e in entries}
        users = self.users.find(id__in=sorted(owner_ids)) if owner_ids else []
        summaries = summarize_by_developer(entries, period, users)
        return [
            s.to_dict()
            for s in sorted(summaries.values(), key=lambda s: (s.name.lower(), s.user_id))
        ]

    def generate_export(self, year: int, month: int, half: str = HALF_FULL) -> ExportTable:
        """Export over the time-logging roster and all live entries in the period."""
        period = ReportPeriod(year, month, half)
        roster = self.roster()
        entries = self._entries_in(period)

        known = {u.id for u in roster}
        missing = sorted({e.user_id for e in entries} - known)
        if missing:
            roster.extend(self.users.find(id__in=missing))

        table = build_export(period, roster, entries)
        logger.info(
            "Export generated for %s",
            period.label,
            extra={"operation": "export", "rows": len(table.rows)},
        )
        return table


def generate_export(year: int, month: int, half: str = HALF_FULL) -> ExportTable:
    return ReportService().generate_export(year, month, half)


# ── Serialisers ──────────────────────────────────────────────────────────────


def _row_values(table: ExportTable, row: ExportRow) -> list:
    return [
        row.developer,
        row.department or "",
        table.period.range_label,
        row.bucket,
        _round(row.hours),
        "" if row.pending_hours is None else _round(row.pending_hours),
        "" if row.hourly_rate is None else _round(row.hourly_rate),
        "" if row.amount is None else _round(row.amount),
    ]


def export_table_csv(table: ExportTable) -> str:
    """Render the export as CSV text with a trailing grand-total line."""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(EXPORT_COLUMNS)
    for row in table.rows:
        writer.writerow(_row_values(table, row))
    writer.writerow([
        "GRAND TOTAL", "", table.period.range_label, "",
        _round(table.grand_total_hours), "", "", _round(table.grand_total_amount),
    ])
    return buf.getvalue()


def export_table_xlsx(table: ExportTable) -> io.BytesIO:
    """
    Render the export as a styled Excel workbook.
    Returns a BytesIO buffer ready for Flask send_file.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Timesheet Report"

    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(EXPORT_COLUMNS))
    ws["A1"] = f"Timesheet Report — {table.period.label} ({table.period.range_label})"
    ws["A1"].font = Font(size=14, bold=True)
    ws["A2"] = f"Generated: {table.generated_at.strftime('%Y-%m-%d %H:%M UTC')}"
    ws["A2"].font = Font(size=10, italic=True, color="666666")

    header_row = 4
    for col, header in enumerate(EXPORT_COLUMNS, 1):
        cell = ws.cell(row=header_row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center")

    row_idx = header_row
    for row in table.rows:
        row_idx += 1
        for col, value in enumerate(_row_values(table, row), 1):
            cell = ws.cell(row=row_idx, column=col, value=value)
            cell.border = THIN_BORDER
            if row.is_total:
                cell.font = TOTAL_FONT
                cell.fill = TOTAL_FILL

    row_idx += 2
    ws.cell(row=row_idx, column=1, value="GRAND TOTAL").font = TOTAL_FONT
    ws.cell(row=row_idx, column=5, value=_round(table.grand_total_hours)).font = TOTAL_FONT
    ws.cell(row=row_idx, column=8, value=_round(table.grand_total_amount)).font = TOTAL_FONT

    for col, width in enumerate((28, 18, 26, 16, 16, 16, 14, 14), 1):
        ws.column_dimensions[get_column_letter(col)].width = width
    ws.freeze_panes = ws.cell(row=header_row + 1, column=1)

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf
