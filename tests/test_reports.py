"""
Tests for the billing report engine and its endpoints.

Covers:
  - ReportPeriod half-month boundaries (P1 = 1..15, P2 = 16..end)
  - summarize_by_developer: only approved hours count toward totals
  - build_export: zero TOTAL row for idle developers, non-roster owners kept
  - CSV / XLSX serialisation (openpyxl round-trip of headers + totals)
  - /reports/summary scoping and /reports/export role gate + formats
"""

import csv
import io
from datetime import date

import pytest
from openpyxl import load_workbook

from statusdesk.core.exceptions import ValidationError
from statusdesk.core.scope import SelfScope
from statusdesk.services.report_service import (
    EXPORT_COLUMNS,
    ReportPeriod,
    ReportService,
    export_table_csv,
    export_table_xlsx,
)
from statusdesk.services.timesheet_service import TimeLogService


def _log(user, day, hours, work_type="feature", approve_by=None, reject_by=None):
    svc = TimeLogService()
    entry = svc.create_entry(user.id, day, hours, f"{work_type} work", work_type=work_type)
    if approve_by is not None:
        svc.set_status(entry.id, "approved", approve_by.id)
    elif reject_by is not None:
        svc.set_status(entry.id, "rejected", reject_by.id)
    return entry


# ── Period ──────────────────────────────────────────────────────────────────


class TestReportPeriod:
    def test_halves(self):
        p1, p2 = ReportPeriod.halves_of(2026, 2)
        assert (p1.start, p1.end) == (date(2026, 2, 1), date(2026, 2, 15))
        assert (p2.start, p2.end) == (date(2026, 2, 16), date(2026, 2, 28))

    def test_leap_february(self):
        assert ReportPeriod(2028, 2, "P2").end == date(2028, 2, 29)

    def test_full_month(self):
        period = ReportPeriod(2026, 1)
        assert (period.start, period.end) == (date(2026, 1, 1), date(2026, 1, 31))
        assert period.label == "2026-01"
        assert ReportPeriod(2026, 2, "P1").label == "2026-02 P1"

    def test_contains(self):
        p1 = ReportPeriod(2026, 2, "P1")
        assert p1.contains(date(2026, 2, 15))
        assert not p1.contains(date(2026, 2, 16))

    @pytest.mark.parametrize("year,month,half", [(2026, 13, "full"), (2026, 0, "full"), (1999, 1, "full"),
                                                 (2026, 1, "P3")])
    def test_invalid(self, year, month, half):
        with pytest.raises(ValidationError):
            ReportPeriod(year, month, half)


# ── Summaries ───────────────────────────────────────────────────────────────


class TestSummary:
    def test_only_approved_hours_count(self, manager, developer):
        _log(developer, "2026-02-02", 5, approve_by=manager)
        _log(developer, "2026-02-03", 3)

        [summary] = ReportService().generate_summary(2026, 2)
        assert summary["total_hours"] == 5
        assert summary["pending_hours"] == 3
        assert summary["amount"] == 250.0   # 5h × 50
        assert summary["by_work_type"] == {"feature": 5}
        assert len(summary["entries"]) == 2

    def test_rejected_hours_tracked_separately(self, manager, developer):
        _log(developer, "2026-02-02", 2, reject_by=manager)
        [summary] = ReportService().generate_summary(2026, 2)
        assert summary["total_hours"] == 0
        assert summary["rejected_hours"] == 2

    def test_half_month_window(self, manager, developer):
        _log(developer, "2026-02-15", 4, approve_by=manager)
        _log(developer, "2026-02-16", 6, approve_by=manager)

        [p1] = ReportService().generate_summary(2026, 2, "P1")
        [p2] = ReportService().generate_summary(2026, 2, "P2")
        assert p1["total_hours"] == 4
        assert p2["total_hours"] == 6

    def test_deleted_entries_ignored(self, manager, developer):
        entry = _log(developer, "2026-02-02", 5, approve_by=manager)
        TimeLogService().delete_entry(entry.id, manager.id)
        assert ReportService().generate_summary(2026, 2) == []

    def test_self_scope(self, manager, developer, developer_b):
        _log(developer, "2026-02-02", 5, approve_by=manager)
        _log(developer_b, "2026-02-02", 7, approve_by=manager)

        summaries = ReportService().generate_summary(2026, 2, scope=SelfScope(developer.id))
        assert [s["user_id"] for s in summaries] == [developer.id]

    def test_live_rate_is_used(self, manager, developer):
        from statusdesk.models import db
        _log(developer, "2026-02-02", 2, approve_by=manager)
        developer.hourly_rate = 75.0
        db.session.commit()
        [summary] = ReportService().generate_summary(2026, 2)
        assert summary["amount"] == 150.0


# ── Export table ────────────────────────────────────────────────────────────


class TestExport:
    def test_roster_with_idle_developer(self, manager, developer, developer_b):
        _log(developer, "2026-02-02", 6, "bug", approve_by=manager)
        _log(developer, "2026-02-03", 4, "feature", approve_by=manager)

        table = ReportService().generate_export(2026, 2)

        alice = table.total_for(developer.id)
        bob = table.total_for(developer_b.id)
        assert alice.hours == 10
        assert alice.amount == 500.0
        assert bob.hours == 0
        assert bob.amount == 0
        buckets = [r.bucket for r in table.rows if r.user_id == developer.id]
        assert buckets == ["feature", "bug", "TOTAL"]

    def test_finance_users_not_in_roster(self, manager, developer, finance_user):
        table = ReportService().generate_export(2026, 2)
        assert table.total_for(finance_user.id) is None
        assert table.total_for(developer.id) is not None

    def test_rows_sorted_by_name(self, manager, developer, developer_b, leadership):
        table = ReportService().generate_export(2026, 2)
        names = [r.developer for r in table.totals]
        assert names == sorted(names, key=str.lower)

    def test_grand_totals(self, manager, developer, developer_b):
        _log(developer, "2026-02-02", 10, approve_by=manager)
        _log(developer_b, "2026-02-02", 5, approve_by=manager)
        _log(developer_b, "2026-02-03", 3)

        table = ReportService().generate_export(2026, 2)
        assert table.grand_total_hours == 15
        assert table.grand_total_amount == 10 * 50 + 5 * 40
        assert table.total_for(developer_b.id).pending_hours == 3

    def test_csv(self, manager, developer):
        _log(developer, "2026-02-02", 10, approve_by=manager)
        text = export_table_csv(ReportService().generate_export(2026, 2, "P1"))
        rows = list(csv.reader(io.StringIO(text)))

        assert rows[0] == list(EXPORT_COLUMNS)
        assert rows[-1][0] == "GRAND TOTAL"
        assert float(rows[-1][4]) == 10.0
        assert rows[1][2] == "2026-02-01 to 2026-02-15"

    def test_xlsx(self, manager, developer, developer_b):
        _log(developer, "2026-02-02", 10, approve_by=manager)
        table = ReportService().generate_export(2026, 2)

        wb = load_workbook(export_table_xlsx(table))
        ws = wb.active
        assert ws.title == "Timesheet Report"
        assert "2026-02" in ws["A1"].value
        assert [c.value for c in ws[4]] == list(EXPORT_COLUMNS)

        data_end = 4 + len(table.rows)
        assert ws.cell(row=data_end + 2, column=1).value == "GRAND TOTAL"
        assert ws.cell(row=data_end + 2, column=5).value == 10.0
        assert ws.cell(row=data_end + 2, column=8).value == 500.0


# ── Endpoints ───────────────────────────────────────────────────────────────


class TestReportEndpoints:
    def test_summary_requires_month_and_year(self, client, auth_headers, manager):
        res = client.get("/api/v1/reports/summary?year=2026", headers=auth_headers(manager))
        assert res.status_code == 400
        assert "month" in res.get_json()["details"]

    def test_summary_scoped_for_developer(self, client, auth_headers, manager, developer, developer_b):
        _log(developer, "2026-02-02", 5, approve_by=manager)
        _log(developer_b, "2026-02-02", 7, approve_by=manager)

        res = client.get("/api/v1/reports/summary?month=2&year=2026", headers=auth_headers(developer))
        assert res.status_code == 200
        body = res.get_json()
        assert [s["user_id"] for s in body["summaries"]] == [developer.id]
        assert body["period"]["start"] == "2026-02-01"

        res = client.get("/api/v1/reports/summary?month=2&year=2026", headers=auth_headers(manager))
        assert len(res.get_json()["summaries"]) == 2

    def test_export_forbidden_for_developer(self, client, auth_headers, developer):
        res = client.get("/api/v1/reports/export?month=2&year=2026", headers=auth_headers(developer))
        assert res.status_code == 403

    def test_export_json(self, client, auth_headers, manager, developer, developer_b):
        _log(developer, "2026-02-02", 10, approve_by=manager)
        res = client.get("/api/v1/reports/export?month=2&year=2026", headers=auth_headers(manager))
        assert res.status_code == 200
        body = res.get_json()
        totals = {r["developer"]: r["hours"] for r in body["rows"] if r["work_type"] == "TOTAL"}
        assert totals["Alice Dev"] == 10
        assert totals["Bob Dev"] == 0
        assert body["grand_total_hours"] == 10

    def test_export_csv_download(self, client, auth_headers, finance_user, developer):
        res = client.get("/api/v1/reports/export?month=2&year=2026&period=P2&format=csv",
                         headers=auth_headers(finance_user))
        assert res.status_code == 200
        assert res.mimetype == "text/csv"
        assert "Timesheet_Report_2026-02-16_to_2026-02-28.csv" in res.headers["Content-Disposition"]

    def test_export_xlsx_download(self, client, auth_headers, manager, developer):
        res = client.get("/api/v1/reports/export?month=2&year=2026&format=xlsx", headers=auth_headers(manager))
        assert res.status_code == 200
        assert "spreadsheetml" in res.content_type
        wb = load_workbook(io.BytesIO(res.data))
        assert wb.active["A4"].value == EXPORT_COLUMNS[0]

    def test_export_unknown_format(self, client, auth_headers, manager):
        res = client.get("/api/v1/reports/export?month=2&year=2026&format=pdf", headers=auth_headers(manager))
        assert res.status_code == 400
