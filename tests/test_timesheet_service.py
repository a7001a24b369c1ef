"""
Tests for TimeLogService — entry validation, idempotent create, the
approval workflow, owner edits, soft delete and tombstone purge.
"""

import math
from datetime import date, timedelta

import pytest

from statusdesk.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from statusdesk.core.scope import AllScope, SelfScope
from statusdesk.models import db, utcnow
from statusdesk.models.activity import ActivityLog
from statusdesk.models.timesheet import TimeLog
from statusdesk.services.timesheet_service import TimeLogService, validate_entry_fields


def _create(svc, user, **overrides):
    data = {
        "date": "2026-02-01",
        "hours": 4,
        "summary": "Fixed login bug",
        "tickets": ["JPM-55"],
        "work_type": "bug",
    }
    data.update(overrides)
    return svc.create_entry(user.id, **data)


# ═════════════════════════════════════════════════════════════════════════════
# Field validation
# ═════════════════════════════════════════════════════════════════════════════


class TestValidateEntryFields:
    def test_valid_entry_is_normalised(self):
        cleaned = validate_entry_fields({
            "date": "2026-02-01",
            "hours": 4,
            "summary": "  Fixed login bug  ",
            "tickets": [" JPM-55 "],
        })
        assert cleaned["date"] == date(2026, 2, 1)
        assert cleaned["hours"] == 4.0
        assert cleaned["summary"] == "Fixed login bug"
        assert cleaned["tickets"] == ["JPM-55"]
        assert cleaned["work_type"] == "feature"

    @pytest.mark.parametrize("hours", [0, -1, 25, 24.01, True, "4", math.nan, math.inf, None])
    def test_rejects_bad_hours(self, hours):
        with pytest.raises(ValidationError) as exc:
            validate_entry_fields({"date": "2026-02-01", "hours": hours, "summary": "x"})
        assert "hours" in exc.value.details

    def test_accepts_boundary_hours(self):
        assert validate_entry_fields({"date": "2026-02-01", "hours": 24, "summary": "x"})["hours"] == 24.0
        assert validate_entry_fields({"date": "2026-02-01", "hours": 0.25, "summary": "x"})["hours"] == 0.25

    @pytest.mark.parametrize("summary", ["", "   ", None, 42])
    def test_rejects_blank_summary(self, summary):
        with pytest.raises(ValidationError) as exc:
            validate_entry_fields({"date": "2026-02-01", "hours": 1, "summary": summary})
        assert "summary" in exc.value.details

    @pytest.mark.parametrize("value", ["2026-02-30", "01/02/2026", "", None])
    def test_rejects_bad_dates(self, value):
        with pytest.raises(ValidationError) as exc:
            validate_entry_fields({"date": value, "hours": 1, "summary": "x"})
        assert "date" in exc.value.details

    def test_rejects_unknown_work_type(self):
        with pytest.raises(ValidationError) as exc:
            validate_entry_fields({"date": "2026-02-01", "hours": 1, "summary": "x", "work_type": "napping"})
        assert "work_type" in exc.value.details

    @pytest.mark.parametrize("tickets", ["JPM-55", ["ok", ""], [1, 2]])
    def test_rejects_bad_tickets(self, tickets):
        with pytest.raises(ValidationError):
            validate_entry_fields({"date": "2026-02-01", "hours": 1, "summary": "x", "tickets": tickets})

    def test_collects_every_field_error(self):
        with pytest.raises(ValidationError) as exc:
            validate_entry_fields({"date": "nope", "hours": 0, "summary": ""})
        assert {"date", "hours", "summary"} <= set(exc.value.details)

    def test_partial_only_checks_supplied_fields(self):
        assert validate_entry_fields({"hours": 2}, partial=True) == {"hours": 2.0}
        assert validate_entry_fields({"unknown": 1}, partial=True) == {}


# ═════════════════════════════════════════════════════════════════════════════
# Create
# ═════════════════════════════════════════════════════════════════════════════


class TestCreateEntry:
    def test_creates_pending_entry_with_owner_snapshot(self, developer):
        entry = _create(TimeLogService(), developer)

        assert entry.status == "pending"
        assert entry.user_id == developer.id
        assert entry.user_name == "Alice Dev"
        assert entry.user_role == "developer"
        assert entry.approved_by is None
        assert entry.hours == 4.0
        assert entry.tickets == ["JPM-55"]
        assert entry.work_type == "bug"

    def test_records_activity(self, developer):
        entry = _create(TimeLogService(), developer)
        log = ActivityLog.query.filter_by(target_id=entry.id).one()
        assert log.action == "created timesheet"
        assert log.target_type == "timesheet"
        assert log.user_id == developer.id

    def test_unknown_user_is_rejected(self):
        with pytest.raises(AuthenticationError):
            TimeLogService().create_entry("no-such-user", "2026-02-01", 1, "x")

    def test_finance_cannot_log_time(self, finance_user):
        with pytest.raises(AuthorizationError):
            _create(TimeLogService(), finance_user)

    def test_manager_and_leadership_can_log_time(self, manager, leadership):
        svc = TimeLogService()
        assert _create(svc, manager).user_role == "manager"
        assert _create(svc, leadership).user_role == "leadership"

    def test_invalid_entry_writes_nothing(self, developer):
        with pytest.raises(ValidationError):
            _create(TimeLogService(), developer, hours=25)
        assert TimeLog.query.count() == 0
        assert ActivityLog.query.count() == 0

    def test_idempotency_key_replays_first_entry(self, developer):
        svc = TimeLogService()
        first = _create(svc, developer, idempotency_key="k-1")
        second = _create(svc, developer, idempotency_key="k-1", hours=7)

        assert second.id == first.id
        assert second.hours == 4.0
        assert TimeLog.query.count() == 1

    def test_idempotency_key_is_per_user(self, developer, developer_b):
        svc = TimeLogService()
        a = _create(svc, developer, idempotency_key="shared")
        b = _create(svc, developer_b, idempotency_key="shared")
        assert a.id != b.id

    def test_blank_idempotency_key_is_ignored(self, developer):
        svc = TimeLogService()
        first = _create(svc, developer, idempotency_key="  ")
        second = _create(svc, developer, idempotency_key="  ", hours=2)

        assert first.id != second.id
        assert first.idempotency_key is None
        assert TimeLog.query.count() == 2

    def test_idempotency_key_is_stripped_before_lookup(self, developer):
        svc = TimeLogService()
        first = _create(svc, developer, idempotency_key=" k-2 ")
        assert svc.get_by_idempotency_key(developer.id, "k-2").id == first.id
        assert _create(svc, developer, idempotency_key="k-2", hours=9).id == first.id

    def test_key_of_deleted_entry_is_not_replayed(self, developer):
        svc = TimeLogService()
        entry = _create(svc, developer, idempotency_key="k-3")
        svc.delete_entry(entry.id, developer.id)

        with pytest.raises(ConflictError):
            _create(svc, developer, idempotency_key="k-3")
        assert svc.list_entries(SelfScope(developer.id)) == []

    def test_without_key_every_call_creates(self, developer):
        svc = TimeLogService()
        _create(svc, developer)
        _create(svc, developer)
        assert TimeLog.query.count() == 2


# ═════════════════════════════════════════════════════════════════════════════
# Read
# ═════════════════════════════════════════════════════════════════════════════


class TestReadEntries:
    def test_developer_scope_hides_other_users(self, developer, developer_b):
        svc = TimeLogService()
        mine = _create(svc, developer)
        theirs = _create(svc, developer_b)

        listed = svc.list_entries(SelfScope(developer.id))
        assert [e.id for e in listed] == [mine.id]

        with pytest.raises(NotFoundError):
            svc.get_entry(theirs.id, SelfScope(developer.id))

    def test_developer_asking_for_other_user_gets_nothing(self, developer, developer_b):
        svc = TimeLogService()
        _create(svc, developer_b)
        assert svc.list_entries(SelfScope(developer.id), user_id=developer_b.id) == []

    def test_all_scope_filters(self, developer, developer_b):
        svc = TimeLogService()
        _create(svc, developer, date="2026-02-01")
        _create(svc, developer, date="2026-02-10")
        _create(svc, developer_b, date="2026-02-05")

        assert len(svc.list_entries(AllScope())) == 3
        assert len(svc.list_entries(AllScope(), user_id=developer.id)) == 2
        ranged = svc.list_entries(AllScope(), start_date="2026-02-02", end_date="2026-02-10")
        assert {e.date for e in ranged} == {date(2026, 2, 5), date(2026, 2, 10)}

    def test_sorted_newest_date_first(self, developer):
        svc = TimeLogService()
        _create(svc, developer, date="2026-02-01")
        _create(svc, developer, date="2026-02-03")
        _create(svc, developer, date="2026-02-02")
        dates = [e.date.day for e in svc.list_entries(AllScope())]
        assert dates == [3, 2, 1]

    def test_status_filter_validated(self, developer):
        with pytest.raises(ValidationError):
            TimeLogService().list_entries(AllScope(), status="archived")

    def test_bad_date_filter_rejected(self, developer):
        with pytest.raises(ValidationError):
            TimeLogService().list_entries(AllScope(), start_date="yesterday")


# ═════════════════════════════════════════════════════════════════════════════
# Approval workflow
# ═════════════════════════════════════════════════════════════════════════════


class TestSetStatus:
    def test_manager_approves_with_comment(self, manager, developer):
        svc = TimeLogService()
        entry = _create(svc, developer)

        decided = svc.set_status(entry.id, "approved", manager.id, comment="LGTM")

        assert decided.status == "approved"
        assert decided.approved_by == manager.id
        assert decided.manager_comment == "LGTM"
        log = ActivityLog.query.filter_by(action="approved timesheet").one()
        assert log.user_id == manager.id
        assert log.target_id == entry.id

    def test_reject(self, manager, developer):
        svc = TimeLogService()
        entry = _create(svc, developer)
        assert svc.set_status(entry.id, "rejected", manager.id).status == "rejected"

    def test_decided_entry_cannot_be_decided_again(self, manager, developer):
        svc = TimeLogService()
        entry = _create(svc, developer)
        svc.set_status(entry.id, "approved", manager.id)

        with pytest.raises(InvalidStateTransition) as exc:
            svc.set_status(entry.id, "rejected", manager.id)
        assert exc.value.current == "approved"
        assert db.session.get(TimeLog, entry.id).status == "approved"

    def test_only_managers_decide(self, developer, leadership):
        svc = TimeLogService()
        entry = _create(svc, developer)
        for user in (developer, leadership):
            with pytest.raises(AuthorizationError):
                svc.set_status(entry.id, "approved", user.id)

    @pytest.mark.parametrize("status", ["pending", "done", ""])
    def test_target_must_be_a_decision(self, manager, developer, status):
        svc = TimeLogService()
        entry = _create(svc, developer)
        with pytest.raises(ValidationError):
            svc.set_status(entry.id, status, manager.id)

    def test_unknown_entry(self, manager):
        with pytest.raises(NotFoundError):
            TimeLogService().set_status("missing", "approved", manager.id)

    def test_blank_comment_is_not_stored(self, manager, developer):
        svc = TimeLogService()
        entry = _create(svc, developer)
        assert svc.set_status(entry.id, "approved", manager.id, comment="   ").manager_comment is None


# ═════════════════════════════════════════════════════════════════════════════
# Owner edit
# ═════════════════════════════════════════════════════════════════════════════


class TestUpdateEntry:
    def test_owner_edits_pending_entry(self, developer):
        svc = TimeLogService()
        entry = _create(svc, developer)
        updated = svc.update_entry(entry.id, developer.id, {"hours": 6, "summary": "Fixed login + logout"})
        assert updated.hours == 6.0
        assert updated.summary == "Fixed login + logout"
        assert updated.status == "pending"

    def test_status_cannot_be_edited(self, developer):
        svc = TimeLogService()
        entry = _create(svc, developer)
        with pytest.raises(ValidationError):
            svc.update_entry(entry.id, developer.id, {"status": "approved"})

    def test_approved_entry_is_frozen(self, manager, developer):
        svc = TimeLogService()
        entry = _create(svc, developer)
        svc.set_status(entry.id, "approved", manager.id)
        with pytest.raises(InvalidStateTransition):
            svc.update_entry(entry.id, developer.id, {"hours": 1})

    def test_other_users_cannot_edit(self, manager, developer):
        svc = TimeLogService()
        entry = _create(svc, developer)
        with pytest.raises(AuthorizationError):
            svc.update_entry(entry.id, manager.id, {"hours": 1})

    def test_invalid_change_rejected(self, developer):
        svc = TimeLogService()
        entry = _create(svc, developer)
        with pytest.raises(ValidationError):
            svc.update_entry(entry.id, developer.id, {"hours": 0})


# ═════════════════════════════════════════════════════════════════════════════
# Delete + tombstones
# ═════════════════════════════════════════════════════════════════════════════


class TestDeleteEntry:
    def test_owner_deletes_pending_entry(self, developer):
        svc = TimeLogService()
        entry = _create(svc, developer)
        svc.delete_entry(entry.id, developer.id)

        assert svc.list_entries(AllScope()) == []
        with pytest.raises(NotFoundError):
            svc.get_entry(entry.id, AllScope())
        log = ActivityLog.query.filter_by(action="deleted timesheet").one()
        assert log.details["summary"] == "Fixed login bug"

    def test_owner_cannot_delete_decided_entry(self, manager, developer):
        svc = TimeLogService()
        entry = _create(svc, developer)
        svc.set_status(entry.id, "approved", manager.id)
        with pytest.raises(AuthorizationError):
            svc.delete_entry(entry.id, developer.id)

    def test_manager_deletes_any_entry(self, manager, developer):
        svc = TimeLogService()
        entry = _create(svc, developer)
        svc.set_status(entry.id, "approved", manager.id)
        svc.delete_entry(entry.id, manager.id)
        assert svc.list_entries(AllScope()) == []

    def test_developer_cannot_delete_others(self, developer, developer_b):
        svc = TimeLogService()
        entry = _create(svc, developer_b)
        with pytest.raises(AuthorizationError):
            svc.delete_entry(entry.id, developer.id)

    def test_unknown_and_already_deleted(self, manager, developer):
        svc = TimeLogService()
        with pytest.raises(NotFoundError):
            svc.delete_entry("missing", manager.id)
        entry = _create(svc, developer)
        svc.delete_entry(entry.id, manager.id)
        with pytest.raises(NotFoundError):
            svc.delete_entry(entry.id, manager.id)

    def test_deleted_entry_cannot_be_approved(self, manager, developer):
        svc = TimeLogService()
        entry = _create(svc, developer)
        svc.delete_entry(entry.id, developer.id)
        with pytest.raises(NotFoundError):
            svc.set_status(entry.id, "approved", manager.id)

    def test_purge_removes_old_tombstones_only(self, developer):
        svc = TimeLogService(tombstone_days=60)
        old = _create(svc, developer)
        recent = _create(svc, developer)
        old_id, recent_id = old.id, recent.id
        svc.delete_entry(old_id, developer.id)
        svc.delete_entry(recent_id, developer.id)
        db.session.get(TimeLog, old_id).deleted_at = utcnow() - timedelta(days=61)
        db.session.commit()

        assert svc.purge_tombstones() == 1
        assert db.session.get(TimeLog, old_id) is None
        assert db.session.get(TimeLog, recent_id) is not None
