"""
Activity log — recording, the retention-window read floor, purge, and
the /activity endpoints.
"""

from datetime import timedelta

import pytest

from statusdesk.core.exceptions import AuthenticationError, ValidationError
from statusdesk.models import db, utcnow
from statusdesk.models.activity import ActivityLog
from statusdesk.services.activity_service import ActivityLogService


def _backdate(entry, days):
    entry.timestamp = utcnow() - timedelta(days=days)
    db.session.commit()


class TestRecord:
    def test_snapshots_actor(self, developer):
        log = ActivityLogService().record(developer.id, "created timesheet", target_type="timesheet",
                                          target_id="t-1", details={"hours": 4})
        db.session.commit()
        assert log.user_name == "Alice Dev"
        assert log.user_role == "developer"
        assert log.details == {"hours": 4}
        assert log.timestamp is not None

    def test_unknown_actor(self):
        with pytest.raises(AuthenticationError):
            ActivityLogService().record("ghost", "created timesheet")

    @pytest.mark.parametrize("action", ["", "   ", None])
    def test_action_required(self, developer, action):
        with pytest.raises(ValidationError):
            ActivityLogService().record(developer.id, action)

    def test_target_type_constrained(self, developer):
        with pytest.raises(ValidationError):
            ActivityLogService().record(developer.id, "poked", target_type="spaceship")

    def test_to_dict_hides_request_metadata(self, developer):
        log = ActivityLogService().record(developer.id, "logged in", ip_address="10.0.0.1", user_agent="curl")
        db.session.commit()
        data = log.to_dict()
        assert "ip_address" not in data
        assert "user_agent" not in data
        assert data["action"] == "logged in"


class TestQuery:
    def test_newest_first(self, developer):
        svc = ActivityLogService()
        old = svc.record(developer.id, "first")
        db.session.commit()
        _backdate(old, 2)
        svc.record(developer.id, "second")
        db.session.commit()

        assert [a.action for a in svc.query(actor_id=developer.id)] == ["second", "first"]

    def test_entries_older_than_window_are_invisible(self, developer):
        svc = ActivityLogService(retention_days=60)
        inside = svc.record(developer.id, "inside")
        outside = svc.record(developer.id, "outside")
        db.session.commit()
        _backdate(inside, 59)
        _backdate(outside, 61)

        assert [a.action for a in svc.query()] == ["inside"]

    def test_start_before_window_is_clamped(self, developer):
        svc = ActivityLogService(retention_days=60)
        outside = svc.record(developer.id, "outside")
        db.session.commit()
        _backdate(outside, 90)
        assert svc.query(start=utcnow() - timedelta(days=365)) == []

    def test_filters(self, developer, developer_b):
        svc = ActivityLogService()
        svc.record(developer.id, "created timesheet")
        svc.record(developer.id, "deleted timesheet")
        svc.record(developer_b.id, "created timesheet")
        db.session.commit()

        assert len(svc.query(actor_id=developer.id)) == 2
        assert len(svc.query(action="created timesheet")) == 2
        assert len(svc.query(actor_id=developer_b.id, action="deleted timesheet")) == 0

    def test_limit_and_offset_are_clamped(self, developer):
        svc = ActivityLogService()
        for i in range(3):
            svc.record(developer.id, f"action {i}")
        db.session.commit()

        assert len(svc.query(limit=0)) == 3        # 0 → default
        assert len(svc.query(limit=-5)) == 1
        assert len(svc.query(limit=2, offset=-1)) == 2
        assert len(svc.query(limit=10_000)) == 3

    def test_purge_expired(self, developer):
        svc = ActivityLogService(retention_days=60)
        keep = svc.record(developer.id, "keep")
        drop = svc.record(developer.id, "drop")
        db.session.commit()
        _backdate(keep, 10)
        _backdate(drop, 61)

        assert svc.purge_expired() == 1
        assert [a.action for a in ActivityLog.query.all()] == ["keep"]


class TestActivityEndpoints:
    def test_developer_sees_only_own(self, client, auth_headers, developer, developer_b):
        svc = ActivityLogService()
        svc.record(developer.id, "mine")
        svc.record(developer_b.id, "theirs")
        db.session.commit()

        res = client.get("/api/v1/activity", headers=auth_headers(developer))
        assert res.status_code == 200
        body = res.get_json()
        assert [a["action"] for a in body["items"]] == ["mine"]
        assert body["retention_days"] == 60

    def test_developer_cannot_widen_scope(self, client, auth_headers, developer, developer_b):
        headers = auth_headers(developer)
        assert client.get("/api/v1/activity?scope=all", headers=headers).status_code == 403
        assert client.get(f"/api/v1/activity?user_id={developer_b.id}", headers=headers).status_code == 403

    def test_manager_sees_all(self, client, auth_headers, manager, developer, developer_b):
        svc = ActivityLogService()
        svc.record(developer.id, "a")
        svc.record(developer_b.id, "b")
        db.session.commit()
        headers = auth_headers(manager)

        res = client.get("/api/v1/activity?scope=all", headers=headers)
        assert {a["action"] for a in res.get_json()["items"]} == {"a", "b"}

        res = client.get(f"/api/v1/activity?user_id={developer_b.id}", headers=headers)
        assert [a["action"] for a in res.get_json()["items"]] == ["b"]

        res = client.get("/api/v1/activity", headers=headers)
        assert res.get_json()["items"] == []

    def test_me(self, client, auth_headers, developer):
        ActivityLogService().record(developer.id, "mine")
        db.session.commit()
        res = client.get("/api/v1/activity/me", headers=auth_headers(developer))
        assert [a["action"] for a in res.get_json()["items"]] == ["mine"]

    def test_limit_out_of_range(self, client, auth_headers, developer):
        res = client.get("/api/v1/activity?limit=1000", headers=auth_headers(developer))
        assert res.status_code == 400
