"""
User administration — user_service rules and the /users endpoints.
"""

import pytest

from statusdesk.core.exceptions import AuthorizationError, ConflictError, ValidationError
from statusdesk.models.activity import ActivityLog
from statusdesk.services import user_service

NEW_USER = {
    "name": "Dana Dev",
    "email": "Dana@Example.com",
    "password": "long-enough-pw",
    "role": "developer",
    "hourly_rate": 45,
    "department": "Backend",
}

BANK = {"account_name": "Alice Dev", "bank_name": "Deutsche Bank", "account_number": "DE89370400440532013000"}


class TestUserService:
    def test_create_normalises_email(self, manager):
        user = user_service.create_user(NEW_USER, actor_id=manager.id)
        assert user.email == "dana@example.com"
        assert user.hourly_rate == 45.0
        assert user.password_hash != NEW_USER["password"]
        assert ActivityLog.query.filter_by(action="created user", target_id=user.id).count() == 1

    def test_duplicate_email(self, manager, developer):
        with pytest.raises(ConflictError):
            user_service.create_user({**NEW_USER, "email": "ALICE@example.com"})

    @pytest.mark.parametrize("field", ["name", "email", "password", "role"])
    def test_required_fields(self, field):
        with pytest.raises(ValidationError) as exc:
            user_service.create_user({**NEW_USER, field: ""})
        assert field in exc.value.details

    @pytest.mark.parametrize("overrides", [
        {"role": "wizard"},
        {"email": "not-an-email"},
        {"password": "short"},
        {"hourly_rate": -1},
        {"department": "Sales"},
        {"daily_hours_target": 25},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            user_service.create_user({**NEW_USER, **overrides})

    def test_update(self, manager, developer):
        user = user_service.update_user(developer.id, {"hourly_rate": 55, "role": "leadership"}, actor_id=manager.id)
        assert user.hourly_rate == 55.0
        assert user.role == "leadership"

    def test_update_ignores_unknown_fields(self, developer):
        with pytest.raises(ValidationError):
            user_service.update_user(developer.id, {"password_hash": "x"})

    def test_cannot_delete_self(self, manager):
        with pytest.raises(AuthorizationError):
            user_service.delete_user(manager.id, manager.id)

    def test_cannot_delete_super_admin(self, manager, developer):
        with pytest.raises(AuthorizationError):
            user_service.delete_user(manager.id, developer.id)

    def test_list_by_role(self, manager, developer, developer_b, finance_user):
        assert [u.name for u in user_service.list_users(role="developer")] == ["Alice Dev", "Bob Dev"]
        assert len(user_service.list_users()) == 4


class TestBankDetails:
    def test_update_and_clear(self, finance_user, developer):
        user = user_service.update_bank_details(
            developer.id, {**BANK, "branch_code": " 370 ", "currency": ""}, actor_id=finance_user.id,
        )
        assert user.has_bank_details
        assert user.bank_details == {**BANK, "branch_code": "370"}
        assert "bank_details" not in user.to_dict()

        user = user_service.clear_bank_details(developer.id, actor_id=finance_user.id)
        assert user.bank_details is None
        assert not user.has_bank_details
        assert sorted(a.action for a in ActivityLog.query) == ["cleared bank details", "updated bank details"]

    def test_account_number_stays_out_of_activity(self, finance_user, developer):
        user_service.update_bank_details(developer.id, BANK, actor_id=finance_user.id)
        entry = ActivityLog.query.one()
        assert BANK["account_number"] not in str(entry.details)

    @pytest.mark.parametrize(
        "data",
        [
            {"bank_name": "X", "account_number": "1"},
            {**BANK, "account_number": "   "},
            {**BANK, "iban_checksum": "00"},
            {**BANK, "country": 49},
        ],
    )
    def test_invalid_details(self, developer, data):
        with pytest.raises(ValidationError):
            user_service.update_bank_details(developer.id, data)
        assert developer.bank_details is None


class TestUserEndpoints:
    def test_manager_creates_user(self, client, auth_headers, manager):
        res = client.post("/api/v1/users", json=NEW_USER, headers=auth_headers(manager))
        assert res.status_code == 201
        assert res.get_json()["email"] == "dana@example.com"

    def test_duplicate_is_409(self, client, auth_headers, manager, developer):
        res = client.post("/api/v1/users", json={**NEW_USER, "email": "alice@example.com"},
                          headers=auth_headers(manager))
        assert res.status_code == 409
        assert res.get_json()["details"]["field"] == "email"

    def test_developer_cannot_create(self, client, auth_headers, developer):
        assert client.post("/api/v1/users", json=NEW_USER, headers=auth_headers(developer)).status_code == 403

    def test_list_roles(self, client, auth_headers, developer, finance_user):
        assert client.get("/api/v1/users", headers=auth_headers(developer)).status_code == 403
        res = client.get("/api/v1/users?role=developer", headers=auth_headers(finance_user))
        assert [u["id"] for u in res.get_json()] == [developer.id]

    def test_get_self_or_privileged(self, client, auth_headers, developer, developer_b):
        assert client.get(f"/api/v1/users/{developer.id}", headers=auth_headers(developer)).status_code == 200
        assert client.get(f"/api/v1/users/{developer_b.id}", headers=auth_headers(developer)).status_code == 403

    def test_patch_and_delete(self, client, auth_headers, manager, developer):
        headers = auth_headers(manager)
        res = client.patch(f"/api/v1/users/{developer.id}", json={"hourly_rate": 60}, headers=headers)
        assert res.status_code == 200
        assert res.get_json()["hourly_rate"] == 60

        assert client.delete(f"/api/v1/users/{developer.id}", headers=headers).status_code == 200
        assert client.get(f"/api/v1/users/{developer.id}", headers=headers).status_code == 404

    def test_delete_unknown(self, client, auth_headers, manager):
        assert client.delete("/api/v1/users/nobody", headers=auth_headers(manager)).status_code == 404

    def test_bank_details_endpoints(self, client, auth_headers, finance_user, developer):
        url = f"/api/v1/users/{developer.id}/bank-details"
        headers = auth_headers(finance_user)

        res = client.put(url, json=BANK, headers=headers)
        assert res.status_code == 200
        assert res.get_json()["has_bank_details"] is True

        res = client.get(url, headers=headers)
        assert res.get_json()["bank_details"]["bank_name"] == "Deutsche Bank"
        assert "bank_details" not in client.get(f"/api/v1/users/{developer.id}", headers=headers).get_json()

        res = client.delete(url, headers=headers)
        assert res.status_code == 200
        assert res.get_json() == {
            "user_id": developer.id,
            "user_name": "Alice Dev",
            "has_bank_details": False,
            "bank_details": None,
        }

    def test_bank_details_role_gate(self, client, auth_headers, developer):
        url = f"/api/v1/users/{developer.id}/bank-details"
        res = client.put(url, json=BANK, headers=auth_headers(developer))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"
        assert client.get(url, headers=auth_headers(developer)).status_code == 403

    def test_bank_details_unknown_user(self, client, auth_headers, manager):
        res = client.put("/api/v1/users/nobody/bank-details", json=BANK, headers=auth_headers(manager))
        assert res.status_code == 404
