"""
Visibility scopes for per-user data.

Every read of time logs goes through a scope; services apply it to the
query so callers cannot forget the filter.

    scope = scope_for(user)
    entries = svc.list_entries(scope, status="pending")
"""

from dataclasses import dataclass

from statusdesk.models.auth import GLOBAL_VIEW_ROLES


@dataclass(frozen=True)
class SelfScope:
    """Only records owned by ``user_id``."""

    user_id: str

    def allows(self, owner_id: str) -> bool:
        return owner_id == self.user_id


@dataclass(frozen=True)
class AllScope:
    """Every record."""

    def allows(self, owner_id: str) -> bool:
        return True


Scope = SelfScope | AllScope


def scope_for(user) -> Scope:
    """Developers see only their own entries; manager, leadership and finance see all."""
    if user.role in GLOBAL_VIEW_ROLES:
        return AllScope()
    return SelfScope(user.id)
