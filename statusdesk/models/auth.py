"""
Auth Models — user accounts, roles and billing attributes.

A single ``users`` table carries both identity (email, password hash, role)
and the billing attributes read by the report engine (hourly_rate,
department, daily_hours_target). ``bank_details`` is left out of
``to_dict``; finance payment rows carry it instead.
"""

from statusdesk.models import db, iso, new_id, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

ROLES = ("manager", "developer", "leadership", "finance")

# Roles allowed to submit time logs; also the roster used by billing reports.
TIME_LOGGING_ROLES = frozenset({"manager", "developer", "leadership"})

# Roles that see every user's time logs (developers only see their own).
GLOBAL_VIEW_ROLES = frozenset({"manager", "leadership", "finance"})

FINANCE_ROLES = frozenset({"manager", "finance"})

DEPARTMENTS = ("Frontend", "Backend", "Marketing", "Customer Success", "Management")

BANK_DETAIL_FIELDS = (
    "account_name",
    "bank_name",
    "account_number",
    "branch_name",
    "branch_code",
    "country",
    "currency",
    "notes",
)
REQUIRED_BANK_DETAIL_FIELDS = ("account_name", "bank_name", "account_number")


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="developer")
    is_super_admin = db.Column(db.Boolean, nullable=False, default=False)
    hourly_rate = db.Column(db.Float, nullable=False, default=0.0)
    department = db.Column(db.String(40), nullable=True)
    daily_hours_target = db.Column(db.Float, nullable=False, default=8.0)
    # payout account; only finance views serialise it
    bank_details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def can_log_time(self) -> bool:
        return self.role in TIME_LOGGING_ROLES

    @property
    def is_manager(self) -> bool:
        return self.role == "manager"

    @property
    def has_bank_details(self) -> bool:
        return bool((self.bank_details or {}).get("account_number"))

    def to_dict(self):
        # password_hash is never serialised
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_super_admin": bool(self.is_super_admin),
            "hourly_rate": self.hourly_rate or 0.0,
            "department": self.department,
            "daily_hours_target": self.daily_hours_target,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email} ({self.role})>"
