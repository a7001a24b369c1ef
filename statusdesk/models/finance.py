"""
statusdesk
Finance domain models.

Models:
    - Payment: per-user, per-half-month payment record (pending | paid).
    - SharedLink: token granting read access to one period's invoice.
"""

from statusdesk.models import db, iso, new_id, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

BILLING_HALVES = ("P1", "P2")
PAYMENT_STATUSES = ("pending", "paid")


class Payment(db.Model):
    __tablename__ = "payments"
    __table_args__ = (
        db.UniqueConstraint("user_id", "period", "month", "year", name="uq_payment_user_period"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), nullable=False, index=True)
    user_name = db.Column(db.String(200), nullable=False)
    period = db.Column(db.String(2), nullable=False)
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)
    hours = db.Column(db.Float, nullable=False, default=0.0)
    amount = db.Column(db.Float, nullable=False, default=0.0)
    status = db.Column(db.String(10), nullable=False, default="pending")
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_by = db.Column(db.String(200), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "period": self.period,
            "month": self.month,
            "year": self.year,
            "hours": self.hours,
            "amount": self.amount,
            "status": self.status,
            "paid_at": iso(self.paid_at),
            "paid_by": self.paid_by,
            "notes": self.notes,
        }


class SharedLink(db.Model):
    __tablename__ = "shared_links"
    __table_args__ = (
        db.UniqueConstraint("month", "year", "period", name="uq_shared_link_period"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    type = db.Column(db.String(20), nullable=False, default="invoice")
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)
    period = db.Column(db.String(2), nullable=False)
    created_by = db.Column(db.String(36), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "token": self.token,
            "type": self.type,
            "month": self.month,
            "year": self.year,
            "period": self.period,
            "created_by": self.created_by,
            "created_at": iso(self.created_at),
            "expires_at": iso(self.expires_at),
        }
