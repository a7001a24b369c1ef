"""
Finance Service — half-month payment records and shareable invoice links.

Payment records are derived from approved hours × the user's current hourly
rate. A stored Payment row only exists once someone marks the period paid
(or back to pending); once paid, its snapshotted hours/amount win over the
live figures so later approvals do not change what was paid.

Shared links give read access to one period's invoice without a login.
One link exists per (month, year, period); creating it again returns the
existing link.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import select

from statusdesk.core.exceptions import NotFoundError, ValidationError
from statusdesk.models import db, utcnow
from statusdesk.models.auth import User
from statusdesk.models.finance import BILLING_HALVES, Payment, SharedLink
from statusdesk.models.timesheet import STATUS_APPROVED, TimeLog
from statusdesk.services.activity_service import ActivityLogService
from statusdesk.services.report_service import HALF_FULL, HALF_P1, HALF_P2, ReportPeriod
from statusdesk.utils.helpers import db_commit_or_raise

logger = logging.getLogger(__name__)

SHARED_LINK_PAID_BY = "Shared Link"
MAX_NOTES_LENGTH = 1000


def _validate_half(half: str) -> str:
    if half not in BILLING_HALVES:
        raise ValidationError(
            f"Invalid period: {half!r}",
            details={"period": f"must be one of {list(BILLING_HALVES)}"},
        )
    return half


def _clean_notes(notes) -> str | None:
    if not isinstance(notes, str):
        raise ValidationError("notes must be a string", details={"notes": "must be a string"})
    return notes.strip()[:MAX_NOTES_LENGTH] or None


def _half_of(day) -> str:
    return HALF_P1 if day.day <= 15 else HALF_P2


def _approved_hours(year: int, month: int, half: str | None, user_id: str | None = None) -> dict:
    """Approved hours keyed by (user_id, half)."""
    period = ReportPeriod(year, month, half or HALF_FULL)
    stmt = select(TimeLog).where(
        TimeLog.status == STATUS_APPROVED,
        TimeLog.deleted_at.is_(None),
        TimeLog.date >= period.start,
        TimeLog.date <= period.end,
    )
    if user_id:
        stmt = stmt.where(TimeLog.user_id == user_id)

    hours = defaultdict(float)
    for log in db.session.execute(stmt).scalars():
        hours[(log.user_id, _half_of(log.date))] += log.hours or 0.0
    return hours


def _record(user: User, half: str, month: int, year: int, hours: float, payment: Payment | None) -> dict:
    rate = float(user.hourly_rate or 0.0)
    return {
        "id": payment.id if payment else None,
        "user_id": user.id,
        "user_name": user.name,
        "period": half,
        "month": month,
        "year": year,
        "hours": round(payment.hours if payment else hours, 2),
        "amount": round(payment.amount if payment else hours * rate, 2),
        "status": payment.status if payment else "pending",
        "paid_at": payment.paid_at.isoformat() if payment and payment.paid_at else None,
        "paid_by": payment.paid_by if payment else None,
        "notes": payment.notes if payment else None,
        "hourly_rate": rate,
        "has_bank_details": user.has_bank_details,
        "bank_details": user.bank_details or None,
    }


# ═════════════════════════════════════════════════════════════════════════
# Payment records
# ═════════════════════════════════════════════════════════════════════════


def list_payment_records(year: int, month: int, half: str | None = None) -> list[dict]:
    """Payment rows for every user with approved hours or a stored payment.

    With ``half=None`` both P1 and P2 are listed. Sorted by user name.
    """
    ReportPeriod(year, month)
    halves = [_validate_half(half)] if half else list(BILLING_HALVES)

    hours = _approved_hours(year, month, half)
    stmt = select(Payment).where(Payment.month == month, Payment.year == year)
    if half:
        stmt = stmt.where(Payment.period == half)
    payments = {(p.user_id, p.period): p for p in db.session.execute(stmt).scalars()}

    users = db.session.execute(select(User).order_by(User.name)).scalars().all()
    records = []
    for user in users:
        for h in halves:
            key = (user.id, h)
            if hours.get(key, 0.0) > 0 or key in payments:
                records.append(_record(user, h, month, year, hours.get(key, 0.0), payments.get(key)))

    return sorted(records, key=lambda r: (r["user_name"].lower(), r["period"]))


def _get_payment(user_id: str, half: str, month: int, year: int) -> Payment | None:
    return db.session.execute(
        select(Payment).where(
            Payment.user_id == user_id,
            Payment.period == half,
            Payment.month == month,
            Payment.year == year,
        )
    ).scalar_one_or_none()


def mark_paid(
    user_id: str,
    half: str,
    month: int,
    year: int,
    paid_by: str,
    actor_id: str | None = None,
    notes: str | None = None,
) -> dict:
    """Mark a user's half-month as paid, snapshotting hours and amount.

    ``notes`` (e.g. a transfer reference) is stored with the payment.
    Already-paid records are returned unchanged.
    """
    _validate_half(half)
    cleaned_notes = _clean_notes(notes) if notes is not None else None
    ReportPeriod(year, month, half)
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)

    payment = _get_payment(user_id, half, month, year)
    if payment is not None and payment.status == "paid":
        return _record(user, half, month, year, payment.hours, payment)

    hours = _approved_hours(year, month, half, user_id=user_id).get((user_id, half), 0.0)
    if payment is None:
        payment = Payment(user_id=user.id, period=half, month=month, year=year)
        db.session.add(payment)
    payment.user_name = user.name
    payment.hours = hours
    payment.amount = hours * float(user.hourly_rate or 0.0)
    payment.status = "paid"
    payment.paid_at = utcnow()
    payment.paid_by = paid_by
    if notes is not None:
        payment.notes = cleaned_notes
    db.session.flush()

    if actor_id:
        ActivityLogService().record(
            actor_id,
            "marked payment paid",
            target_type="user",
            target_id=user.id,
            target_name=user.name,
            details={"period": half, "month": month, "year": year, "amount": round(payment.amount, 2)},
        )
    db_commit_or_raise()
    logger.info(
        "Payment marked paid",
        extra={"user_id": user.id, "operation": "mark_paid", "period": f"{year}-{month:02d} {half}"},
    )
    return _record(user, half, month, year, hours, payment)


def mark_pending(user_id: str, half: str, month: int, year: int, actor_id: str | None = None) -> dict:
    """Undo a paid mark. Raises NotFoundError when no payment record exists."""
    _validate_half(half)
    payment = _get_payment(user_id, half, month, year)
    if payment is None:
        raise NotFoundError(resource="Payment", resource_id=f"{user_id}/{year}-{month:02d}/{half}")
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)

    payment.status = "pending"
    payment.paid_at = None
    payment.paid_by = None
    db.session.flush()

    if actor_id:
        ActivityLogService().record(
            actor_id,
            "marked payment pending",
            target_type="user",
            target_id=user.id,
            target_name=user.name,
            details={"period": half, "month": month, "year": year},
        )
    db_commit_or_raise()
    logger.info("Payment marked pending", extra={"user_id": user.id, "operation": "mark_pending"})
    return _record(user, half, month, year, payment.hours, payment)


# ═════════════════════════════════════════════════════════════════════════
# Shared invoice links
# ═════════════════════════════════════════════════════════════════════════


def shared_link_url(link: SharedLink) -> str:
    base = current_app.config.get("PUBLIC_BASE_URL", "http://localhost:3000").rstrip("/")
    return f"{base}/p/invoice/{link.token}"


def _serialize_link(link: SharedLink) -> dict:
    data = link.to_dict()
    data["url"] = shared_link_url(link)
    return data


def create_shared_link(year: int, month: int, half: str, created_by: str, expires_at: datetime | None = None) -> dict:
    """Return the link for the period, creating it when none exists."""
    _validate_half(half)
    ReportPeriod(year, month, half)

    existing = db.session.execute(
        select(SharedLink).where(
            SharedLink.month == month,
            SharedLink.year == year,
            SharedLink.period == half,
        )
    ).scalar_one_or_none()
    if existing is not None:
        return _serialize_link(existing)

    link = SharedLink(
        token=str(uuid.uuid4()),
        type="invoice",
        month=month,
        year=year,
        period=half,
        created_by=created_by,
        expires_at=expires_at,
    )
    db.session.add(link)
    db_commit_or_raise()
    logger.info("Shared link created", extra={"operation": "create_shared_link", "user_id": created_by})
    return _serialize_link(link)


def list_shared_links() -> list[dict]:
    links = db.session.execute(select(SharedLink).order_by(SharedLink.created_at.desc())).scalars()
    return [_serialize_link(link) for link in links]


def validate_shared_link(token: str) -> SharedLink:
    """Resolve a token.

    Raises:
        NotFoundError: unknown token.
        ValidationError: the link has expired.
    """
    link = db.session.execute(
        select(SharedLink).where(SharedLink.token == token)
    ).scalar_one_or_none()
    if link is None:
        raise NotFoundError(resource="SharedLink")

    if link.expires_at is not None:
        expires_at = link.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at < utcnow():
            raise ValidationError("Link has expired", details={"token": "expired"})
    return link


def delete_shared_link(token: str) -> None:
    link = db.session.execute(
        select(SharedLink).where(SharedLink.token == token)
    ).scalar_one_or_none()
    if link is None:
        raise NotFoundError(resource="SharedLink")
    db.session.delete(link)
    db_commit_or_raise()


def public_invoice(token: str) -> dict:
    """Invoice view for a shared token: the link's period and its payment rows."""
    link = validate_shared_link(token)
    records = list_payment_records(link.year, link.month, link.period)
    return {
        "period": ReportPeriod(link.year, link.month, link.period).to_dict(),
        "records": records,
        "total_hours": round(sum(r["hours"] for r in records), 2),
        "total_amount": round(sum(r["amount"] for r in records), 2),
    }


def mark_paid_via_link(token: str, user_id: str, paid: bool = True) -> dict:
    """Change a payment status from the public invoice page.

    The token only covers its own period, so the period always comes from
    the link.
    """
    link = validate_shared_link(token)
    if paid:
        return mark_paid(user_id, link.period, link.month, link.year, paid_by=SHARED_LINK_PAID_BY)
    return mark_pending(user_id, link.period, link.month, link.year)
