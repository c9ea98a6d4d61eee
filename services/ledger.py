"""
Payment Ledger Aggregator.

Read-only summaries over a tenant's payment history. summarize_payments is
pure: the same payments and the same ``now`` always give the same result.
"""
import logging
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.payment import Payment
from services.results import internal_error, ok

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10

COMPLETED = "completed"
FAILED = "failed"
OUTSTANDING_STATUSES = ("pending", "processing")

ZERO = Decimal("0.00")


def _amount(payment) -> Decimal:
    value = payment.amount
    if isinstance(value, Decimal):
        return value
    # Strings and ints convert exactly; floats go through repr
    return Decimal(str(value))


def _total(payments: Iterable) -> Decimal:
    return sum((_amount(p) for p in payments), ZERO)


def _due_at(payment, now: datetime) -> datetime:
    due = payment.due_date
    if isinstance(due, datetime):
        moment = due
    elif isinstance(due, date):
        # Date-only due dates start at midnight
        moment = datetime.combine(due, time.min)
    else:
        moment = datetime.fromisoformat(str(due))

    if now.tzinfo is not None and moment.tzinfo is None:
        moment = moment.replace(tzinfo=now.tzinfo)
    elif now.tzinfo is None and moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def _created_key(payment):
    created = payment.created_at
    if created is None:
        return (0, datetime.min, payment.id or 0)
    if created.tzinfo is not None:
        created = created.astimezone(timezone.utc).replace(tzinfo=None)
    return (1, created, payment.id or 0)


def summarize_payments(payments: Iterable, now: datetime) -> Dict[str, Any]:
    """
    Totals and buckets for a set of payment transactions.

    Upcoming holds every payment that is not completed and not yet due.
    Overdue only holds outstanding (pending / processing) payments; past-due
    failures are reported through totalFailed.
    """
    payments = list(payments)

    completed = [p for p in payments if p.status == COMPLETED]
    outstanding = [p for p in payments if p.status in OUTSTANDING_STATUSES]
    failed = [p for p in payments if p.status == FAILED]
    unpaid = [p for p in payments if p.status != COMPLETED]

    overdue = [p for p in outstanding if _due_at(p, now) < now]
    upcoming = [p for p in unpaid if _due_at(p, now) >= now]

    recent = sorted(payments, key=_created_key, reverse=True)[:RECENT_LIMIT]

    return {
        "totalPaid": _total(completed),
        "totalPending": _total(outstanding),
        "totalOverdue": _total(overdue),
        "totalFailed": _total(failed),
        "upcomingPayments": upcoming,
        "overduePayments": overdue,
        "recentPayments": recent,
    }


def serialize_payment(payment: Payment) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "tenant_id": payment.tenant_id,
        "property_id": payment.property_id,
        "amount": str(payment.amount),
        "payment_type": payment.payment_type,
        "payment_method": payment.payment_method,
        "status": payment.status,
        "due_date": payment.due_date.isoformat() if payment.due_date else None,
        "payment_date": payment.payment_date.isoformat() if payment.payment_date else None,
        "is_autopay": payment.is_autopay,
        "notes": payment.notes,
        "created_at": payment.created_at.isoformat() if payment.created_at else None,
    }


def serialize_summary(summary: Dict[str, Any]) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for key, value in summary.items():
        if isinstance(value, Decimal):
            data[key] = str(value)
        else:
            data[key] = [serialize_payment(p) for p in value]
    return data


def get_payment_summary(db: Session, tenant_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Load a tenant's payments (newest first) and summarize them."""
    try:
        payments: List[Payment] = (
            db.query(Payment)
            .filter(Payment.tenant_id == tenant_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .all()
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to fetch payments for tenant {tenant_id}")
        return internal_error()

    summary = summarize_payments(payments, now or datetime.now(timezone.utc))
    return ok(payments=payments, summary=summary)
