"""
Autopay Enrollment Manager.

One enrollment row per tenant, moving NotEnrolled -> Active -> Cancelled.
Enrolling again after a cancellation starts a fresh cycle on the same row.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.autopay_enrollment import AutopayEnrollment, DEFAULT_AUTOPAY_DISCOUNT
from models.payment_method import PaymentMethod
from models.tenant import Tenant
from services.results import CONFLICT, FORBIDDEN, NOT_FOUND, VALIDATION, fail, internal_error, ok

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def serialize_enrollment(enrollment: AutopayEnrollment, payment_method: Optional[PaymentMethod] = None) -> Dict[str, Any]:
    data = {
        "id": enrollment.id,
        "tenant_id": enrollment.tenant_id,
        "payment_method_id": enrollment.payment_method_id,
        "is_active": enrollment.is_active,
        "discount_amount": str(enrollment.discount_amount) if enrollment.discount_amount is not None else None,
        "enrolled_at": enrollment.enrolled_at.isoformat() if enrollment.enrolled_at else None,
        "cancelled_at": enrollment.cancelled_at.isoformat() if enrollment.cancelled_at else None,
    }
    if payment_method is not None:
        # Display fields only
        data["payment_method"] = {
            "id": payment_method.id,
            "type": payment_method.type,
            "last4": payment_method.last4,
            "bank_name": payment_method.bank_name,
            "card_brand": payment_method.card_brand,
            "exp_month": payment_method.exp_month,
            "exp_year": payment_method.exp_year,
            "is_default": payment_method.is_default,
        }
    return data


def get_active_tenant(db: Session, user_id: int) -> Optional[Tenant]:
    return (
        db.query(Tenant)
        .filter(Tenant.user_id == user_id, Tenant.status == "active")
        .order_by(Tenant.id.desc())
        .first()
    )


def get_autopay_status(db: Session, tenant_id: int) -> Dict[str, Any]:
    """
    Enrollment status for a tenant.

    A missing row and a cancelled row both read as not enrolled here.
    """
    try:
        enrollment = db.query(AutopayEnrollment).filter(AutopayEnrollment.tenant_id == tenant_id).first()
        if enrollment is None:
            return ok(is_enrolled=False, enrollment=None)

        payment_method = db.query(PaymentMethod).filter(PaymentMethod.id == enrollment.payment_method_id).first()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to load autopay status for tenant {tenant_id}")
        return internal_error()

    return ok(
        is_enrolled=enrollment.is_enrolled,
        enrollment=serialize_enrollment(enrollment, payment_method),
    )


def _parse_discount(discount_amount) -> Optional[Decimal]:
    if discount_amount is None:
        return Decimal(DEFAULT_AUTOPAY_DISCOUNT)
    try:
        value = Decimal(str(discount_amount))
    except InvalidOperation:
        return None
    if not value.is_finite() or value < 0:
        return None
    if value == 0:
        # Zero means "not set"
        return Decimal(DEFAULT_AUTOPAY_DISCOUNT)
    return value.quantize(Decimal("0.01"))


def enroll_autopay(db: Session, user_id: int, role: str, payment_method_id: Optional[int],
                   discount_amount=None) -> Dict[str, Any]:
    """
    Bind the tenant's rent to one of their own active payment methods.

    The payment method row is locked for the rest of the transaction, which
    serializes this against a concurrent removal of the same method.
    """
    if role != "tenant":
        return fail(FORBIDDEN, "Only tenants can enroll in autopay")
    if not payment_method_id:
        return fail(VALIDATION, "payment_method_id is required")
    discount = _parse_discount(discount_amount)
    if discount is None:
        return fail(VALIDATION, "discount_amount must be a non-negative amount")

    try:
        tenant = get_active_tenant(db, user_id)
        if not tenant:
            db.rollback()
            return fail(NOT_FOUND, "No active tenant record found")

        payment_method = (
            db.query(PaymentMethod)
            .filter(
                PaymentMethod.id == payment_method_id,
                PaymentMethod.user_id == tenant.user_id,
                PaymentMethod.status == "active",
            )
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not payment_method:
            db.rollback()
            return fail(NOT_FOUND, "Payment method not found or invalid")

        enrollment = (
            db.query(AutopayEnrollment)
            .filter(AutopayEnrollment.tenant_id == tenant.id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        now = _utcnow()

        if enrollment is None:
            enrollment = AutopayEnrollment(
                tenant_id=tenant.id,
                payment_method_id=payment_method.id,
                is_active=True,
                discount_amount=discount,
                enrolled_at=now,
                cancelled_at=None,
            )
            db.add(enrollment)
            action = "enrolled"
        elif enrollment.is_enrolled:
            enrollment.payment_method_id = payment_method.id
            enrollment.discount_amount = discount
            action = "updated"
        else:
            enrollment.payment_method_id = payment_method.id
            enrollment.discount_amount = discount
            enrollment.is_active = True
            enrollment.cancelled_at = None
            enrollment.enrolled_at = now
            action = "reactivated"

        db.commit()
        db.refresh(enrollment)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to enroll user {user_id} in autopay")
        return internal_error()

    logger.info(f"Autopay {action} for tenant {enrollment.tenant_id} with payment method {payment_method_id}")
    return ok(action=action, enrollment=enrollment)


def cancel_autopay(db: Session, user_id: int, role: str) -> Dict[str, Any]:
    """
    Cancel the caller's active enrollment.

    Never enrolled is not_found, already cancelled is conflict. The update is
    conditional on the row still being active so a second cancel can never
    overwrite the first cancelled_at.
    """
    if role != "tenant":
        return fail(FORBIDDEN, "Only tenants can cancel autopay")

    try:
        tenant = get_active_tenant(db, user_id)
        if not tenant:
            db.rollback()
            return fail(NOT_FOUND, "No active tenant record found")

        enrollment = db.query(AutopayEnrollment).filter(AutopayEnrollment.tenant_id == tenant.id).first()
        if not enrollment:
            db.rollback()
            return fail(NOT_FOUND, "No autopay enrollment found")

        updated = (
            db.query(AutopayEnrollment)
            .filter(
                AutopayEnrollment.id == enrollment.id,
                AutopayEnrollment.is_active.is_(True),
                AutopayEnrollment.cancelled_at.is_(None),
            )
            .update({"is_active": False, "cancelled_at": _utcnow()}, synchronize_session=False)
        )
        if not updated:
            db.rollback()
            return fail(CONFLICT, "Autopay is not active")

        db.commit()
        db.refresh(enrollment)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to cancel autopay for user {user_id}")
        return internal_error()

    logger.info(f"Autopay cancelled for tenant {enrollment.tenant_id}")
    return ok(enrollment=enrollment)
