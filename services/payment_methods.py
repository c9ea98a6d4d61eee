"""
Payment Method Store.

Owns the user's saved Stripe payment methods and the single "default"
designation. Creation is gated on a confirmed Stripe attach; removal is a
local soft-delete followed by a best-effort Stripe detach.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.autopay_enrollment import AutopayEnrollment
from models.payment_method import PaymentMethod
from models.user import UserProfile
from services.results import (
    CONFLICT,
    FORBIDDEN,
    NOT_FOUND,
    PROCESSOR,
    VALIDATION,
    fail,
    internal_error,
    ok,
)
from utils import stripe_client

logger = logging.getLogger(__name__)

ACTIVE = "active"
REMOVED = "removed"

IN_USE_FOR_AUTOPAY = "Cannot delete payment method that is used for autopay. Please cancel autopay first."


def serialize_payment_method(pm: PaymentMethod) -> Dict[str, Any]:
    return {
        "id": pm.id,
        "user_id": pm.user_id,
        "stripe_payment_method_id": pm.stripe_payment_method_id,
        "stripe_customer_id": pm.stripe_customer_id,
        "type": pm.type,
        "last4": pm.last4,
        "card_brand": pm.card_brand,
        "bank_name": pm.bank_name,
        "exp_month": pm.exp_month,
        "exp_year": pm.exp_year,
        "is_default": pm.is_default,
        "status": pm.status,
        "created_at": pm.created_at.isoformat() if pm.created_at else None,
    }


def _lock_owner(db: Session, user_id: int) -> Optional[UserProfile]:
    # Row lock on the owner serializes default-flag writers for that user
    return (
        db.query(UserProfile)
        .filter(UserProfile.id == user_id)
        .with_for_update()
        .first()
    )


def _clear_defaults(db: Session, user_id: int, keep_id: Optional[int] = None) -> None:
    query = db.query(PaymentMethod).filter(
        PaymentMethod.user_id == user_id,
        PaymentMethod.status == ACTIVE,
        PaymentMethod.is_default.is_(True),
    )
    if keep_id is not None:
        query = query.filter(PaymentMethod.id != keep_id)
    query.update({"is_default": False}, synchronize_session="fetch")


def _processor_failure(result: Dict[str, Any]) -> Dict[str, Any]:
    return fail(
        PROCESSOR,
        result.get("error") or stripe_client.GENERIC_PROCESSOR_ERROR,
        decline=result.get("error_type") in stripe_client.DECLINE_ERROR_TYPES,
    )


def _ensure_customer(db: Session, user_id: int) -> Dict[str, Any]:
    """Look up or create the Stripe customer for a user and remember its id locally."""
    user = db.query(UserProfile).filter(UserProfile.id == user_id).first()
    if not user:
        return fail(NOT_FOUND, "Profile not found")

    email, full_name, existing = user.email, user.full_name, user.stripe_customer_id
    # End the read transaction before waiting on Stripe
    db.commit()

    result = stripe_client.get_or_create_customer(user_id, email, full_name, existing_customer_id=existing)
    if not result["success"]:
        return _processor_failure(result)

    customer_id = result["customer_id"]
    if result.get("created"):
        db.query(UserProfile).filter(
            UserProfile.id == user_id,
            UserProfile.stripe_customer_id.is_(None),
        ).update({"stripe_customer_id": customer_id}, synchronize_session=False)
        db.commit()
    return ok(customer_id=customer_id)


def attach_payment_method(db: Session, user_id: int, instrument_id: Optional[str],
                          make_default: bool = False) -> Dict[str, Any]:
    """
    Attach a tokenized Stripe payment method to the user and save it.

    No row is written unless Stripe confirmed the attach. If the local write
    fails afterwards the instrument is detached again so it does not linger
    on the customer.
    """
    if not instrument_id or not instrument_id.strip():
        return fail(VALIDATION, "Stripe payment method ID is required")
    instrument_id = instrument_id.strip()

    try:
        customer = _ensure_customer(db, user_id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to resolve Stripe customer for user {user_id}")
        return internal_error()
    if not customer["success"]:
        return customer
    customer_id = customer["customer_id"]

    attached = stripe_client.attach_payment_method(instrument_id, customer_id)
    if not attached["success"]:
        logger.error(f"Stripe rejected payment method {instrument_id} for user {user_id}: {attached.get('error')}")
        return _processor_failure(attached)

    details = stripe_client.get_payment_method_details(instrument_id)
    if not details["success"]:
        stripe_client.detach_payment_method(instrument_id)
        if details.get("error_type") == "unsupported_type":
            return fail(VALIDATION, details["error"])
        return _processor_failure(details)

    try:
        _lock_owner(db, user_id)
        if make_default:
            _clear_defaults(db, user_id)

        pm = PaymentMethod(
            user_id=user_id,
            stripe_payment_method_id=instrument_id,
            stripe_customer_id=customer_id,
            type=details["type"],
            last4=details.get("last4"),
            card_brand=details.get("card_brand"),
            bank_name=details.get("bank_name"),
            exp_month=details.get("exp_month"),
            exp_year=details.get("exp_year"),
            is_default=bool(make_default),
            status=ACTIVE,
        )
        db.add(pm)
        db.commit()
        db.refresh(pm)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to save payment method {instrument_id} for user {user_id}")
        detached = stripe_client.detach_payment_method(instrument_id)
        if not detached["success"]:
            logger.warning(f"Payment method {instrument_id} left attached in Stripe after failed save")
        return internal_error()

    logger.info(f"Saved payment method {pm.id} for user {user_id} (default={pm.is_default})")
    return ok(payment_method=pm)


def list_payment_methods(db: Session, user_id: int) -> Dict[str, Any]:
    """Active methods for a user, default first, then newest first."""
    try:
        methods = (
            db.query(PaymentMethod)
            .filter(PaymentMethod.user_id == user_id, PaymentMethod.status == ACTIVE)
            .order_by(
                PaymentMethod.is_default.desc(),
                PaymentMethod.created_at.desc(),
                PaymentMethod.id.desc(),
            )
            .all()
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to list payment methods for user {user_id}")
        return internal_error()
    return ok(payment_methods=methods)


def _load_owned_method(db: Session, user_id: int, method_id: int, lock: bool = False):
    query = db.query(PaymentMethod).filter(PaymentMethod.id == method_id)
    if lock:
        query = query.with_for_update().populate_existing()
    pm = query.first()

    if not pm or pm.status != ACTIVE:
        return None, fail(NOT_FOUND, "Payment method not found")
    if pm.user_id != user_id:
        return None, fail(FORBIDDEN, "You do not have access to this payment method")
    return pm, None


def set_default_payment_method(db: Session, user_id: int, method_id: int) -> Dict[str, Any]:
    """Make one of the user's active methods the default, clearing the others in the same transaction."""
    try:
        pm, error = _load_owned_method(db, user_id, method_id)
        if error:
            db.rollback()
            return error

        _lock_owner(db, user_id)
        _clear_defaults(db, user_id, keep_id=method_id)
        updated = (
            db.query(PaymentMethod)
            .filter(PaymentMethod.id == method_id, PaymentMethod.status == ACTIVE)
            .update({"is_default": True}, synchronize_session="fetch")
        )
        if not updated:
            # Removed between the ownership check and the lock
            db.rollback()
            return fail(NOT_FOUND, "Payment method not found")

        db.commit()
        db.refresh(pm)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to set default payment method {method_id} for user {user_id}")
        return internal_error()

    return ok(payment_method=pm)


def remove_payment_method(db: Session, user_id: int, method_id: int) -> Dict[str, Any]:
    """
    Soft-delete a payment method, then detach it from Stripe.

    The autopay check runs inside the transaction that holds the row lock, so
    an enrollment cannot bind this method between the check and the delete.
    Stripe is only called after commit; a detach failure is logged and the
    local removal stands.
    """
    try:
        pm, error = _load_owned_method(db, user_id, method_id, lock=True)
        if error:
            db.rollback()
            return error

        in_use = (
            db.query(AutopayEnrollment.id)
            .filter(
                AutopayEnrollment.payment_method_id == method_id,
                AutopayEnrollment.is_active.is_(True),
                AutopayEnrollment.cancelled_at.is_(None),
            )
            .first()
        )
        if in_use:
            db.rollback()
            return fail(CONFLICT, IN_USE_FOR_AUTOPAY)

        pm.status = REMOVED
        pm.is_default = False
        stripe_payment_method_id = pm.stripe_payment_method_id
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to remove payment method {method_id} for user {user_id}")
        return internal_error()

    detached = stripe_client.detach_payment_method(stripe_payment_method_id)
    if not detached["success"]:
        # Local removal is authoritative; the Stripe side may be cleaned up later
        logger.warning(
            f"Failed to detach {stripe_payment_method_id} from Stripe after removing "
            f"payment method {method_id}: {detached.get('error')}"
        )

    return ok(payment_method_id=method_id, processor_detached=detached["success"])
