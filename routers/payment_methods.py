from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
from pydantic import BaseModel
from db.init import get_db
from services.payment_methods import (
    attach_payment_method,
    list_payment_methods,
    remove_payment_method,
    serialize_payment_method,
    set_default_payment_method,
)
from services.results import GENERIC_ERROR_MESSAGE
from utils.deps import get_request_context
from utils.errors import raise_for_result
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

# --- Pydantic Models ---

class AttachPaymentMethodRequest(BaseModel):
    stripe_payment_method_id: Optional[str] = None  # pm_... from Stripe.js
    is_default: bool = False

# --- Endpoints ---

@router.get("")
def get_payment_methods(
    db: Session = Depends(get_db),
    context = Depends(get_request_context)
):
    """
    Active saved payment methods for the caller, default first.
    """
    result = raise_for_result(list_payment_methods(db, context["user_id"]))
    return {
        "payment_methods": [serialize_payment_method(pm) for pm in result["payment_methods"]]
    }


@router.post("/attach")
def attach(
    request: AttachPaymentMethodRequest,
    db: Session = Depends(get_db),
    context = Depends(get_request_context)
):
    """
    Save a new payment method.
    1. Gets or creates the caller's Stripe customer.
    2. Attaches the payment method to the customer in Stripe.
    3. Stores the card / bank details locally.
    """
    try:
        result = attach_payment_method(
            db,
            context["user_id"],
            request.stripe_payment_method_id,
            make_default=request.is_default,
        )
        raise_for_result(result)
        return {
            "message": "Payment method saved successfully",
            "payment_method": serialize_payment_method(result["payment_method"]),
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Attach payment method error: {e}")
        raise HTTPException(status_code=500, detail=GENERIC_ERROR_MESSAGE)


@router.patch("/{id}/set-default")
def set_default(
    id: int,
    db: Session = Depends(get_db),
    context = Depends(get_request_context)
):
    """
    Make a payment method the caller's default.
    """
    result = raise_for_result(set_default_payment_method(db, context["user_id"], id))
    return {
        "message": "Default payment method updated successfully",
        "payment_method": serialize_payment_method(result["payment_method"]),
    }


@router.delete("/{id}")
def delete_payment_method(
    id: int,
    db: Session = Depends(get_db),
    context = Depends(get_request_context)
):
    """
    Remove a payment method. Refused while it is used for autopay.
    """
    result = raise_for_result(remove_payment_method(db, context["user_id"], id))
    return {
        "message": "Payment method deleted successfully",
        "processor_detached": result["processor_detached"],
    }
