from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
from decimal import Decimal
from pydantic import BaseModel
from db.init import get_db
from services.autopay import (
    cancel_autopay,
    enroll_autopay,
    get_active_tenant,
    get_autopay_status,
    serialize_enrollment,
)
from utils.deps import get_request_context, role_required
from utils.errors import raise_for_result

router = APIRouter()

# --- Pydantic Models ---

class AutopayEnrollRequest(BaseModel):
    payment_method_id: Optional[int] = None
    discount_amount: Optional[Decimal] = None

# --- Endpoints ---

@router.get("/status")
def autopay_status(
    db: Session = Depends(get_db),
    context = Depends(role_required("tenant"))
):
    """
    Whether the caller's tenancy is enrolled in autopay, with the bound card / bank.
    """
    tenant = get_active_tenant(db, context["user_id"])
    if not tenant:
        raise HTTPException(status_code=404, detail="No active tenant record found")

    result = raise_for_result(get_autopay_status(db, tenant.id))
    return {
        "is_enrolled": result["is_enrolled"],
        "enrollment": result["enrollment"],
    }


@router.post("/enroll")
def enroll(
    request: AutopayEnrollRequest,
    db: Session = Depends(get_db),
    context = Depends(get_request_context)
):
    """
    Enroll in autopay, switch the autopay method, or re-enroll after a cancellation.
    """
    result = raise_for_result(enroll_autopay(
        db,
        context["user_id"],
        context["actual_role"],
        request.payment_method_id,
        discount_amount=request.discount_amount,
    ))
    messages = {
        "enrolled": "Successfully enrolled in autopay",
        "updated": "Autopay payment method updated successfully",
        "reactivated": "Autopay enrollment reactivated successfully",
    }
    return {
        "message": messages[result["action"]],
        "enrollment": serialize_enrollment(result["enrollment"]),
    }


@router.post("/cancel")
def cancel(
    db: Session = Depends(get_db),
    context = Depends(get_request_context)
):
    """
    Cancel the caller's autopay enrollment.
    """
    result = raise_for_result(cancel_autopay(db, context["user_id"], context["actual_role"]))
    return {
        "message": "Autopay cancelled successfully",
        "enrollment": serialize_enrollment(result["enrollment"]),
    }
