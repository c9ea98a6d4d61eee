from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from db.init import get_db
from models.tenant import Tenant
from services.ledger import get_payment_summary, serialize_payment, serialize_summary
from utils.deps import get_request_context
from utils.errors import raise_for_result

router = APIRouter()


@router.get("/tenant/{tenant_id}")
def get_tenant_payments(
    tenant_id: int,
    db: Session = Depends(get_db),
    context = Depends(get_request_context)
):
    """
    Payment history and summary for a tenant.
    Only the tenant themselves or an admin can view it.
    """
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")

    # Read access is decided on the real role, not a view-as override
    is_owner = tenant.user_id == context["user_id"]
    is_admin = context["actual_role"] == "admin"
    if not is_owner and not is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")

    result = raise_for_result(get_payment_summary(db, tenant_id))
    return {
        "payments": [serialize_payment(p) for p in result["payments"]],
        "summary": serialize_summary(result["summary"]),
    }
