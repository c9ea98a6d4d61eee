from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from utils.security import decode_token

bearer_scheme = HTTPBearer(auto_error=False)

ROLES = ("admin", "tenant", "applicant")

# Roles an admin may preview the app as
VIEW_AS_ROLES = ("tenant", "applicant")


def resolve_effective_role(actual_role: str, view_as: Optional[str] = None) -> str:
    """
    Admins may act as one of VIEW_AS_ROLES; everyone else keeps their role.
    Unknown overrides are ignored.
    """
    if actual_role != "admin":
        return actual_role
    if view_as and view_as in VIEW_AS_ROLES:
        return view_as
    return actual_role


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)):

    if credentials is None or not credentials.scheme.lower() == "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    token = credentials.credentials
    payload = decode_token(token)
    if not payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user_id = payload.get("uid") or payload.get("user_id") or payload.get("id")
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    try:
        payload["user_id"] = int(user_id)
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return payload


def get_request_context(
    payload=Depends(get_current_user),
    x_view_as: Optional[str] = Header(default=None),
):
    """
    Caller identity plus the role to act under for this request.
    The view-as override travels in the X-View-As header.
    """
    actual_role = payload.get("role")
    return {
        "user_id": payload["user_id"],
        "email": payload.get("sub"),
        "actual_role": actual_role,
        "role": resolve_effective_role(actual_role, x_view_as),
    }


def role_required(role: str):
    def wrapper(context=Depends(get_request_context)):
        if context["role"] != role:
            raise HTTPException(status_code=403, detail="Not enough privileges")
        return context
    return wrapper
