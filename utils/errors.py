from typing import Any, Dict
from fastapi import HTTPException
from services.results import (
    CONFLICT,
    FORBIDDEN,
    GENERIC_ERROR_MESSAGE,
    INTERNAL,
    NOT_FOUND,
    PROCESSOR,
    VALIDATION,
)


STATUS_BY_ERROR = {
    VALIDATION: 400,
    NOT_FOUND: 404,
    FORBIDDEN: 403,
    CONFLICT: 409,
    INTERNAL: 500,
}


def raise_for_result(result: Dict[str, Any]) -> Dict[str, Any]:
    """
    Turn a failed service result into an HTTPException.
    Successful results are returned unchanged.
    """
    if result.get("success"):
        return result

    error_type = result.get("error_type", INTERNAL)

    if error_type == PROCESSOR:
        # Declines are shown verbatim; anything else stays generic
        if result.get("decline"):
            raise HTTPException(status_code=400, detail=result.get("error"))
        raise HTTPException(status_code=502, detail=result.get("error") or GENERIC_ERROR_MESSAGE)

    status_code = STATUS_BY_ERROR.get(error_type, 500)
    if status_code == 500:
        raise HTTPException(status_code=500, detail=GENERIC_ERROR_MESSAGE)
    raise HTTPException(status_code=status_code, detail=result.get("error"))
