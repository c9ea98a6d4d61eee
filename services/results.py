"""
Result dicts shared by the billing services.

Services report business outcomes as {"success": True, ...} or
{"success": False, "error_type": <kind>, "error": <message>} so routers can
map each kind to a response without catching exceptions.
"""
from typing import Any, Dict

VALIDATION = "validation"
NOT_FOUND = "not_found"
FORBIDDEN = "forbidden"
CONFLICT = "conflict"
PROCESSOR = "processor"
INTERNAL = "internal"

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


def ok(**data: Any) -> Dict[str, Any]:
    return {"success": True, **data}


def fail(error_type: str, message: str, **extra: Any) -> Dict[str, Any]:
    return {"success": False, "error_type": error_type, "error": message, **extra}


def internal_error() -> Dict[str, Any]:
    return fail(INTERNAL, GENERIC_ERROR_MESSAGE)
