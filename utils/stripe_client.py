"""
Stripe API Client Wrapper
Handles the payment-method side of Stripe (customers, attach, detach, lookup)
using the REST API. Every call returns a result dict instead of raising.
"""
import os
import logging
import requests
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)

# Stripe Configuration
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_API_BASE = os.getenv("STRIPE_API_BASE", "https://api.stripe.com")
STRIPE_API_VERSION = os.getenv("STRIPE_API_VERSION", "2024-06-20")
STRIPE_TIMEOUT_SECONDS = float(os.getenv("STRIPE_TIMEOUT_SECONDS", "10"))

# Stripe error types whose message is safe to show to the payer
DECLINE_ERROR_TYPES = {"card_error"}

GENERIC_PROCESSOR_ERROR = "Payment processor is unavailable. Please try again."


def get_stripe_headers(idempotency_key: Optional[str] = None) -> Dict[str, str]:
    """Get headers for Stripe API requests"""
    if not STRIPE_SECRET_KEY:
        raise ValueError("STRIPE_SECRET_KEY is not set in environment variables")

    headers = {
        "Authorization": f"Bearer {STRIPE_SECRET_KEY}",
        "Stripe-Version": STRIPE_API_VERSION,
    }
    if idempotency_key:
        headers["Idempotency-Key"] = idempotency_key
    return headers


def _error_result(response: requests.Response, action: str) -> Dict[str, Any]:
    """Build a failure result from a non-2xx Stripe response."""
    logger.error(f"Stripe {action} API error: {response.status_code} - {response.text}")
    try:
        error = response.json().get("error", {})
    except ValueError:
        error = {}

    error_type = error.get("type", "api_error")
    if error_type in DECLINE_ERROR_TYPES:
        message = error.get("message") or "Your card was declined."
    else:
        message = GENERIC_PROCESSOR_ERROR

    return {
        "success": False,
        "error": message,
        "error_type": error_type,
        "decline_code": error.get("decline_code"),
        "http_status": response.status_code,
    }


def _request(method: str, path: str, action: str, data: Optional[Dict[str, Any]] = None,
             idempotency_key: Optional[str] = None) -> Dict[str, Any]:
    """
    Perform one Stripe request with a bounded timeout.

    Returns {"success": True, "data": {...}} or a failure result. Network
    failures are reported with error_type "api_connection_error".
    """
    url = f"{STRIPE_API_BASE}{path}"
    try:
        headers = get_stripe_headers(idempotency_key)
        response = requests.request(method, url, data=data, headers=headers, timeout=STRIPE_TIMEOUT_SECONDS)
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.error(f"Error calling Stripe {action}: {str(e)}")
        return {
            "success": False,
            "error": GENERIC_PROCESSOR_ERROR,
            "error_type": "api_connection_error",
            "http_status": None,
        }

    if response.status_code not in [200, 201]:
        return _error_result(response, action)

    return {"success": True, "data": response.json()}


def create_stripe_customer(user_id: int, email: str, name: Optional[str] = None) -> Dict[str, Any]:
    """
    Create a customer in Stripe.

    Args:
        user_id: Local user id, stored in customer metadata
        email: Customer email address
        name: Optional full name

    Returns:
        Dict with customer_id on success
    """
    payload = {"email": email, "metadata[user_id]": str(user_id)}
    if name:
        payload["name"] = name

    logger.info(f"Creating Stripe customer for user {user_id}")
    # Keyed by user so a retried request cannot create a second customer
    result = _request("POST", "/v1/customers", "Create Customer", data=payload,
                      idempotency_key=f"customer-user-{user_id}")
    if not result["success"]:
        return result

    customer = result["data"]
    return {"success": True, "customer_id": customer.get("id"), "customer": customer}


def get_or_create_customer(user_id: int, email: str, name: Optional[str] = None,
                           existing_customer_id: Optional[str] = None) -> Dict[str, Any]:
    """Return the user's existing Stripe customer id, creating a customer if there is none."""
    if existing_customer_id:
        return {"success": True, "customer_id": existing_customer_id, "created": False}

    result = create_stripe_customer(user_id, email, name)
    if result["success"]:
        result["created"] = True
    return result


def attach_payment_method(payment_method_id: str, customer_id: str) -> Dict[str, Any]:
    """
    Attach a tokenized payment method (pm_...) to a customer.
    Declines and invalid instruments come back with error_type "card_error".
    """
    if not payment_method_id or not payment_method_id.strip():
        return {
            "success": False,
            "error": "payment_method_id is required and cannot be blank",
            "error_type": "invalid_request_error",
            "http_status": None,
        }

    logger.info(f"Attaching payment method {payment_method_id} to customer {customer_id}")
    result = _request(
        "POST",
        f"/v1/payment_methods/{payment_method_id}/attach",
        "Attach Payment Method",
        data={"customer": customer_id},
    )
    if not result["success"]:
        return result
    return {"success": True, "payment_method": result["data"]}


def get_payment_method_details(payment_method_id: str) -> Dict[str, Any]:
    """
    Retrieve a payment method and flatten the display fields.

    Returns:
        Dict with type (card / ach), last4, card_brand, bank_name,
        exp_month and exp_year.
    """
    result = _request("GET", f"/v1/payment_methods/{payment_method_id}", "Retrieve Payment Method")
    if not result["success"]:
        return result

    pm = result["data"]
    pm_type = pm.get("type")

    if pm_type == "card":
        card = pm.get("card") or {}
        details = {
            "type": "card",
            "last4": card.get("last4"),
            "card_brand": card.get("brand"),
            "bank_name": None,
            "exp_month": card.get("exp_month"),
            "exp_year": card.get("exp_year"),
        }
    elif pm_type == "us_bank_account":
        bank = pm.get("us_bank_account") or {}
        details = {
            "type": "ach",
            "last4": bank.get("last4"),
            "card_brand": None,
            "bank_name": bank.get("bank_name"),
            "exp_month": None,
            "exp_year": None,
        }
    else:
        logger.error(f"Unsupported Stripe payment method type: {pm_type}")
        return {
            "success": False,
            "error": f"Unsupported payment method type: {pm_type}",
            "error_type": "unsupported_type",
            "http_status": None,
        }

    details["success"] = True
    details["payment_method_id"] = pm.get("id", payment_method_id)
    return details


def detach_payment_method(payment_method_id: str) -> Dict[str, Any]:
    """Detach a payment method from its customer. Callers treat failure as non-fatal."""
    logger.info(f"Detaching payment method {payment_method_id}")
    result = _request("POST", f"/v1/payment_methods/{payment_method_id}/detach", "Detach Payment Method")
    if not result["success"]:
        return result
    return {"success": True, "payment_method_id": payment_method_id}
