import sys
import os
import unittest
from unittest.mock import MagicMock, patch

import requests

# Add parent directory to path to import modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils import stripe_client


def fake_response(status_code, body):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body
    response.text = str(body)
    return response


@patch.object(stripe_client, "STRIPE_SECRET_KEY", "sk_test_123")
class TestStripeClient(unittest.TestCase):

    @patch("utils.stripe_client.requests.request")
    def test_attach_sends_customer_with_timeout(self, mock_request):
        mock_request.return_value = fake_response(200, {"id": "pm_1", "customer": "cus_1"})

        result = stripe_client.attach_payment_method("pm_1", "cus_1")

        self.assertTrue(result["success"])
        args, kwargs = mock_request.call_args
        self.assertEqual(args[0], "POST")
        self.assertTrue(args[1].endswith("/v1/payment_methods/pm_1/attach"))
        self.assertEqual(kwargs["data"], {"customer": "cus_1"})
        self.assertEqual(kwargs["timeout"], stripe_client.STRIPE_TIMEOUT_SECONDS)
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer sk_test_123")

    @patch("utils.stripe_client.requests.request")
    def test_card_error_message_passes_through(self, mock_request):
        mock_request.return_value = fake_response(402, {
            "error": {
                "type": "card_error",
                "code": "card_declined",
                "decline_code": "insufficient_funds",
                "message": "Your card has insufficient funds.",
            }
        })

        result = stripe_client.attach_payment_method("pm_1", "cus_1")

        self.assertFalse(result["success"])
        self.assertEqual(result["error_type"], "card_error")
        self.assertEqual(result["error"], "Your card has insufficient funds.")
        self.assertEqual(result["decline_code"], "insufficient_funds")

    @patch("utils.stripe_client.requests.request")
    def test_other_errors_are_generic(self, mock_request):
        mock_request.return_value = fake_response(401, {
            "error": {"type": "invalid_request_error", "message": "Invalid API Key provided: sk_test_***"}
        })

        result = stripe_client.attach_payment_method("pm_1", "cus_1")

        self.assertFalse(result["success"])
        self.assertEqual(result["error"], stripe_client.GENERIC_PROCESSOR_ERROR)
        self.assertNotIn("API Key", result["error"])

    @patch("utils.stripe_client.requests.request")
    def test_timeout_is_reported_not_raised(self, mock_request):
        mock_request.side_effect = requests.exceptions.Timeout("read timed out")

        result = stripe_client.detach_payment_method("pm_1")

        self.assertFalse(result["success"])
        self.assertEqual(result["error_type"], "api_connection_error")

    @patch("utils.stripe_client.requests.request")
    def test_blank_instrument_never_calls_stripe(self, mock_request):
        result = stripe_client.attach_payment_method("  ", "cus_1")

        self.assertFalse(result["success"])
        mock_request.assert_not_called()

    @patch("utils.stripe_client.requests.request")
    def test_card_details_are_flattened(self, mock_request):
        mock_request.return_value = fake_response(200, {
            "id": "pm_card",
            "type": "card",
            "card": {"brand": "visa", "last4": "4242", "exp_month": 8, "exp_year": 2031},
        })

        details = stripe_client.get_payment_method_details("pm_card")

        self.assertTrue(details["success"])
        self.assertEqual(details["type"], "card")
        self.assertEqual(details["card_brand"], "visa")
        self.assertEqual(details["last4"], "4242")
        self.assertEqual((details["exp_month"], details["exp_year"]), (8, 2031))
        self.assertIsNone(details["bank_name"])

    @patch("utils.stripe_client.requests.request")
    def test_bank_details_are_flattened(self, mock_request):
        mock_request.return_value = fake_response(200, {
            "id": "pm_bank",
            "type": "us_bank_account",
            "us_bank_account": {"bank_name": "STRIPE TEST BANK", "last4": "6789"},
        })

        details = stripe_client.get_payment_method_details("pm_bank")

        self.assertEqual(details["type"], "ach")
        self.assertEqual(details["bank_name"], "STRIPE TEST BANK")
        self.assertIsNone(details["exp_month"])

    @patch("utils.stripe_client.requests.request")
    def test_unsupported_type(self, mock_request):
        mock_request.return_value = fake_response(200, {"id": "pm_x", "type": "sepa_debit"})

        details = stripe_client.get_payment_method_details("pm_x")

        self.assertFalse(details["success"])
        self.assertEqual(details["error_type"], "unsupported_type")

    @patch("utils.stripe_client.requests.request")
    def test_existing_customer_is_reused(self, mock_request):
        result = stripe_client.get_or_create_customer(7, "t@example.com", "T", existing_customer_id="cus_7")

        self.assertEqual(result["customer_id"], "cus_7")
        self.assertFalse(result["created"])
        mock_request.assert_not_called()

    @patch("utils.stripe_client.requests.request")
    def test_customer_creation_is_idempotent_per_user(self, mock_request):
        mock_request.return_value = fake_response(200, {"id": "cus_new"})

        result = stripe_client.get_or_create_customer(7, "t@example.com", "Tenant Seven")

        self.assertEqual(result["customer_id"], "cus_new")
        self.assertTrue(result["created"])
        kwargs = mock_request.call_args.kwargs
        self.assertEqual(kwargs["headers"]["Idempotency-Key"], "customer-user-7")
        self.assertEqual(kwargs["data"]["metadata[user_id]"], "7")


class TestStripeClientWithoutKey(unittest.TestCase):

    @patch.object(stripe_client, "STRIPE_SECRET_KEY", "")
    @patch("utils.stripe_client.requests.request")
    def test_missing_key_is_a_processor_failure(self, mock_request):
        result = stripe_client.detach_payment_method("pm_1")

        self.assertFalse(result["success"])
        mock_request.assert_not_called()


if __name__ == '__main__':
    unittest.main()
