"""
Tests for PaystackAdapter.

The HTTP layer is mocked at requests.request; time.sleep is patched so
retries do not slow the suite.
"""

import hashlib
import hmac
from unittest.mock import MagicMock, patch

import pytest
import requests

from payments.adapters import PaystackAdapter, backoff_delay, is_retryable_gateway_error
from payments.exceptions import (
    GatewayRateLimitError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
)

REQUEST = "payments.adapters.paystack_adapter.requests.request"
SLEEP = "payments.adapters.paystack_adapter.time.sleep"


def response(status_code=200, body=None):
    mock = MagicMock()
    mock.status_code = status_code
    mock.json.return_value = body if body is not None else {"status": True, "data": {}}
    return mock


# =============================================================================
# Operations
# =============================================================================


class TestInitialize:
    """Tests for PaystackAdapter.initialize()."""

    def test_returns_checkout_details(self):
        body = {
            "status": True,
            "data": {
                "authorization_url": "https://checkout.paystack.com/abc",
                "access_code": "abc",
                "reference": "PAY-123",
            },
        }
        with patch(REQUEST, return_value=response(body=body)) as mock_request:
            result = PaystackAdapter.initialize(
                email="ada@example.com",
                amount_minor_units=500000,
                reference="PAY-123",
                callback_url="https://app.example.com/payments/PAY-123",
            )

        assert result.authorization_url == "https://checkout.paystack.com/abc"
        assert result.access_code == "abc"
        method, url = mock_request.call_args.args
        assert method == "POST"
        assert url.endswith("/transaction/initialize")
        sent = mock_request.call_args.kwargs
        assert sent["json"]["amount"] == 500000
        assert sent["headers"]["Authorization"] == "Bearer sk_test_marketplace"
        assert sent["timeout"] == 10


class TestVerify:
    def test_parses_verification(self):
        body = {
            "status": True,
            "data": {
                "status": "success",
                "reference": "PAY-123",
                "amount": 500000,
                "authorization": {"authorization_code": "AUTH_x1"},
            },
        }
        with patch(REQUEST, return_value=response(body=body)):
            result = PaystackAdapter.verify("PAY-123")

        assert result.is_successful
        assert result.amount_minor_units == 500000
        assert result.authorization_code == "AUTH_x1"

    def test_abandoned_is_not_successful(self):
        body = {"status": True, "data": {"status": "abandoned", "reference": "PAY-1"}}
        with patch(REQUEST, return_value=response(body=body)):
            result = PaystackAdapter.verify("PAY-1")

        assert not result.is_successful
        assert result.amount_minor_units == 0


class TestTransfers:
    def test_create_recipient(self):
        body = {"status": True, "data": {"recipient_code": "RCP_1"}}
        with patch(REQUEST, return_value=response(body=body)) as mock_request:
            code = PaystackAdapter.create_transfer_recipient("Ada", "0123456789", "044")

        assert code == "RCP_1"
        assert mock_request.call_args.kwargs["json"]["type"] == "nuban"

    def test_transfer(self):
        body = {"status": True, "data": {"transfer_code": "TRF_1", "status": "pending"}}
        with patch(REQUEST, return_value=response(body=body)):
            result = PaystackAdapter.transfer("RCP_1", 490000, "WTH-1", reason="Payout")

        assert result.transfer_code == "TRF_1"
        assert result.status == "pending"
        assert result.reference == "WTH-1"


# =============================================================================
# Failures & Retries
# =============================================================================


class TestRetries:
    """Tests for transient-failure retry behaviour."""

    def test_retries_5xx_then_succeeds(self):
        responses = [response(503), response(502), response(body={"status": True, "data": {}})]
        with patch(REQUEST, side_effect=responses) as mock_request, patch(SLEEP) as mock_sleep:
            PaystackAdapter.verify("PAY-1")

        assert mock_request.call_count == 3
        assert mock_sleep.call_count == 2

    def test_gives_up_after_max_retries(self, settings):
        settings.PAYSTACK_MAX_RETRIES = 2
        with patch(REQUEST, side_effect=requests.exceptions.Timeout()) as mock_request, patch(SLEEP):
            with pytest.raises(GatewayTimeoutError):
                PaystackAdapter.verify("PAY-1")

        assert mock_request.call_count == 3

    def test_rate_limit_is_retried(self):
        responses = [response(429), response(body={"status": True, "data": {}})]
        with patch(REQUEST, side_effect=responses) as mock_request, patch(SLEEP):
            PaystackAdapter.verify("PAY-1")

        assert mock_request.call_count == 2

    def test_connection_error_maps_to_unavailable(self, settings):
        settings.PAYSTACK_MAX_RETRIES = 0
        with patch(REQUEST, side_effect=requests.exceptions.ConnectionError()):
            with pytest.raises(GatewayUnavailableError):
                PaystackAdapter.verify("PAY-1")

    def test_4xx_is_not_retried(self):
        """Should raise immediately on a permanent rejection."""
        rejected = response(400, {"status": False, "message": "Invalid key"})
        with patch(REQUEST, return_value=rejected) as mock_request, patch(SLEEP) as mock_sleep:
            with pytest.raises(GatewayRequestError) as exc_info:
                PaystackAdapter.verify("PAY-1")

        assert mock_request.call_count == 1
        mock_sleep.assert_not_called()
        assert "Invalid key" in str(exc_info.value)

    def test_status_false_body_is_rejection(self):
        with patch(REQUEST, return_value=response(200, {"status": False, "message": "nope"})):
            with pytest.raises(GatewayRequestError):
                PaystackAdapter.verify("PAY-1")


class TestRetryHelpers:
    def test_retryable_classification(self):
        assert is_retryable_gateway_error(GatewayRateLimitError("slow down"))
        assert is_retryable_gateway_error(GatewayTimeoutError("timeout"))
        assert not is_retryable_gateway_error(GatewayRequestError("bad request"))
        assert not is_retryable_gateway_error(ValueError("other"))

    @pytest.mark.parametrize("attempt, low, high", [(0, 1.0, 1.25), (1, 2.0, 2.5), (2, 4.0, 5.0)])
    def test_backoff_delay_bounds(self, attempt, low, high):
        delay = backoff_delay(attempt)

        assert low <= delay <= high

    def test_backoff_delay_capped(self):
        assert backoff_delay(20, max_delay=60.0) <= 75.0


# =============================================================================
# Webhook Signatures
# =============================================================================


class TestWebhookSignature:
    def test_valid_signature(self):
        payload = b'{"event":"charge.success"}'
        signature = hmac.new(b"sk_test_marketplace", payload, hashlib.sha512).hexdigest()

        assert PaystackAdapter.verify_webhook_signature(payload, signature)

    def test_tampered_payload(self):
        signature = PaystackAdapter.compute_signature(b'{"amount":100}')

        assert not PaystackAdapter.verify_webhook_signature(b'{"amount":999}', signature)

    def test_missing_signature(self):
        assert not PaystackAdapter.verify_webhook_signature(b"{}", None)

    def test_missing_secret_never_verifies(self, settings):
        signature = PaystackAdapter.compute_signature(b"{}")
        settings.PAYSTACK_SECRET_KEY = ""

        assert not PaystackAdapter.verify_webhook_signature(b"{}", signature)
