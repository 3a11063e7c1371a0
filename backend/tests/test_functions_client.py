"""
Serverless function client tests (httpx.MockTransport, no network).
"""

import httpx
import pytest

from duka.services import functions_client
from duka.services.functions_client import (
    FunctionInvocationError,
    FunctionsClient,
    normalize_tz_phone,
)


@pytest.mark.parametrize(
    "raw",
    ["0712345678", "712345678", "255712345678", "+255 712 345 678", "+255-712-345-678"],
)
def test_normalize_tz_phone(raw):
    assert normalize_tz_phone(raw) == "255712345678"


@pytest.mark.parametrize("raw", ["", None, "07123", "07123456789", "abc"])
def test_normalize_tz_phone_rejects(raw):
    with pytest.raises(ValueError):
        normalize_tz_phone(raw)


def _pay(**overrides):
    kwargs = {
        "organization_id": 7,
        "amount": 3500,
        "phone": "0712345678",
        "provider": "mpesa",
        "reference": "SALE-00001",
        "description": "Payment for SALE-00001",
        "sale_id": 11,
    }
    kwargs.update(overrides)
    return functions_client.initiate_mobile_money_payment(**kwargs)


class TestMobileMoney:

    def test_payload_and_headers(self, functions_calls):
        result = _pay()

        name, payload, authorization = functions_calls[0]
        assert name == "clickpesa-payment"
        assert authorization == "Bearer test-key"
        assert payload == {
            "amount": 3500,
            "phone": "255712345678",
            "provider": "MPESA",
            "reference": "SALE-00001",
            "description": "Payment for SALE-00001",
            "paymentType": "sale",
            "organizationId": 7,
            "saleId": 11,
        }
        assert result.message == "clickpesa-payment ok"
        assert result.to_dict()["orderReference"] == "SALE-00001"

    def test_subscription_payload(self, functions_calls):
        _pay(payment_type="subscription", sale_id=None, plan="premium", reference="SUB-7-1700000000")

        _, payload, _ = functions_calls[0]
        assert payload["paymentType"] == "subscription"
        assert payload["plan"] == "premium"
        assert "saleId" not in payload

    @pytest.mark.parametrize(
        "overrides",
        [
            {"amount": 0},
            {"amount": -10},
            {"amount": 10.5},
            {"amount": True},
            {"provider": "paypal"},
            {"provider": None},
            {"phone": "123"},
        ],
    )
    def test_invalid_input_never_calls_function(self, functions_calls, overrides):
        with pytest.raises(ValueError):
            _pay(**overrides)
        assert functions_calls == []

    def test_success_false(self, functions_calls):
        functions_calls.responder = lambda name, payload: httpx.Response(
            200, json={"success": False, "error": "Insufficient balance"}
        )
        with pytest.raises(FunctionInvocationError, match="Insufficient balance") as exc:
            _pay()
        assert exc.value.function == "clickpesa-payment"
        assert exc.value.details["success"] is False

    def test_http_error_status(self, functions_calls):
        functions_calls.responder = lambda name, payload: httpx.Response(401, json={"error": "Invalid token"})
        with pytest.raises(FunctionInvocationError, match="Invalid token") as exc:
            _pay()
        assert exc.value.status_code == 401

    def test_non_json_body(self, functions_calls):
        functions_calls.responder = lambda name, payload: httpx.Response(200, text="<html>gateway</html>")
        with pytest.raises(FunctionInvocationError, match="non-JSON"):
            _pay()


def test_transport_error(app, db_session):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    app.extensions["functions_client"] = FunctionsClient(
        base_url="https://functions.test/v1",
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(FunctionInvocationError, match="unreachable"):
        _pay()


def test_client_built_from_config(app, db_session):
    client = functions_client.get_functions_client()
    assert client.base_url == "https://functions.test/v1"
    assert client.api_key == "test-key"


def test_built_client_is_reused(app, db_session):
    first = functions_client.get_functions_client()
    second = functions_client.get_functions_client()

    assert first is second
    assert app.extensions["functions_client"] is first


def test_transaction_email_payload(functions_calls):
    functions_client.send_transaction_email(
        organization_id=3,
        transaction_type="sale",
        transaction_id=42,
        recipient_email="asha@example.com",
        recipient_name="Asha",
    )
    name, payload, _ = functions_calls[0]
    assert name == "send-transaction-email"
    assert payload == {
        "type": "sale",
        "transactionId": 42,
        "recipientEmail": "asha@example.com",
        "recipientName": "Asha",
        "organizationId": 3,
    }
