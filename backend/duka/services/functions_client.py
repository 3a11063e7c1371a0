# Overview: HTTP client for the hosted serverless functions (payments, transaction email).

"""
Serverless function client.

Every function is invoked the same way: POST JSON to
{FUNCTIONS_BASE_URL}/{name} with a bearer key, and expect a JSON body
{"success": bool, "message" | "error": str, ...}.

Transport errors, non-2xx statuses, non-JSON bodies and success=false all
raise FunctionInvocationError.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
from flask import current_app


PAYMENT_FUNCTION = "clickpesa-payment"
TRANSACTION_EMAIL_FUNCTION = "send-transaction-email"

MOBILE_MONEY_PROVIDERS = ("MPESA", "TIGOPESA", "AIRTELMONEY", "HALOPESA", "EZYPESA")


class FunctionInvocationError(Exception):
    """Raised when a serverless function call fails."""
    def __init__(self, message: str, *, function: str, status_code: int | None = None, details: dict | None = None):
        super().__init__(message)
        self.function = function
        self.status_code = status_code
        self.details = details or {}


@dataclass
class FunctionResult:
    function: str
    message: str | None
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"function": self.function, "message": self.message, **self.data}


class FunctionsClient:
    """
    Thin wrapper over httpx.Client.

    transport is injectable (httpx.MockTransport in tests).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.client = httpx.Client(timeout=timeout, transport=transport)

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def invoke(self, name: str, payload: dict) -> FunctionResult:
        url = f"{self.base_url}/{name}"
        try:
            response = self.client.post(url, headers=self._headers(), json=payload)
        except httpx.HTTPError as exc:
            raise FunctionInvocationError(f"{name} unreachable: {exc}", function=name) from exc

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            message = body.get("error") if isinstance(body, dict) else None
            raise FunctionInvocationError(
                message or f"{name} returned HTTP {response.status_code}",
                function=name,
                status_code=response.status_code,
            )

        if not isinstance(body, dict):
            raise FunctionInvocationError(
                f"{name} returned a non-JSON response",
                function=name,
                status_code=response.status_code,
            )

        if not body.get("success"):
            raise FunctionInvocationError(
                body.get("error") or f"{name} failed",
                function=name,
                status_code=response.status_code,
                details=body,
            )

        data = {k: v for k, v in body.items() if k not in ("success", "message")}
        return FunctionResult(function=name, message=body.get("message"), data=data)

    def close(self) -> None:
        self.client.close()


def get_functions_client() -> FunctionsClient:
    """
    Client for the current app.

    An instance stored in app.extensions["functions_client"] takes
    precedence; otherwise one is built from config and stored there, so
    the app shares a single connection pool.
    """
    client = current_app.extensions.get("functions_client")
    if client is None:
        client = FunctionsClient(
            base_url=current_app.config["FUNCTIONS_BASE_URL"],
            api_key=current_app.config.get("FUNCTIONS_API_KEY", ""),
            timeout=current_app.config.get("FUNCTIONS_TIMEOUT_SECONDS", 15.0),
        )
        current_app.extensions["functions_client"] = client
    return client


def normalize_tz_phone(phone: str) -> str:
    """
    Normalize a Tanzanian mobile number to 255XXXXXXXXX.

    Accepts 0XXXXXXXXX, XXXXXXXXX, 255XXXXXXXXX and +255XXXXXXXXX.
    """
    digits = "".join(ch for ch in (phone or "") if ch.isdigit())
    if digits.startswith("255"):
        digits = digits[3:]
    elif digits.startswith("0"):
        digits = digits[1:]
    if len(digits) != 9:
        raise ValueError("phone must be a 9-digit Tanzanian mobile number")
    return f"255{digits}"


def initiate_mobile_money_payment(
    *,
    organization_id: int,
    amount: int,
    phone: str,
    provider: str,
    reference: str,
    description: str | None = None,
    payment_type: str = "sale",
    sale_id: int | None = None,
    plan: str | None = None,
) -> FunctionResult:
    """Push a USSD payment prompt to the customer's phone."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError("amount must be a positive whole number")
    provider = (provider or "").upper()
    if provider not in MOBILE_MONEY_PROVIDERS:
        raise ValueError(f"provider must be one of: {', '.join(MOBILE_MONEY_PROVIDERS)}")

    payload = {
        "amount": amount,
        "phone": normalize_tz_phone(phone),
        "provider": provider,
        "reference": reference,
        "description": description,
        "paymentType": payment_type,
        "organizationId": organization_id,
    }
    if sale_id is not None:
        payload["saleId"] = sale_id
    if plan is not None:
        payload["plan"] = plan

    try:
        result = get_functions_client().invoke(PAYMENT_FUNCTION, payload)
    except FunctionInvocationError as exc:
        current_app.logger.warning("Payment initiation failed: org=%s ref=%s: %s", organization_id, reference, exc)
        raise

    current_app.logger.info("Payment initiated: org=%s ref=%s amount=%s", organization_id, reference, amount)
    return result


def send_transaction_email(
    *,
    organization_id: int,
    transaction_type: str,
    transaction_id: int,
    recipient_email: str,
    recipient_name: str | None = None,
) -> FunctionResult:
    return get_functions_client().invoke(
        TRANSACTION_EMAIL_FUNCTION,
        {
            "type": transaction_type,
            "transactionId": transaction_id,
            "recipientEmail": recipient_email,
            "recipientName": recipient_name,
            "organizationId": organization_id,
        },
    )
