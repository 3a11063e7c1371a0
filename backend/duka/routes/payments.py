# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/duka/routes/payments.py
"""
Mobile money and transaction email routes.

Both go through the hosted serverless functions (see
services/functions_client.py); this backend only initiates the request and
reports the function's answer. Completion arrives out of band.

SECURITY:
- INITIATE_PAYMENT for sale payments
- MANAGE_ORGANIZATION for subscription payments
- VIEW_SALES for (re)sending a receipt email
"""

from flask import Blueprint, request, jsonify, g

from ..extensions import db
from ..models import Organization
from ..services import functions_client, sales_service, platform_service
from ..services.functions_client import FunctionInvocationError
from ..services.tenant_service import TenantAccessError
from ..validation import ValidationError
from ..decorators import require_auth, require_org, require_permission
from duka.time_utils import utcnow


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _function_error(e: FunctionInvocationError):
    return jsonify({"error": str(e), "function": e.function}), 502


def _whole_tzs(cents: int) -> int:
    """Amounts are charged in whole shillings, rounded up."""
    return -(-cents // 100)


@payments_bp.post("/mobile-money/sale")
@require_auth
@require_org
@require_permission("INITIATE_PAYMENT")
def pay_sale():
    """
    Push a USSD prompt for a sale's total.

    Request body: {"sale_id": 1, "phone": "0712345678", "provider": "MPESA"}
    """
    data = request.get_json(silent=True) or {}
    sale_id = data.get("sale_id")
    if not isinstance(sale_id, int) or isinstance(sale_id, bool):
        return jsonify({"error": "sale_id must be an integer"}), 400

    try:
        sale = sales_service.get_sale(sale_id, g.org_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404

    try:
        result = functions_client.initiate_mobile_money_payment(
            organization_id=g.org_id,
            amount=_whole_tzs(sale.total_cents),
            phone=data.get("phone"),
            provider=data.get("provider"),
            reference=sale.sale_number,
            description=f"Payment for {sale.sale_number}",
            payment_type="sale",
            sale_id=sale.id,
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except FunctionInvocationError as e:
        return _function_error(e)

    return jsonify(result.to_dict()), 202


@payments_bp.post("/mobile-money/subscription")
@require_auth
@require_org
@require_permission("MANAGE_ORGANIZATION")
def pay_subscription():
    """
    Push a USSD prompt for a plan upgrade.

    Request body: {"plan": "premium", "phone": "0712345678", "provider": "MPESA"}
    """
    data = request.get_json(silent=True) or {}
    plan = data.get("plan")

    try:
        amount = platform_service.plan_price(plan)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    org = db.session.get(Organization, g.org_id)
    try:
        result = functions_client.initiate_mobile_money_payment(
            organization_id=org.id,
            amount=amount,
            phone=data.get("phone"),
            provider=data.get("provider"),
            reference=f"SUB-{org.id}-{int(utcnow().timestamp())}",
            description=f"{plan.capitalize()} Subscription",
            payment_type="subscription",
            plan=plan,
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except FunctionInvocationError as e:
        return _function_error(e)

    return jsonify(result.to_dict()), 202


@payments_bp.post("/receipts/<int:sale_id>")
@require_auth
@require_org
@require_permission("VIEW_SALES")
def send_receipt(sale_id: int):
    """
    Email a sale receipt.

    Request body (optional): {"email": "...", "name": "..."}; defaults to
    the sale's customer.
    """
    data = request.get_json(silent=True) or {}
    try:
        sale = sales_service.get_sale(sale_id, g.org_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404

    email = data.get("email") or sale.customer_email
    if not email:
        return jsonify({"error": "No recipient email"}), 400

    try:
        result = functions_client.send_transaction_email(
            organization_id=g.org_id,
            transaction_type="sale",
            transaction_id=sale.id,
            recipient_email=email,
            recipient_name=data.get("name") or sale.customer_name,
        )
    except FunctionInvocationError as e:
        return _function_error(e)

    return jsonify(result.to_dict()), 200
