# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/duka/routes/sales.py
"""
Point-of-sale routes.

MULTI-TENANT: Sales and their products are scoped to the caller's
organization. A sale id from another organization is reported as
"Sale not found".

SECURITY:
- Creating a sale requires CREATE_SALE
- Reading sales requires VIEW_SALES
- CSV export requires EXPORT_REPORTS
"""

from flask import Blueprint, request, jsonify, g

from ..services import sales_service
from ..services.sales_service import SaleError
from ..services.tenant_service import TenantAccessError
from ..services.export_service import csv_response, ExportError
from ..decorators import require_auth, require_org, require_permission

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_org
@require_permission("CREATE_SALE")
def create_sale_route():
    """
    Create a completed sale.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2}, ...],
        "payment_method": "cash",   // cash, card, mobile_money, bank_transfer, credit
        "customer_name": "...",
        "customer_email": "...",
        "tax_cents": 0,
        "discount_cents": 0,
        "notes": "..."
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        sale = sales_service.create_sale(
            organization_id=g.org_id,
            items=data.get("items"),
            payment_method=data.get("payment_method") or "cash",
            customer_name=data.get("customer_name"),
            customer_email=data.get("customer_email"),
            tax_cents=data.get("tax_cents", 0),
            discount_cents=data.get("discount_cents", 0),
            notes=data.get("notes"),
            created_by=g.current_user.id,
        )
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400

    return jsonify({"sale": sale.to_dict(include_items=True)}), 201


@sales_bp.get("")
@require_auth
@require_org
@require_permission("VIEW_SALES")
def list_sales_route():
    """Query params: search, payment_method, limit (max 100)"""
    sales = sales_service.list_sales(
        g.org_id,
        search=request.args.get("search"),
        payment_method=request.args.get("payment_method"),
        limit=request.args.get("limit", sales_service.SALE_LIST_LIMIT, type=int),
    )
    return jsonify({"sales": [s.to_dict() for s in sales], "count": len(sales)})


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_org
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id, g.org_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"sale": sale.to_dict(include_items=True)})


@sales_bp.get("/export")
@require_auth
@require_org
@require_permission("EXPORT_REPORTS")
def export_sales_route():
    sales = sales_service.list_sales(
        g.org_id,
        search=request.args.get("search"),
        payment_method=request.args.get("payment_method"),
    )
    rows = [
        {
            "Sale #": s.sale_number,
            "Date": s.created_at.strftime("%Y-%m-%d %H:%M") if s.created_at else "",
            "Customer": s.customer_name,
            "Payment Method": s.payment_method,
            "Items": len(s.items),
            "Subtotal": s.subtotal_cents,
            "Tax": s.tax_cents,
            "Discount": s.discount_cents,
            "Total": s.total_cents,
            "Status": s.status,
        }
        for s in sales
    ]
    try:
        return csv_response(rows, "sales")
    except ExportError as e:
        return jsonify({"error": str(e)}), 400
