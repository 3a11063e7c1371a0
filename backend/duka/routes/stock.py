# Overview: Flask API routes for stock status operations; parses input and returns JSON responses.

# backend/duka/routes/stock.py
"""
Stock status ledger routes.

MULTI-TENANT: Products are resolved through require_in_org first, so an id
from another organization is reported as "Product not found" (404) and
logged as a cross-tenant attempt.

SECURITY:
- Reads require VIEW_INVENTORY, the audit log VIEW_STOCK_AUDIT
- Adjustments require ADJUST_STOCK
- CSV exports require EXPORT_REPORTS
"""

from flask import Blueprint, request, jsonify, g

from ..models import STOCK_STATUS_LABELS
from ..services import stock_service
from ..services.products_service import get_product
from ..services.stock_service import StockAdjustmentError
from ..services.tenant_service import TenantAccessError
from ..services.export_service import csv_response, ExportError
from ..decorators import require_auth, require_org, require_permission

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _list_args() -> dict:
    return {
        "search": request.args.get("search"),
        "product_id": request.args.get("product_id", type=int),
    }


@stock_bp.get("/summary")
@require_auth
@require_org
@require_permission("VIEW_INVENTORY")
def stock_summary():
    summary = stock_service.get_organization_stock_summary(g.org_id)
    summary["labels"] = STOCK_STATUS_LABELS
    return jsonify(summary)


@stock_bp.get("/products/<int:product_id>")
@require_auth
@require_org
@require_permission("VIEW_INVENTORY")
def product_stock(product_id: int):
    """All five status counters for one product."""
    try:
        product = get_product(product_id, g.org_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404

    levels = stock_service.get_stock_by_status(g.org_id, product.id)
    return jsonify({
        "product": product.to_dict(),
        "stock": levels,
        "total": sum(levels.values()),
    })


@stock_bp.post("/adjustments")
@require_auth
@require_org
@require_permission("ADJUST_STOCK")
def create_adjustment():
    """
    Record a stock adjustment.

    Request body:
    {
        "product_id": 1,
        "adjustment_type": "damage",   // damage, repair, scrap, return_to_supplier,
                                       // transfer, receive, correction
        "quantity": 3,
        "from_status": "available",    // optional, defaults per type
        "to_status": "damaged",        // optional, defaults per type
        "reason": "Dropped in transit",  // required for damage
        "notes": "...",
        "warehouse_location": "Shelf B2"
    }
    """
    data = request.get_json(silent=True) or {}

    product_id = data.get("product_id")
    if not isinstance(product_id, int) or isinstance(product_id, bool):
        return jsonify({"error": "product_id must be an integer"}), 400

    try:
        product = get_product(product_id, g.org_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404

    try:
        adjustment = stock_service.create_adjustment(
            organization_id=g.org_id,
            product_id=product.id,
            adjustment_type=data.get("adjustment_type"),
            quantity=data.get("quantity"),
            from_status=data.get("from_status"),
            to_status=data.get("to_status"),
            reason=data.get("reason"),
            notes=data.get("notes"),
            warehouse_location=data.get("warehouse_location"),
            performed_by=g.current_user.id,
        )
    except StockAdjustmentError as e:
        return jsonify({"error": str(e), "details": e.details}), 400

    return jsonify({
        "adjustment": adjustment.to_dict(),
        "stock": stock_service.get_stock_by_status(g.org_id, product.id),
    }), 201


@stock_bp.get("/adjustments")
@require_auth
@require_org
@require_permission("VIEW_INVENTORY")
def list_adjustments():
    """
    Query params: adjustment_type, search, product_id, limit (max 100)
    """
    adjustments = stock_service.list_adjustments(
        g.org_id,
        adjustment_type=request.args.get("adjustment_type"),
        limit=request.args.get("limit", stock_service.ADJUSTMENT_LIST_LIMIT, type=int),
        **_list_args(),
    )
    return jsonify({"adjustments": [a.to_dict() for a in adjustments], "count": len(adjustments)})


@stock_bp.get("/audit-log")
@require_auth
@require_org
@require_permission("VIEW_STOCK_AUDIT")
def list_audit_log():
    """
    Query params: action (increase/decrease), status, search, product_id, limit (max 200)
    """
    entries = stock_service.list_audit_log(
        g.org_id,
        action=request.args.get("action"),
        status=request.args.get("status"),
        limit=request.args.get("limit", stock_service.AUDIT_LOG_LIST_LIMIT, type=int),
        **_list_args(),
    )
    return jsonify({"entries": [e.to_dict() for e in entries], "count": len(entries)})


@stock_bp.get("/adjustments/export")
@require_auth
@require_org
@require_permission("EXPORT_REPORTS")
def export_adjustments():
    adjustments = stock_service.list_adjustments(
        g.org_id,
        adjustment_type=request.args.get("adjustment_type"),
        **_list_args(),
    )
    rows = [
        {
            "Adjustment #": a.adjustment_number,
            "Date": a.created_at.strftime("%Y-%m-%d %H:%M") if a.created_at else "",
            "Product": a.product.name,
            "SKU": a.product.sku or "",
            "Type": a.adjustment_type,
            "From": STOCK_STATUS_LABELS.get(a.from_status, "") if a.from_status else "",
            "To": STOCK_STATUS_LABELS.get(a.to_status, a.to_status),
            "Quantity": a.quantity,
            "Reason": a.reason,
            "Location": a.warehouse_location,
        }
        for a in adjustments
    ]
    try:
        return csv_response(rows, "stock_adjustments")
    except ExportError as e:
        return jsonify({"error": str(e)}), 400


@stock_bp.get("/audit-log/export")
@require_auth
@require_org
@require_permission("EXPORT_REPORTS")
def export_audit_log():
    entries = stock_service.list_audit_log(
        g.org_id,
        action=request.args.get("action"),
        status=request.args.get("status"),
        **_list_args(),
    )
    rows = [
        {
            "Date": entry.created_at.strftime("%Y-%m-%d %H:%M") if entry.created_at else "",
            "Product": entry.product.name,
            "SKU": entry.product.sku or "",
            "Action": entry.action,
            "From": entry.from_status,
            "To": entry.to_status,
            "Before": entry.quantity_before,
            "Change": entry.quantity_change,
            "After": entry.quantity_after,
            "Reference": entry.reference_type,
        }
        for entry in entries
    ]
    try:
        return csv_response(rows, "stock_audit_log")
    except ExportError as e:
        return jsonify({"error": str(e)}), 400
