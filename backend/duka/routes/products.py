# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/duka/routes/products.py
"""
Product management routes with multi-tenant support.

MULTI-TENANT: All product operations are scoped to the caller's organization.
The org_id is derived from g.org_id (set by @require_auth).

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY permission
- Write operations require MANAGE_PRODUCTS permission
- CSV export requires EXPORT_REPORTS permission
"""
from flask import Blueprint, request, g
from ..services import products_service
from ..services.export_service import csv_response, ExportError
from ..services.stock_service import StockAdjustmentError
from ..services.tenant_service import TenantAccessError
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_org, require_permission

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "description", "price_cents", "cost_cents", "reorder_level", "is_active"},
    required_on_create={"name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_org
@require_permission("VIEW_INVENTORY")
def list_products():
    """
    List products with optional search and pagination.

    Query params:
    - search: str (optional) - matches name or SKU
    - include_inactive: bool (default false)
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    return products_service.list_products(
        g.org_id,
        search=request.args.get("search"),
        include_inactive=request.args.get("include_inactive", "false").lower() == "true",
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/low-stock")
@require_auth
@require_org
@require_permission("VIEW_INVENTORY")
def low_stock():
    items = products_service.list_low_stock(g.org_id)
    return {"items": items, "count": len(items)}


@products_bp.get("/export")
@require_auth
@require_org
@require_permission("EXPORT_REPORTS")
def export_products():
    """Active products as CSV."""
    items = products_service.list_products(g.org_id)["items"]
    rows = [
        {
            "SKU": p["sku"] or "",
            "Name": p["name"],
            "Price": p["price_cents"],
            "Cost": p["cost_cents"],
            "Available": p["stock_quantity"],
            "Damaged": p["defective_quantity"],
            "Reorder Level": p["reorder_level"],
        }
        for p in items
    ]
    try:
        return csv_response(rows, "products")
    except ExportError as e:
        return {"error": str(e)}, 400


@products_bp.get("/<int:product_id>")
@require_auth
@require_org
@require_permission("VIEW_INVENTORY")
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id, g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    return product.to_dict()


@products_bp.post("")
@require_auth
@require_org
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """
    Create a new product in the caller's organization.

    opening_stock (optional) is booked as a receive adjustment.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400
    payload = dict(payload)
    opening_stock = payload.pop("opening_stock", None)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(
            patch=patch,
            org_id=g.org_id,
            opening_stock=opening_stock,
            performed_by=g.current_user.id,
        )
    except ConflictError as e:
        return {"error": str(e)}, 409
    except (ValidationError, StockAdjustmentError) as e:
        return {"error": str(e)}, 400

    return created.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_org
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """Stock quantities are not writable here; use stock adjustments."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = products_service.update_product(product_id=product_id, patch=patch, org_id=g.org_id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return updated.to_dict(), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_org
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """Soft delete (deactivate)."""
    try:
        product = products_service.deactivate_product(product_id=product_id, org_id=g.org_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    return {"ok": True, "product": product.to_dict()}, 200
