"""
Products Service with Multi-Tenant Support

MULTI-TENANT: All product operations are scoped to one organization.
SKU is unique per organization. Stock quantities are never written here;
they change only through stock_service (adjustments) and sales_service.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Product
from ..validation import ConflictError, ValidationError, coerce_int
from .tenant_service import require_in_org
from . import stock_service

PRODUCT_MUTABLE_FIELDS = {
    "sku",
    "name",
    "description",
    "price_cents",
    "cost_cents",
    "reorder_level",
    "is_active",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_sku_free(org_id: int, sku: str | None, exclude_id: int | None = None) -> None:
    if not sku:
        return
    query = db.session.query(Product).filter(
        Product.organization_id == org_id,
        Product.sku == sku,
    )
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("SKU already exists in this organization.")


def list_products(
    org_id: int,
    *,
    search: str | None = None,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Tenant-scoped product listing with optional search and pagination.

    Returns a dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product).filter(Product.organization_id == org_id)
    if not include_inactive:
        base_query = base_query.filter(Product.is_active.is_(True))
    if search and search.strip():
        like = f"%{search.strip()}%"
        base_query = base_query.filter(or_(Product.name.ilike(like), Product.sku.ilike(like)))

    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int, org_id: int) -> Product:
    """Raises TenantAccessError if missing or owned by another organization."""
    return require_in_org(Product, product_id, org_id, label="Product")


def create_product(
    *,
    patch: dict,
    org_id: int,
    opening_stock=None,
    performed_by: int | None = None,
) -> Product:
    """
    Create a product from a validated patch.

    opening_stock > 0 is booked as a receive adjustment into 'available'.

    Raises ConflictError if the SKU is taken in the organization.
    """
    _ensure_sku_free(org_id, patch.get("sku"))

    qty = 0
    if opening_stock not in (None, ""):
        qty = coerce_int("opening_stock", opening_stock)
        if qty < 0:
            raise ValidationError("opening_stock must be >= 0")

    p = Product(organization_id=org_id)
    apply_product_patch(p, patch)
    db.session.add(p)
    db.session.commit()

    current_app.logger.info("Product created: org=%s id=%s sku=%s", org_id, p.id, p.sku)

    if qty > 0:
        stock_service.seed_stock(
            organization_id=org_id,
            product_id=p.id,
            quantity=qty,
            performed_by=performed_by,
        )
        db.session.refresh(p)

    return p


def update_product(*, product_id: int, patch: dict, org_id: int) -> Product:
    p = get_product(product_id, org_id)
    if "sku" in patch:
        _ensure_sku_free(org_id, patch["sku"], exclude_id=p.id)

    apply_product_patch(p, patch)
    db.session.commit()
    return p


def deactivate_product(*, product_id: int, org_id: int) -> Product:
    """
    Soft delete: products stay referenced by adjustments, audit rows and
    sale items, so they are only marked inactive.
    """
    p = get_product(product_id, org_id)
    p.is_active = False
    db.session.commit()
    return p


def list_low_stock(org_id: int) -> list[dict]:
    """Active products whose available quantity is at or below reorder_level."""
    products = (
        db.session.query(Product)
        .filter(
            Product.organization_id == org_id,
            Product.is_active.is_(True),
            Product.reorder_level.isnot(None),
            Product.stock_quantity <= Product.reorder_level,
        )
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
        .all()
    )
    return [p.to_dict() for p in products]
