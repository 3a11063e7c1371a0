"""
Point-of-sale service.

A sale is written in one transaction: products and their 'available'
counters are locked, stock is checked against the locked rows, the sale
number is allocated from the organization's DocumentSequence, and each
line decrements 'available' with one 'decrease' audit row
(reference_type='sale').
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Sale, SaleItem, Product, PAYMENT_METHODS
from ..validation import coerce_int, ValidationError
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number
from .stock_service import CounterChange, apply_counter_changes, lock_counters
from .tenant_service import require_in_org
from . import functions_client


SALE_LIST_LIMIT = 100


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _non_negative(name: str, value) -> int:
    if value in (None, ""):
        return 0
    try:
        amount = coerce_int(name, value)
    except ValidationError as exc:
        raise SaleError(str(exc))
    if amount < 0:
        raise SaleError(f"{name} must be >= 0")
    return amount


def _normalize_items(items) -> list[tuple[int, int]]:
    if not isinstance(items, list) or not items:
        raise SaleError("A sale needs at least one item")

    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise SaleError(f"Item {index + 1} is invalid")
        try:
            product_id = coerce_int("product_id", item.get("product_id"))
            quantity = coerce_int("quantity", item.get("quantity"))
        except ValidationError as exc:
            raise SaleError(f"Item {index + 1}: {exc}")
        if quantity <= 0:
            raise SaleError(f"Item {index + 1}: quantity must be a positive integer")
        lines.append((product_id, quantity))
    return lines


def _check_stock(requested: dict[int, int], available: dict[int, int], products: dict[int, Product]) -> None:
    insufficient = []
    for product_id, qty in requested.items():
        on_hand = available.get(product_id, 0)
        if on_hand < qty:
            insufficient.append({
                "product_id": product_id,
                "product_name": products[product_id].name,
                "requested_quantity": qty,
                "available": on_hand,
            })
    if insufficient:
        raise SaleError("Insufficient stock", details={"items": insufficient})


def create_sale(
    *,
    organization_id: int,
    items,
    payment_method: str = "cash",
    customer_name: str | None = None,
    customer_email: str | None = None,
    tax_cents=0,
    discount_cents=0,
    notes: str | None = None,
    created_by: int | None = None,
) -> Sale:
    """
    Create a completed sale and take its quantities out of 'available'.

    Raises SaleError (nothing written) for invalid input, foreign or
    inactive products, unpriced products and insufficient stock.
    """
    lines = _normalize_items(items)
    if payment_method not in PAYMENT_METHODS:
        raise SaleError(
            f"Invalid payment_method: {payment_method}",
            details={"allowed": list(PAYMENT_METHODS)},
        )
    tax = _non_negative("tax_cents", tax_cents)
    discount = _non_negative("discount_cents", discount_cents)

    requested: dict[int, int] = {}
    for product_id, qty in lines:
        requested[product_id] = requested.get(product_id, 0) + qty

    def _op() -> Sale:
        try:
            products = {
                p.id: p
                for p in lock_for_update(
                    db.session.query(Product).filter(
                        Product.id.in_(list(requested)),
                        Product.organization_id == organization_id,
                    )
                ).all()
            }
            missing = [pid for pid in requested if pid not in products]
            if missing:
                raise SaleError("Product not found", details={"product_ids": missing})
            for product in products.values():
                if not product.is_active:
                    raise SaleError(f"Product {product.name} is inactive")
                if product.price_cents is None:
                    raise SaleError(f"Product {product.name} has no price")

            counters = {
                pid: lock_counters(organization_id, pid, ["available"])["available"]
                for pid in requested
            }
            _check_stock(requested, {pid: row.quantity for pid, row in counters.items()}, products)

            subtotal = sum(products[pid].price_cents * qty for pid, qty in lines)
            if discount > subtotal + tax:
                raise SaleError("discount_cents cannot exceed the sale amount")

            sale = Sale(
                organization_id=organization_id,
                sale_number=next_document_number(
                    organization_id=organization_id,
                    document_type="sale",
                ),
                customer_name=customer_name,
                customer_email=customer_email,
                payment_method=payment_method,
                subtotal_cents=subtotal,
                tax_cents=tax,
                discount_cents=discount,
                total_cents=subtotal + tax - discount,
                status="completed",
                notes=notes,
                created_by=created_by,
            )
            db.session.add(sale)
            db.session.flush()

            for product_id, qty in lines:
                product = products[product_id]
                db.session.add(SaleItem(
                    sale_id=sale.id,
                    product_id=product_id,
                    quantity=qty,
                    unit_price_cents=product.price_cents,
                    line_total_cents=product.price_cents * qty,
                ))

                before = counters[product_id].quantity
                apply_counter_changes(
                    product=product,
                    changes=[CounterChange(
                        status="available",
                        action="decrease",
                        quantity_before=before,
                        quantity_change=-qty,
                        quantity_after=before - qty,
                    )],
                    counters={"available": counters[product_id]},
                    transition_from="available",
                    transition_to=None,
                    reference_type="sale",
                    reference_id=sale.id,
                    adjustment_id=None,
                    performed_by=created_by,
                )

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            "Sale %s created: org=%s items=%s total_cents=%s",
            sale.sale_number, organization_id, len(lines), sale.total_cents,
        )
        return sale

    sale = run_with_retry(_op)
    _send_receipt(sale)
    return sale


def _send_receipt(sale: Sale) -> None:
    if not current_app.config.get("SEND_TRANSACTION_EMAILS") or not sale.customer_email:
        return
    try:
        functions_client.send_transaction_email(
            organization_id=sale.organization_id,
            transaction_type="sale",
            transaction_id=sale.id,
            recipient_email=sale.customer_email,
            recipient_name=sale.customer_name,
        )
    except functions_client.FunctionInvocationError as exc:
        current_app.logger.warning("Receipt email for %s failed: %s", sale.sale_number, exc)


def get_sale(sale_id: int, org_id: int) -> Sale:
    """Raises TenantAccessError if missing or owned by another organization."""
    return require_in_org(Sale, sale_id, org_id, label="Sale")


def list_sales(
    org_id: int,
    *,
    search: str | None = None,
    payment_method: str | None = None,
    limit: int = SALE_LIST_LIMIT,
) -> list[Sale]:
    """Latest first. search matches sale number or customer name."""
    query = db.session.query(Sale).filter(Sale.organization_id == org_id)
    if payment_method and payment_method != "all":
        query = query.filter(Sale.payment_method == payment_method)
    if search and search.strip():
        like = f"%{search.strip()}%"
        query = query.filter(or_(Sale.sale_number.ilike(like), Sale.customer_name.ilike(like)))

    limit = max(1, min(limit, SALE_LIST_LIMIT))
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
