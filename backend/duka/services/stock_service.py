# Overview: Stock status ledger; moves quantities between status counters with an audit trail.

"""
Stock Status Ledger

Every product's stock is split across five status counters (ProductStock):
available, reserved, damaged, returned_qc, scrap.

A stock adjustment moves a quantity from one status to another, or adds
quantity to a status for inbound types (receive, correction).

Invariants:
- One adjustment writes exactly: one StockAdjustment header, one or two
  counter changes, one StockAuditLogEntry per counter change, and the
  product's legacy stock_quantity / defective_quantity mirrors.
- All of it is one database transaction. Counters are read under
  SELECT ... FOR UPDATE and the source quantity is checked against the
  locked row, so concurrent adjustments cannot overdraw a counter.
- Counters never go negative (also enforced by a CHECK constraint).
- Audit rows of one adjustment sum to zero for transfers between
  statuses, and to +quantity for inbound types.
- Adjustment numbers come from the per-organization DocumentSequence
  (ADJ-00001, ADJ-00002, ...).
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Product,
    ProductStock,
    StockAdjustment,
    StockAuditLogEntry,
    STOCK_STATUSES,
    ADJUSTMENT_TYPES,
)
from ..validation import coerce_int, ValidationError
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number


# adjustment_type -> (default from_status, default to_status)
TRANSITION_DEFAULTS: dict[str, tuple[str | None, str | None]] = {
    "damage": ("available", "damaged"),
    "repair": ("damaged", "available"),
    "scrap": ("damaged", "scrap"),
    "return_to_supplier": ("damaged", "returned_qc"),
    "transfer": (None, None),
    "receive": (None, "available"),
    "correction": (None, "available"),
}

# Types that add stock without drawing from a source counter
INBOUND_TYPES = frozenset({"receive", "correction"})

# Legacy Product columns mirroring status counters
LEGACY_MIRRORS = {
    "available": "stock_quantity",
    "damaged": "defective_quantity",
}

# Free-text adjustment fields -> max length (None for unbounded)
TEXT_FIELD_LIMITS = {
    "reason": 255,
    "notes": None,
    "warehouse_location": 128,
}

ADJUSTMENT_LIST_LIMIT = 100
AUDIT_LOG_LIST_LIMIT = 200


class StockAdjustmentError(Exception):
    """Raised when a stock adjustment is rejected."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def check_text_fields(**fields) -> None:
    """Reject free-text fields that are not strings or run past their column."""
    for name, value in fields.items():
        if value is None:
            continue
        if not isinstance(value, str):
            raise StockAdjustmentError(f"{name} must be a string", details={"field": name})
        limit = TEXT_FIELD_LIMITS.get(name)
        if limit and len(value.strip()) > limit:
            raise StockAdjustmentError(
                f"{name} is longer than {limit} characters", details={"field": name}
            )


@dataclass(frozen=True)
class StockTransition:
    adjustment_type: str
    from_status: str | None
    to_status: str
    quantity: int

    @property
    def is_inbound(self) -> bool:
        return self.adjustment_type in INBOUND_TYPES


@dataclass(frozen=True)
class CounterChange:
    status: str
    action: str  # increase, decrease
    quantity_before: int
    quantity_change: int
    quantity_after: int


def resolve_transition(
    adjustment_type: str,
    quantity,
    *,
    from_status: str | None = None,
    to_status: str | None = None,
    reason: str | None = None,
) -> StockTransition:
    """
    Validate an adjustment request and apply the per-type status defaults.

    Pure: no database access. Raises StockAdjustmentError on any policy
    violation.
    """
    check_text_fields(reason=reason)

    if adjustment_type not in ADJUSTMENT_TYPES:
        raise StockAdjustmentError(
            f"Invalid adjustment_type: {adjustment_type}",
            details={"allowed": list(ADJUSTMENT_TYPES)},
        )

    try:
        qty = coerce_int("quantity", quantity)
    except ValidationError as exc:
        raise StockAdjustmentError(str(exc))
    if qty <= 0:
        raise StockAdjustmentError("quantity must be a positive integer")

    default_from, default_to = TRANSITION_DEFAULTS[adjustment_type]
    inbound = adjustment_type in INBOUND_TYPES

    src = None if inbound else (from_status or default_from)
    dst = to_status or default_to

    if not inbound and not src:
        raise StockAdjustmentError(f"from_status is required for {adjustment_type}")
    if not dst:
        raise StockAdjustmentError(f"to_status is required for {adjustment_type}")

    for label, status in (("from_status", src), ("to_status", dst)):
        if status is not None and status not in STOCK_STATUSES:
            raise StockAdjustmentError(
                f"Invalid {label}: {status}",
                details={"allowed": list(STOCK_STATUSES)},
            )

    if not inbound and src == dst:
        raise StockAdjustmentError("from_status and to_status must differ")

    if adjustment_type == "damage" and not (reason or "").strip():
        raise StockAdjustmentError("reason is required for damage adjustments")

    return StockTransition(
        adjustment_type=adjustment_type,
        from_status=src,
        to_status=dst,
        quantity=qty,
    )


def plan_counter_changes(transition: StockTransition, levels: dict[str, int]) -> list[CounterChange]:
    """
    Compute before/after snapshots for the counters a transition touches.

    levels maps status -> current quantity (missing statuses count as 0).
    Returns the decrease (if any) followed by the increase.
    """
    qty = transition.quantity
    changes: list[CounterChange] = []

    if not transition.is_inbound:
        src_before = levels.get(transition.from_status, 0)
        if qty > src_before:
            raise StockAdjustmentError(
                f"Insufficient stock in {transition.from_status} ({src_before} available)",
                details={
                    "status": transition.from_status,
                    "available": src_before,
                    "requested": qty,
                },
            )
        changes.append(CounterChange(
            status=transition.from_status,
            action="decrease",
            quantity_before=src_before,
            quantity_change=-qty,
            quantity_after=src_before - qty,
        ))

    dst_before = levels.get(transition.to_status, 0)
    changes.append(CounterChange(
        status=transition.to_status,
        action="increase",
        quantity_before=dst_before,
        quantity_change=qty,
        quantity_after=dst_before + qty,
    ))

    return changes


def _get_product(organization_id: int, product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id, organization_id=organization_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise StockAdjustmentError("Product not found")
    return product


def _locked_counter_query(product_id: int, statuses):
    return lock_for_update(
        db.session.query(ProductStock).filter(
            ProductStock.product_id == product_id,
            ProductStock.status.in_(list(statuses)),
        )
    )


def lock_counters(organization_id: int, product_id: int, statuses) -> dict[str, ProductStock]:
    """Load (creating at zero when missing) and lock the counters for statuses."""
    counters = {row.status: row for row in _locked_counter_query(product_id, statuses).all()}

    for status in statuses:
        if status in counters:
            continue
        # Each insert gets its own savepoint so a racing first insert only
        # undoes this step.
        try:
            with db.session.begin_nested():
                row = ProductStock(
                    organization_id=organization_id,
                    product_id=product_id,
                    status=status,
                    quantity=0,
                )
                db.session.add(row)
        except IntegrityError:
            current_app.logger.info(
                "Counter product=%s status=%s created concurrently; re-reading", product_id, status
            )
            row = _locked_counter_query(product_id, [status]).first()
            if row is None:
                raise
        counters[status] = row

    return counters


def sync_legacy_mirrors(product: Product, levels: dict[str, int]) -> None:
    """Rewrite Product.stock_quantity / defective_quantity from the counters."""
    for status, column in LEGACY_MIRRORS.items():
        if status in levels:
            setattr(product, column, levels[status])


def apply_counter_changes(
    *,
    product: Product,
    changes: list[CounterChange],
    counters: dict[str, ProductStock],
    transition_from: str | None,
    transition_to: str | None,
    reference_type: str,
    reference_id: int | None,
    adjustment_id: int | None,
    performed_by: int | None,
) -> list[StockAuditLogEntry]:
    """
    Write counter changes and their audit rows in the current transaction.

    Shared by adjustments and sales. Does not commit.
    """
    entries = []
    for change in changes:
        counters[change.status].quantity = change.quantity_after
        entry = StockAuditLogEntry(
            organization_id=product.organization_id,
            product_id=product.id,
            action=change.action,
            from_status=transition_from,
            to_status=transition_to,
            quantity_before=change.quantity_before,
            quantity_change=change.quantity_change,
            quantity_after=change.quantity_after,
            adjustment_id=adjustment_id,
            reference_type=reference_type,
            reference_id=reference_id,
            performed_by=performed_by,
        )
        db.session.add(entry)
        entries.append(entry)

    sync_legacy_mirrors(product, {c.status: c.quantity_after for c in changes})
    return entries


def create_adjustment(
    *,
    organization_id: int,
    product_id: int,
    adjustment_type: str,
    quantity,
    from_status: str | None = None,
    to_status: str | None = None,
    reason: str | None = None,
    notes: str | None = None,
    warehouse_location: str | None = None,
    performed_by: int | None = None,
) -> StockAdjustment:
    """
    Record a manual stock move and apply it to the status counters.

    All validation happens before the first write; any failure after that
    rolls the whole adjustment back.
    """
    check_text_fields(notes=notes, warehouse_location=warehouse_location)
    transition = resolve_transition(
        adjustment_type,
        quantity,
        from_status=from_status,
        to_status=to_status,
        reason=reason,
    )

    def _op() -> StockAdjustment:
        try:
            product = _get_product(organization_id, product_id, lock=True)
            if not product.is_active:
                raise StockAdjustmentError("Product is inactive")

            statuses = [s for s in (transition.from_status, transition.to_status) if s]
            counters = lock_counters(organization_id, product.id, statuses)
            levels = {status: row.quantity for status, row in counters.items()}
            changes = plan_counter_changes(transition, levels)

            adjustment = StockAdjustment(
                organization_id=organization_id,
                product_id=product.id,
                adjustment_number=next_document_number(
                    organization_id=organization_id,
                    document_type="stock_adjustment",
                ),
                adjustment_type=transition.adjustment_type,
                from_status=transition.from_status,
                to_status=transition.to_status,
                quantity=transition.quantity,
                reason=(reason or "").strip() or None,
                notes=notes,
                warehouse_location=(warehouse_location or "").strip() or None,
                approval_status="approved",
                reference_type="manual",
                performed_by=performed_by,
            )
            db.session.add(adjustment)
            db.session.flush()

            apply_counter_changes(
                product=product,
                changes=changes,
                counters=counters,
                transition_from=transition.from_status,
                transition_to=transition.to_status,
                reference_type="stock_adjustment",
                reference_id=adjustment.id,
                adjustment_id=adjustment.id,
                performed_by=performed_by,
            )

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            "Stock adjustment %s: org=%s product=%s %s %s->%s qty=%s",
            adjustment.adjustment_number,
            organization_id,
            product_id,
            transition.adjustment_type,
            transition.from_status,
            transition.to_status,
            transition.quantity,
        )
        return adjustment

    return run_with_retry(_op)


def seed_stock(*, organization_id: int, product_id: int, quantity: int, performed_by: int | None = None) -> StockAdjustment:
    """Opening balance for a new product, recorded as a receive adjustment."""
    return create_adjustment(
        organization_id=organization_id,
        product_id=product_id,
        adjustment_type="receive",
        quantity=quantity,
        notes="Opening stock",
        performed_by=performed_by,
    )


def get_stock_by_status(organization_id: int, product_id: int) -> dict[str, int]:
    """All five status counters for a product, zero-filled."""
    _get_product(organization_id, product_id)

    levels = {status: 0 for status in STOCK_STATUSES}
    rows = db.session.query(ProductStock).filter_by(product_id=product_id).all()
    for row in rows:
        levels[row.status] = row.quantity
    return levels


def get_organization_stock_summary(organization_id: int) -> dict:
    """Organization-wide totals per status and per-product breakdown."""
    totals = {status: 0 for status in STOCK_STATUSES}
    rows = (
        db.session.query(ProductStock.status, func.coalesce(func.sum(ProductStock.quantity), 0))
        .filter(ProductStock.organization_id == organization_id)
        .group_by(ProductStock.status)
        .all()
    )
    for status, quantity in rows:
        totals[status] = int(quantity)

    return {
        "organization_id": organization_id,
        "totals": totals,
        "total_units": sum(totals.values()),
    }


def _search_filter(term: str):
    like = f"%{term.strip()}%"
    return or_(Product.name.ilike(like), Product.sku.ilike(like))


def list_adjustments(
    organization_id: int,
    *,
    adjustment_type: str | None = None,
    search: str | None = None,
    product_id: int | None = None,
    limit: int = ADJUSTMENT_LIST_LIMIT,
) -> list[StockAdjustment]:
    """Latest first. search matches adjustment number, product name or SKU."""
    query = (
        db.session.query(StockAdjustment)
        .join(Product, Product.id == StockAdjustment.product_id)
        .filter(StockAdjustment.organization_id == organization_id)
    )
    if adjustment_type and adjustment_type != "all":
        query = query.filter(StockAdjustment.adjustment_type == adjustment_type)
    if product_id:
        query = query.filter(StockAdjustment.product_id == product_id)
    if search and search.strip():
        query = query.filter(or_(
            StockAdjustment.adjustment_number.ilike(f"%{search.strip()}%"),
            _search_filter(search),
        ))

    limit = max(1, min(limit, ADJUSTMENT_LIST_LIMIT))
    return (
        query.order_by(StockAdjustment.created_at.desc(), StockAdjustment.id.desc())
        .limit(limit)
        .all()
    )


def list_audit_log(
    organization_id: int,
    *,
    action: str | None = None,
    status: str | None = None,
    search: str | None = None,
    product_id: int | None = None,
    limit: int = AUDIT_LOG_LIST_LIMIT,
) -> list[StockAuditLogEntry]:
    """Latest first. status matches either side of the move."""
    query = (
        db.session.query(StockAuditLogEntry)
        .join(Product, Product.id == StockAuditLogEntry.product_id)
        .filter(StockAuditLogEntry.organization_id == organization_id)
    )
    if action and action != "all":
        query = query.filter(StockAuditLogEntry.action == action)
    if status and status != "all":
        query = query.filter(or_(
            StockAuditLogEntry.from_status == status,
            StockAuditLogEntry.to_status == status,
        ))
    if product_id:
        query = query.filter(StockAuditLogEntry.product_id == product_id)
    if search and search.strip():
        query = query.filter(_search_filter(search))

    limit = max(1, min(limit, AUDIT_LOG_LIST_LIMIT))
    return (
        query.order_by(StockAuditLogEntry.created_at.desc(), StockAuditLogEntry.id.desc())
        .limit(limit)
        .all()
    )
