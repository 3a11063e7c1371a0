from __future__ import annotations

from ..extensions import db
from duka.time_utils import to_utc_z


STOCK_STATUSES = ("available", "reserved", "damaged", "returned_qc", "scrap")

STOCK_STATUS_LABELS = {
    "available": "Available / Good",
    "reserved": "Reserved",
    "damaged": "Damaged / Defective",
    "returned_qc": "Returned / QC",
    "scrap": "Scrap / Write-off",
}

ADJUSTMENT_TYPES = (
    "damage",
    "repair",
    "scrap",
    "return_to_supplier",
    "transfer",
    "receive",
    "correction",
)


class Product(db.Model):
    """
    Product master data, scoped to an organization.

    stock_quantity and defective_quantity mirror the 'available' and
    'damaged' ProductStock counters. They are rewritten by every stock
    write.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "sku", name="uq_products_org_sku"),
        db.Index("ix_products_org_name", "organization_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=True)
    cost_cents = db.Column(db.Integer, nullable=True)
    reorder_level = db.Column(db.Integer, nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    defective_quantity = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} organization_id={self.organization_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "reorder_level": self.reorder_level,
            "stock_quantity": self.stock_quantity,
            "defective_quantity": self.defective_quantity,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductStock(db.Model):
    """Per-product, per-status quantity counter. Upserted, never summed from history."""
    __tablename__ = "product_stock"
    __table_args__ = (
        db.UniqueConstraint("product_id", "status", name="uq_product_stock_product_status"),
        db.CheckConstraint("quantity >= 0", name="ck_product_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("stock_rows", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "product_id": self.product_id,
            "status": self.status,
            "quantity": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }


class StockAdjustment(db.Model):
    """
    Header record of a manual stock move.

    IMMUTABLE: created once per adjustment, never updated or deleted.
    adjustment_number is allocated from DocumentSequence inside the same
    transaction as the counter writes.
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "adjustment_number", name="uq_stock_adjustments_org_number"),
        db.Index("ix_stock_adjustments_org_created", "organization_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    adjustment_number = db.Column(db.String(32), nullable=False)
    adjustment_type = db.Column(db.String(32), nullable=False, index=True)

    from_status = db.Column(db.String(16), nullable=True)
    to_status = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    warehouse_location = db.Column(db.String(128), nullable=True)

    approval_status = db.Column(db.String(16), nullable=False, default="approved")
    reference_type = db.Column(db.String(32), nullable=False, default="manual")

    performed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
    performer = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "product_id": self.product_id,
            "product": {"name": self.product.name, "sku": self.product.sku} if self.product else None,
            "adjustment_number": self.adjustment_number,
            "adjustment_type": self.adjustment_type,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "quantity": self.quantity,
            "reason": self.reason,
            "notes": self.notes,
            "warehouse_location": self.warehouse_location,
            "approval_status": self.approval_status,
            "reference_type": self.reference_type,
            "performed_by": self.performed_by,
            "created_at": to_utc_z(self.created_at),
        }


class StockAuditLogEntry(db.Model):
    """Append-only before/after snapshot of a single counter change."""
    __tablename__ = "stock_audit_log"
    __table_args__ = (
        db.Index("ix_stock_audit_log_org_created", "organization_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    action = db.Column(db.String(16), nullable=False, index=True)  # increase, decrease
    from_status = db.Column(db.String(16), nullable=True)
    to_status = db.Column(db.String(16), nullable=True)

    quantity_before = db.Column(db.Integer, nullable=False)
    quantity_change = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)

    adjustment_id = db.Column(db.Integer, db.ForeignKey("stock_adjustments.id"), nullable=True, index=True)
    reference_type = db.Column(db.String(32), nullable=False)  # stock_adjustment, sale
    reference_id = db.Column(db.Integer, nullable=True)

    performed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
    adjustment = db.relationship("StockAdjustment", backref=db.backref("audit_entries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "product_id": self.product_id,
            "product": {"name": self.product.name, "sku": self.product.sku} if self.product else None,
            "action": self.action,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "quantity_before": self.quantity_before,
            "quantity_change": self.quantity_change,
            "quantity_after": self.quantity_after,
            "adjustment_id": self.adjustment_id,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "performed_by": self.performed_by,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Atomic per-organization document sequences.

    Numbers are allocated from a locked counter row; two concurrent
    allocations for the same (organization, document_type) never return the
    same number.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "document_type", name="uq_doc_sequences_org_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
