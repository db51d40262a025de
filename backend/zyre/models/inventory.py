from __future__ import annotations

from ..extensions import db
from zyre.time_utils import to_utc_z, utcnow


MOVEMENT_TYPES = ("INBOUND", "OUTBOUND", "RETURN", "TRANSFER", "ADJUSTMENT", "EXPIRED")


class Product(db.Model):
    """
    Product master data.

    safety_stock is the on-hand level at or below which an active inventory
    item shows up in the low-stock report.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    generic_name = db.Column(db.String(255), nullable=True)
    brand = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)

    safety_stock = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "generic_name": self.generic_name,
            "brand": self.brand,
            "description": self.description,
            "safety_stock": self.safety_stock,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryBatch(db.Model):
    """
    A received lot.

    Status moves ACTIVE -> EXPIRED when the expiry sweep finds
    expiry_date in the past. Batch numbers are unique per supplier.
    Deleting a batch only clears is_active; restore sets it again.
    """
    __tablename__ = "inventory_batches"
    __table_args__ = (
        db.UniqueConstraint("supplier_name", "batch_number", name="uq_inventory_batches_supplier_batch"),
        db.Index("ix_inventory_batches_status_expiry", "status", "expiry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    reference_number = db.Column(db.String(32), nullable=False, unique=True)
    batch_number = db.Column(db.String(64), nullable=False)
    supplier_name = db.Column(db.String(255), nullable=False)
    invoice_number = db.Column(db.String(64), nullable=True)
    invoice_date = db.Column(db.Date, nullable=True)
    manufacturing_date = db.Column(db.Date, nullable=True)
    expiry_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="ACTIVE", index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship("InventoryItem", back_populates="batch", lazy=True, order_by="InventoryItem.id")

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "reference_number": self.reference_number,
            "batch_number": self.batch_number,
            "supplier_name": self.supplier_name,
            "invoice_number": self.invoice_number,
            "invoice_date": self.invoice_date.isoformat() if self.invoice_date else None,
            "manufacturing_date": self.manufacturing_date.isoformat() if self.manufacturing_date else None,
            "expiry_date": self.expiry_date.isoformat(),
            "status": self.status,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            items = [item.to_dict() for item in self.items]
            data["items"] = items
            data["items_count"] = len(items)
            data["total_cost_value_cents"] = sum(i.cost_price_cents * i.initial_quantity for i in self.items)
            data["total_retail_value_cents"] = sum(i.retail_price_cents * i.initial_quantity for i in self.items)
        return data


class InventoryItem(db.Model):
    """
    Stock-keeping unit: one product inside one batch.

    current_quantity always equals the replay of the item's movements.
    """
    __tablename__ = "inventory_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("inventory_batches.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    initial_quantity = db.Column(db.Integer, nullable=False)
    current_quantity = db.Column(db.Integer, nullable=False)

    # Authoritative storage in cents
    cost_price_cents = db.Column(db.Integer, nullable=False)
    retail_price_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="ACTIVE", index=True)
    last_update_reason = db.Column(db.String(255), nullable=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    batch = db.relationship("InventoryBatch", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "initial_quantity": self.initial_quantity,
            "current_quantity": self.current_quantity,
            "cost_price_cents": self.cost_price_cents,
            "retail_price_cents": self.retail_price_cents,
            "status": self.status,
            "last_update_reason": self.last_update_reason,
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    Append-only stock ledger. Never updated or deleted.

    quantity is the stored magnitude of the transaction; only ADJUSTMENT
    rows use its sign for direction.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_inventory_movements_item_created", "inventory_item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True, index=True)

    previous_quantity = db.Column(db.Integer, nullable=True)
    new_quantity = db.Column(db.Integer, nullable=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    inventory_item = db.relationship("InventoryItem", backref=db.backref("movements", lazy=True))
    created_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_item_id": self.inventory_item_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "reason": self.reason,
            "reference_id": self.reference_id,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "created_at": to_utc_z(self.created_at),
        }
