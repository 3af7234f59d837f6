from __future__ import annotations

from ..extensions import db
from stockdesk.time_utils import to_utc_z, to_iso_date
from stockdesk.services.conversion_service import days_left


class ProductCategory(db.Model):
    __tablename__ = "product_categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_product_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data plus current on-hand stock.

    DUAL UNITS:
    quantity_box and quantity_kg are tracked independently. They are linked by
    box_to_kg_ratio for pricing but partial-kg sales and damage let them drift;
    stock corrections exist to reconcile that drift. Both are always >= 0.

    DERIVED ECONOMICS:
    cost_per_kg, price_per_kg, profit_per_box and profit_per_kg are stored but
    always written through conversion_service.derive_unit_economics().
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_name", "category_id", "name"),
        db.CheckConstraint("quantity_box >= 0", name="ck_products_quantity_box_non_negative"),
        db.CheckConstraint("quantity_kg >= 0", name="ck_products_quantity_kg_non_negative"),
        db.CheckConstraint("box_to_kg_ratio > 0", name="ck_products_ratio_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("product_categories.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True, unique=True)
    description = db.Column(db.Text, nullable=True)

    quantity_box = db.Column(db.Float, nullable=False, default=0.0)
    quantity_kg = db.Column(db.Float, nullable=False, default=0.0)
    box_to_kg_ratio = db.Column(db.Float, nullable=False)

    cost_per_box = db.Column(db.Float, nullable=False, default=0.0)
    cost_per_kg = db.Column(db.Float, nullable=False, default=0.0)
    price_per_box = db.Column(db.Float, nullable=False, default=0.0)
    price_per_kg = db.Column(db.Float, nullable=False, default=0.0)
    profit_per_box = db.Column(db.Float, nullable=False, default=0.0)
    profit_per_kg = db.Column(db.Float, nullable=False, default=0.0)

    low_stock_threshold = db.Column(db.Float, nullable=False, default=0.0)
    expiry_date = db.Column(db.Date, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("ProductCategory", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.quantity_box <= self.low_stock_threshold

    @property
    def days_left(self) -> int | None:
        return days_left(self.expiry_date)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} box={self.quantity_box} kg={self.quantity_kg}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "name": self.name,
            "sku": self.sku,
            "description": self.description,
            "quantity_box": self.quantity_box,
            "quantity_kg": self.quantity_kg,
            "box_to_kg_ratio": self.box_to_kg_ratio,
            "cost_per_box": self.cost_per_box,
            "cost_per_kg": self.cost_per_kg,
            "price_per_box": self.price_per_box,
            "price_per_kg": self.price_per_kg,
            "profit_per_box": self.profit_per_box,
            "profit_per_kg": self.profit_per_kg,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "expiry_date": to_iso_date(self.expiry_date),
            "days_left": self.days_left,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Restock(db.Model):
    """One delivery of stock. Written by inventory_service.restock()."""
    __tablename__ = "restocks"
    __table_args__ = (
        db.Index("ix_restocks_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    boxes_added = db.Column(db.Float, nullable=False, default=0.0)
    kg_added = db.Column(db.Float, nullable=False, default=0.0)
    total_cost = db.Column(db.Float, nullable=False, default=0.0)

    delivery_date = db.Column(db.Date, nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    performed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("restocks", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "boxes_added": self.boxes_added,
            "kg_added": self.kg_added,
            "total_cost": self.total_cost,
            "delivery_date": to_iso_date(self.delivery_date),
            "expiry_date": to_iso_date(self.expiry_date),
            "performed_by_user_id": self.performed_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class StockMovement(db.Model):
    """
    Log of every change to a product's on-hand quantities.

    LIFECYCLE:
    - Direct operations (RESTOCK, SALE) are written COMPLETED.
    - Audited operations (DAMAGE, CORRECTION, PRODUCT_EDIT, sale amendments)
      are written PENDING with the proposed change, then finalized as
      COMPLETED (new_* filled from the applied values) or REJECTED.

    IMMUTABLE once finalized: never update a COMPLETED or REJECTED row.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        db.Index("ix_stock_movements_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(32), nullable=False, index=True)
    field_changed = db.Column(db.String(64), nullable=True)

    box_change = db.Column(db.Float, nullable=False, default=0.0)
    kg_change = db.Column(db.Float, nullable=False, default=0.0)

    old_box = db.Column(db.Float, nullable=True)
    new_box = db.Column(db.Float, nullable=True)
    old_kg = db.Column(db.Float, nullable=True)
    new_kg = db.Column(db.Float, nullable=True)

    reason = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="COMPLETED")

    performed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approval_request_id = db.Column(db.Integer, db.ForeignKey("approval_requests.id"), nullable=True, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    occurred_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "field_changed": self.field_changed,
            "box_change": self.box_change,
            "kg_change": self.kg_change,
            "old_value": {"box": self.old_box, "kg": self.old_kg},
            "new_value": {"box": self.new_box, "kg": self.new_kg},
            "reason": self.reason,
            "status": self.status,
            "performed_by_user_id": self.performed_by_user_id,
            "approval_request_id": self.approval_request_id,
            "sale_id": self.sale_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class DamagedProductRecord(db.Model):
    """
    Reported damage. Stock is only decremented once the linked
    DAMAGE_REPORT approval request is approved.
    """
    __tablename__ = "damaged_products"
    __table_args__ = (
        db.Index("ix_damaged_products_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    damaged_boxes = db.Column(db.Float, nullable=False, default=0.0)
    damaged_kg = db.Column(db.Float, nullable=False, default=0.0)
    reason = db.Column(db.Text, nullable=False)
    damage_date = db.Column(db.Date, nullable=False)
    loss_value = db.Column(db.Float, nullable=False, default=0.0)

    # Opaque blob-storage reference (photo of the damage)
    evidence_ref = db.Column(db.String(512), nullable=True)

    reported_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approval_request_id = db.Column(db.Integer, db.ForeignKey("approval_requests.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("damage_records", lazy=True))
    approval_request = db.relationship("ApprovalRequest")

    @property
    def approval(self) -> str:
        return self.approval_request.status if self.approval_request else "PENDING"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "damaged_boxes": self.damaged_boxes,
            "damaged_kg": self.damaged_kg,
            "reason": self.reason,
            "damage_date": to_iso_date(self.damage_date),
            "loss_value": self.loss_value,
            "evidence_ref": self.evidence_ref,
            "approval": self.approval,
            "reported_by_user_id": self.reported_by_user_id,
            "approval_request_id": self.approval_request_id,
            "created_at": to_utc_z(self.created_at),
        }


class StockCorrection(db.Model):
    """Signed box/kg adjustment awaiting (or past) approval."""
    __tablename__ = "stock_corrections"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    box_adjustment = db.Column(db.Float, nullable=False, default=0.0)
    kg_adjustment = db.Column(db.Float, nullable=False, default=0.0)
    reason = db.Column(db.Text, nullable=False)

    requested_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approval_request_id = db.Column(db.Integer, db.ForeignKey("approval_requests.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("corrections", lazy=True))
    approval_request = db.relationship("ApprovalRequest")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "box_adjustment": self.box_adjustment,
            "kg_adjustment": self.kg_adjustment,
            "reason": self.reason,
            "status": self.approval_request.status if self.approval_request else "PENDING",
            "requested_by_user_id": self.requested_by_user_id,
            "approval_request_id": self.approval_request_id,
            "created_at": to_utc_z(self.created_at),
        }
