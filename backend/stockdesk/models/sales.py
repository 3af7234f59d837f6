from __future__ import annotations

from ..extensions import db
from stockdesk.time_utils import to_utc_z


class Sale(db.Model):
    """
    A sale of one product in boxes and/or kilograms.

    Unit prices and profits are copied from the product at sale time so later
    price edits never rewrite history. Quantities and payment method only
    change through an approved SALE_EDIT; removal is a soft delete through an
    approved SALE_DELETE.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_client_status", "client_name", "payment_status"),
        db.Index("ix_sales_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    boxes_quantity = db.Column(db.Float, nullable=False, default=0.0)
    kg_quantity = db.Column(db.Float, nullable=False, default=0.0)
    box_price = db.Column(db.Float, nullable=False, default=0.0)
    kg_price = db.Column(db.Float, nullable=False, default=0.0)
    profit_per_box = db.Column(db.Float, nullable=False, default=0.0)
    profit_per_kg = db.Column(db.Float, nullable=False, default=0.0)

    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    profit = db.Column(db.Float, nullable=False, default=0.0)
    amount_paid = db.Column(db.Float, nullable=False, default=0.0)
    remaining_amount = db.Column(db.Float, nullable=False, default=0.0)

    # PENDING, PARTIAL, COMPLETED
    payment_status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    payment_method = db.Column(db.String(32), nullable=True)

    client_name = db.Column(db.String(255), nullable=True)
    phone_number = db.Column(db.String(32), nullable=True)

    performed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("sales", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "boxes_quantity": self.boxes_quantity,
            "kg_quantity": self.kg_quantity,
            "box_price": self.box_price,
            "kg_price": self.kg_price,
            "profit_per_box": self.profit_per_box,
            "profit_per_kg": self.profit_per_kg,
            "total_amount": self.total_amount,
            "profit": self.profit,
            "amount_paid": self.amount_paid,
            "remaining_amount": self.remaining_amount,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "client_name": self.client_name,
            "phone_number": self.phone_number,
            "performed_by_user_id": self.performed_by_user_id,
            "is_deleted": self.is_deleted,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SaleAudit(db.Model):
    """
    Requested amendment (EDIT or DELETE) to a sale, with before/after values.
    Approval state lives on the linked ApprovalRequest.
    """
    __tablename__ = "sale_audits"
    __table_args__ = (
        db.Index("ix_sale_audits_sale", "sale_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)

    # EDIT, DELETE
    audit_type = db.Column(db.String(16), nullable=False)

    boxes_before = db.Column(db.Float, nullable=False, default=0.0)
    boxes_after = db.Column(db.Float, nullable=False, default=0.0)
    kg_before = db.Column(db.Float, nullable=False, default=0.0)
    kg_after = db.Column(db.Float, nullable=False, default=0.0)

    old_values = db.Column(db.JSON, nullable=True)
    new_values = db.Column(db.JSON, nullable=True)

    reason = db.Column(db.Text, nullable=False)
    performed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approval_request_id = db.Column(db.Integer, db.ForeignKey("approval_requests.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("audits", lazy=True))
    approval_request = db.relationship("ApprovalRequest")

    @property
    def approval_status(self) -> str:
        return self.approval_request.status if self.approval_request else "PENDING"

    def to_dict(self) -> dict:
        request = self.approval_request
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "audit_type": self.audit_type,
            "boxes_change": {"before": self.boxes_before, "after": self.boxes_after},
            "kg_change": {"before": self.kg_before, "after": self.kg_after},
            "old_values": self.old_values,
            "new_values": self.new_values,
            "reason": self.reason,
            "performed_by_user_id": self.performed_by_user_id,
            "approval_request_id": self.approval_request_id,
            "approval_status": self.approval_status,
            "approved_by_user_id": request.decided_by_user_id if request else None,
            "approved_at": to_utc_z(request.decided_at) if request else None,
            "reject_reason": request.reject_reason if request else None,
            "created_at": to_utc_z(self.created_at),
        }


class SalePayment(db.Model):
    """Money received against a sale after it was recorded."""
    __tablename__ = "sale_payments"
    __table_args__ = (
        db.Index("ix_sale_payments_sale", "sale_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(32), nullable=True)
    received_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "amount": self.amount,
            "payment_method": self.payment_method,
            "received_by_user_id": self.received_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
