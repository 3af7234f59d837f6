from __future__ import annotations

from ..extensions import db
from stockdesk.time_utils import to_iso_date, to_utc_z


class Deposit(db.Model):
    """
    Cash taken to a bank or mobile-money account.

    Finalized by an approved DEPOSIT approval request.
    """
    __tablename__ = "deposits"
    __table_args__ = (
        db.Index("ix_deposits_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    deposit_type = db.Column(db.String(32), nullable=False)  # e.g. "bank", "momo"
    account_name = db.Column(db.String(255), nullable=False)
    account_number = db.Column(db.String(64), nullable=True)
    amount = db.Column(db.Float, nullable=False)
    to_recipient = db.Column(db.String(255), nullable=True)

    # Opaque blob-storage reference (deposit slip)
    evidence_ref = db.Column(db.String(512), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approval_request_id = db.Column(db.Integer, db.ForeignKey("approval_requests.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    approval_request = db.relationship("ApprovalRequest")

    @property
    def approval(self) -> str:
        return self.approval_request.status if self.approval_request else "PENDING"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "deposit_type": self.deposit_type,
            "account_name": self.account_name,
            "account_number": self.account_number,
            "amount": self.amount,
            "to_recipient": self.to_recipient,
            "evidence_ref": self.evidence_ref,
            "approval": self.approval,
            "created_by_user_id": self.created_by_user_id,
            "approval_request_id": self.approval_request_id,
            "created_at": to_utc_z(self.created_at),
        }


class ExpenseCategory(db.Model):
    __tablename__ = "expense_categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_expense_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    budget = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "budget": self.budget,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Expense(db.Model):
    """
    Money spent running the business (fuel, ice, rent...).

    status is the payment state of the bill: PENDING until settled, then PAID.
    Expenses are not audited; the owner records and edits them directly.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_date", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("expense_categories.id"), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    expense_date = db.Column(db.Date, nullable=False)
    added_by = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="PENDING")

    # Opaque blob-storage reference (receipt)
    receipt_ref = db.Column(db.String(512), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("ExpenseCategory", backref=db.backref("expenses", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "amount": self.amount,
            "expense_date": to_iso_date(self.expense_date),
            "added_by": self.added_by,
            "status": self.status,
            "receipt_ref": self.receipt_ref,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
