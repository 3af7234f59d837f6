from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from ..extensions import db
from stockdesk.time_utils import to_utc_z


@dataclass(frozen=True)
class Pending:
    tag = "PENDING"


@dataclass(frozen=True)
class Approved:
    # None while the approval is recorded but the change has not been applied yet
    applied_at: Optional[datetime]
    tag = "APPROVED"


@dataclass(frozen=True)
class Rejected:
    reason: Optional[str]
    tag = "REJECTED"


ApprovalState = Union[Pending, Approved, Rejected]


class ApprovalRequest(db.Model):
    """
    One proposed change waiting for (or past) an owner/manager decision.

    STATE MACHINE:
        PENDING -> APPROVED
        PENDING -> REJECTED

    APPROVED and REJECTED are terminal. An APPROVED request with applied_at
    NULL has been decided but its change is not yet applied; approval_service
    can re-process it safely.

    kind selects the handler that validates/applies/rejects the payload:
    SALE_EDIT, SALE_DELETE, STOCK_CORRECTION, DAMAGE_REPORT, PRODUCT_EDIT, DEPOSIT.
    """
    __tablename__ = "approval_requests"
    __table_args__ = (
        db.Index("ix_approval_requests_status_kind", "status", "kind"),
        db.Index("ix_approval_requests_target", "target_type", "target_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    kind = db.Column(db.String(32), nullable=False)
    target_type = db.Column(db.String(32), nullable=False)
    target_id = db.Column(db.Integer, nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    reason = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="PENDING")

    requested_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    requested_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    decided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reject_reason = db.Column(db.Text, nullable=True)
    applied_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def state(self) -> ApprovalState:
        if self.status == "APPROVED":
            return Approved(applied_at=self.applied_at)
        if self.status == "REJECTED":
            return Rejected(reason=self.reject_reason)
        return Pending()

    def __repr__(self) -> str:
        return f"<ApprovalRequest id={self.id} kind={self.kind} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "payload": self.payload,
            "reason": self.reason,
            "status": self.status,
            "requested_by_user_id": self.requested_by_user_id,
            "requested_at": to_utc_z(self.requested_at),
            "decided_by_user_id": self.decided_by_user_id,
            "decided_at": to_utc_z(self.decided_at),
            "reject_reason": self.reject_reason,
            "applied_at": to_utc_z(self.applied_at),
        }
