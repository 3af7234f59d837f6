# Overview: Service-layer operations for cash deposits; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..errors import InvalidState, NotFound
from ..models import ApprovalRequest, Deposit
from ..validation import require_positive, require_text
from . import approval_service


def create_deposit(
    *,
    deposit_type,
    account_name,
    amount,
    account_number: str | None = None,
    to_recipient: str | None = None,
    evidence_ref: str | None = None,
    created_by_user_id: int | None = None,
) -> Deposit:
    """Record a deposit as PENDING until an owner approves it."""
    deposit = Deposit(
        deposit_type=require_text(deposit_type, "deposit_type"),
        account_name=require_text(account_name, "account_name"),
        amount=require_positive(amount, "amount"),
        account_number=(account_number or "").strip() or None,
        to_recipient=(to_recipient or "").strip() or None,
        evidence_ref=evidence_ref,
        created_by_user_id=created_by_user_id,
    )
    db.session.add(deposit)
    db.session.flush()

    request = approval_service.propose(
        kind=approval_service.KIND_DEPOSIT,
        target_type="deposit",
        target_id=deposit.id,
        payload={"amount": deposit.amount, "account_name": deposit.account_name},
        reason=f"{deposit.deposit_type} deposit to {deposit.account_name}",
        requested_by_user_id=created_by_user_id,
    )
    deposit.approval_request_id = request.id
    db.session.commit()
    return deposit


def get_deposit(deposit_id: int) -> Deposit:
    deposit = db.session.query(Deposit).filter_by(id=deposit_id).first()
    if not deposit:
        raise NotFound(f"Deposit {deposit_id} not found", field="deposit_id")
    return deposit


def list_deposits(*, approval: str | None = None) -> list[Deposit]:
    q = db.session.query(Deposit)
    if approval:
        q = q.join(ApprovalRequest, Deposit.approval_request_id == ApprovalRequest.id).filter(
            ApprovalRequest.status == approval.upper()
        )
    return q.order_by(Deposit.created_at.desc(), Deposit.id.desc()).all()


def delete_deposit(deposit_id: int, *, deleted_by_user_id: int | None = None) -> None:
    """
    Withdraw a deposit that has not been decided yet.

    The deposit row goes; its approval request stays behind as REJECTED.
    """
    deposit = get_deposit(deposit_id)
    request = deposit.approval_request
    if request is not None and request.status != approval_service.STATUS_PENDING:
        raise InvalidState(
            f"Cannot delete deposit {deposit_id}: approval is '{request.status}', must be 'PENDING'",
            field="approval",
        )
    if request is not None:
        approval_service.withdraw(request, withdrawn_by_user_id=deleted_by_user_id)
    db.session.delete(deposit)
    db.session.commit()


def _validate_deposit(request: ApprovalRequest) -> None:
    get_deposit(request.target_id)


def _apply_deposit(request: ApprovalRequest) -> None:
    # Approval itself is the only state change a deposit has
    get_deposit(request.target_id)


approval_service.register_handler(
    approval_service.KIND_DEPOSIT,
    validate=_validate_deposit,
    apply=_apply_deposit,
)
