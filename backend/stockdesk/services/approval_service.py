# Overview: Service-layer operations for approvals; encapsulates business logic and database work.

"""
StockDesk Approval Workflow

================================================================================
PURPOSE: One pending -> approved/rejected gate for every audited mutation
================================================================================

STATE MACHINE:
    PENDING -> APPROVED
    PENDING -> REJECTED

    PENDING:  Proposal stored, target entity untouched
    APPROVED: Decision recorded; change applied once applied_at is set
    REJECTED: Terminal, proposal never applied, reject_reason kept

KINDS (each registers an ApprovalHandler from its owning service):
    SALE_EDIT, SALE_DELETE      -> sales_service
    STOCK_CORRECTION            -> inventory_service
    DAMAGE_REPORT               -> inventory_service
    PRODUCT_EDIT                -> products_service
    DEPOSIT                     -> deposit_service

DECIDE ORDERING (approve):
1. Lock the request; it must be PENDING (else InvalidState, nothing changes)
2. handler.validate() - business errors surface before any state change
3. Commit status=APPROVED (durable decision)
4. handler.apply() and applied_at=now commit together

A crash between 3 and 4 leaves APPROVED with applied_at NULL. reprocess()
picks those up; it is a no-op for requests that were already applied.
================================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Literal, Optional

from ..extensions import db
from ..errors import InvalidState, NotFound, StockDeskError, ValidationError
from ..models import ApprovalRequest
from ..permissions import PermissionKey
from .concurrency import lock_for_update, run_with_retry
from stockdesk.time_utils import utcnow


logger = logging.getLogger(__name__)


STATUS_PENDING = "PENDING"
STATUS_APPROVED = "APPROVED"
STATUS_REJECTED = "REJECTED"
VALID_STATUSES = {STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED}
Decision = Literal["APPROVED", "REJECTED"]
WITHDRAWN_REASON = "Withdrawn by requester"

KIND_SALE_EDIT = "SALE_EDIT"
KIND_SALE_DELETE = "SALE_DELETE"
KIND_STOCK_CORRECTION = "STOCK_CORRECTION"
KIND_DAMAGE_REPORT = "DAMAGE_REPORT"
KIND_PRODUCT_EDIT = "PRODUCT_EDIT"
KIND_DEPOSIT = "DEPOSIT"
VALID_KINDS = {
    KIND_SALE_EDIT,
    KIND_SALE_DELETE,
    KIND_STOCK_CORRECTION,
    KIND_DAMAGE_REPORT,
    KIND_PRODUCT_EDIT,
    KIND_DEPOSIT,
}

# Staff permission needed to decide a kind, per decision.
# Kinds missing here can only be decided by an owner.
DECISION_PERMISSIONS = {
    KIND_SALE_EDIT: {
        STATUS_APPROVED: PermissionKey.AUDIT_SALES_CONFIRM,
        STATUS_REJECTED: PermissionKey.AUDIT_SALES_REJECT,
    },
    KIND_SALE_DELETE: {
        STATUS_APPROVED: PermissionKey.AUDIT_SALES_CONFIRM,
        STATUS_REJECTED: PermissionKey.AUDIT_SALES_REJECT,
    },
}

_DECISION_ALIASES = {
    "approve": STATUS_APPROVED,
    "approved": STATUS_APPROVED,
    "confirm": STATUS_APPROVED,
    "reject": STATUS_REJECTED,
    "rejected": STATUS_REJECTED,
}


@dataclass(frozen=True)
class ApprovalHandler:
    """
    validate(request): raise a StockDeskError if the change cannot be applied.
    apply(request):    perform the mutation; must not commit.
    reject(request):   optional cleanup on rejection; must not commit.
    """
    validate: Callable[[ApprovalRequest], None]
    apply: Callable[[ApprovalRequest], None]
    reject: Optional[Callable[[ApprovalRequest], None]] = None


_HANDLERS: dict[str, ApprovalHandler] = {}


def register_handler(
    kind: str,
    *,
    validate: Callable[[ApprovalRequest], None],
    apply: Callable[[ApprovalRequest], None],
    reject: Optional[Callable[[ApprovalRequest], None]] = None,
) -> None:
    if kind not in VALID_KINDS:
        raise ValueError(f"Unknown approval kind '{kind}'")
    _HANDLERS[kind] = ApprovalHandler(validate=validate, apply=apply, reject=reject)


def _load_handlers() -> None:
    # Importing the owning services registers their handlers
    from . import inventory_service, sales_service, products_service, deposit_service  # noqa: F401


def get_handler(kind: str) -> ApprovalHandler:
    if kind not in _HANDLERS:
        _load_handlers()
    try:
        return _HANDLERS[kind]
    except KeyError:
        raise ValueError(f"No approval handler registered for '{kind}'")


def normalize_decision(decision: str) -> Decision:
    value = _DECISION_ALIASES.get(str(decision or "").strip().lower())
    if value is None:
        raise ValidationError(
            f"Invalid decision '{decision}'. Must be one of: approve, reject",
            field="decision",
        )
    return value


def propose(
    *,
    kind: str,
    target_type: str,
    target_id: int,
    payload: dict,
    reason: str | None,
    requested_by_user_id: int | None,
) -> ApprovalRequest:
    """
    Create a PENDING request. Never touches the target entity.

    Flushes but does not commit: callers commit it together with the
    records that reference it (audit row, pending movement).
    """
    if kind not in VALID_KINDS:
        raise ValidationError(f"Invalid approval kind '{kind}'", field="kind")

    request = ApprovalRequest(
        kind=kind,
        target_type=target_type,
        target_id=target_id,
        payload=payload,
        reason=reason,
        status=STATUS_PENDING,
        requested_by_user_id=requested_by_user_id,
        requested_at=utcnow(),
    )
    db.session.add(request)
    db.session.flush()
    logger.info("Approval request %s proposed (%s %s #%s)", request.id, kind, target_type, target_id)
    return request


def get_request(request_id: int, *, lock: bool = False) -> ApprovalRequest:
    q = db.session.query(ApprovalRequest).filter_by(id=request_id)
    if lock:
        q = lock_for_update(q)
    request = q.first()
    if not request:
        raise NotFound(f"Approval request {request_id} not found", field="request_id")
    return request


def list_requests(*, status: str | None = None, kind: str | None = None, target_type: str | None = None) -> list[ApprovalRequest]:
    q = db.session.query(ApprovalRequest)
    if status:
        status = status.upper()
        if status not in VALID_STATUSES:
            raise ValidationError(
                f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}",
                field="status",
            )
        q = q.filter(ApprovalRequest.status == status)
    if kind:
        q = q.filter(ApprovalRequest.kind == kind.upper())
    if target_type:
        q = q.filter(ApprovalRequest.target_type == target_type)
    return q.order_by(ApprovalRequest.requested_at.desc(), ApprovalRequest.id.desc()).all()


def decide(
    request_id: int,
    decision: str,
    *,
    decided_by_user_id: int | None,
    reject_reason: str | None = None,
) -> ApprovalRequest:
    """
    Single entry point for approving or rejecting a request.

    Raises:
        InvalidState: request is not PENDING (no mutation performed)
        StockDeskError: the change fails validation (request stays PENDING)
    """
    decision = normalize_decision(decision)

    def _op():
        request = get_request(request_id, lock=True)
        if request.status != STATUS_PENDING:
            raise InvalidState(
                f"Cannot decide approval request {request_id}: current status is "
                f"'{request.status}', must be 'PENDING'",
                field="status",
            )

        handler = get_handler(request.kind)
        now = utcnow()

        if decision == STATUS_APPROVED:
            try:
                handler.validate(request)
            except StockDeskError:
                db.session.rollback()
                raise
            request.status = STATUS_APPROVED
        else:
            request.status = STATUS_REJECTED
            request.reject_reason = (reject_reason or "").strip() or None
            if handler.reject:
                handler.reject(request)

        request.decided_by_user_id = decided_by_user_id
        request.decided_at = now
        db.session.commit()
        return request

    request = run_with_retry(_op)
    logger.info("Approval request %s %s by user %s", request.id, request.status, decided_by_user_id)

    if request.status == STATUS_APPROVED:
        request = _apply(request.id)
    return request


def _apply(request_id: int) -> ApprovalRequest:
    """Apply an APPROVED request exactly once."""
    def _op():
        request = get_request(request_id, lock=True)
        if request.status != STATUS_APPROVED or request.applied_at is not None:
            return request

        handler = get_handler(request.kind)
        try:
            handler.apply(request)
        except StockDeskError:
            db.session.rollback()
            logger.warning("Approval request %s approved but could not be applied", request_id)
            raise

        request.applied_at = utcnow()
        db.session.commit()
        return request

    return run_with_retry(_op)


def withdraw(request: ApprovalRequest, *, withdrawn_by_user_id: int | None) -> ApprovalRequest:
    """
    Close a PENDING request whose target is being removed. Caller commits.

    The row is kept as REJECTED so the audit trail survives.
    """
    if request.status != STATUS_PENDING:
        raise InvalidState(
            f"Cannot withdraw approval request {request.id}: current status is "
            f"'{request.status}', must be 'PENDING'",
            field="status",
        )
    request.status = STATUS_REJECTED
    request.reject_reason = WITHDRAWN_REASON
    request.decided_by_user_id = withdrawn_by_user_id
    request.decided_at = utcnow()
    logger.info("Approval request %s withdrawn by user %s", request.id, withdrawn_by_user_id)
    return request


def reprocess(request_id: int) -> ApprovalRequest:
    """
    Re-run the apply step of an APPROVED request.

    No-op when already applied. Raises InvalidState for PENDING/REJECTED.
    """
    request = get_request(request_id)
    if request.status != STATUS_APPROVED:
        raise InvalidState(
            f"Cannot reprocess approval request {request_id}: current status is "
            f"'{request.status}', must be 'APPROVED'",
            field="status",
        )
    return _apply(request_id)


def reprocess_unapplied() -> dict:
    """Apply every APPROVED request whose change was never applied."""
    ids = [
        row.id
        for row in db.session.query(ApprovalRequest.id)
        .filter(ApprovalRequest.status == STATUS_APPROVED, ApprovalRequest.applied_at.is_(None))
        .order_by(ApprovalRequest.id)
        .all()
    ]

    applied: list[int] = []
    failed: list[dict] = []
    for request_id in ids:
        try:
            _apply(request_id)
            applied.append(request_id)
        except StockDeskError as e:
            failed.append({"request_id": request_id, **e.to_dict()})

    if ids:
        logger.info("Reprocessed %d approved requests (%d failed)", len(applied), len(failed))
    return {"applied": applied, "failed": failed}


def required_permission(kind: str, decision: str):
    """Permission key a staff member needs for this decision, or None if owner-only."""
    return DECISION_PERMISSIONS.get(kind, {}).get(normalize_decision(decision))
