# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sales

build_quote() turns quantities + requested payment status into the numbers
stored on a Sale. It runs before any stock is touched; create_sale() then
writes the sale, the stock decrement and the SALE movement in one commit.

PAYMENT STATUS (requested -> stored):
    "Paid"      -> COMPLETED, amount_paid = total
    "Half Paid" -> PARTIAL,   amount_paid = declared (default total / 2)
    "Pending"   -> PENDING,   amount_paid = 0

Amendments to recorded sales (quantities, payment method, deletion) go
through approval_service as SALE_EDIT / SALE_DELETE.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, asdict

from ..extensions import db
from ..errors import (
    AmbiguousStatus,
    AmountExceedsTotal,
    ConflictError,
    MissingClientInfo,
    NotFound,
    ValidationError,
)
from ..models import ApprovalRequest, Product, Sale, SaleAudit, SalePayment
from ..validation import require_non_negative, require_positive, require_text
from . import approval_service, inventory_service
from .concurrency import lock_for_update, run_with_retry
from stockdesk.time_utils import to_utc_z


logger = logging.getLogger(__name__)


REQUEST_PAID = "Paid"
REQUEST_HALF_PAID = "Half Paid"
REQUEST_PENDING = "Pending"

PAYMENT_COMPLETED = "COMPLETED"
PAYMENT_PARTIAL = "PARTIAL"
PAYMENT_PENDING = "PENDING"
UNPAID_STATUSES = (PAYMENT_PENDING, PAYMENT_PARTIAL)

_REQUESTED_TO_STORED = {
    REQUEST_PAID: PAYMENT_COMPLETED,
    REQUEST_HALF_PAID: PAYMENT_PARTIAL,
    REQUEST_PENDING: PAYMENT_PENDING,
}

_REQUEST_ALIASES = {
    "paid": REQUEST_PAID,
    "completed": REQUEST_PAID,
    "halfpaid": REQUEST_HALF_PAID,
    "partial": REQUEST_HALF_PAID,
    "pending": REQUEST_PENDING,
}

# A "Half Paid" amount this close to the total is really "Paid"
AMBIGUITY_TOLERANCE = 0.01

# Float slack when comparing amounts that were summed
PAYMENT_EPSILON = 1e-6

AUDIT_EDIT = "EDIT"
AUDIT_DELETE = "DELETE"


@dataclass(frozen=True)
class SaleQuote:
    boxes_quantity: float
    kg_quantity: float
    box_price: float
    kg_price: float
    profit_per_box: float
    profit_per_kg: float
    total_amount: float
    profit: float
    amount_paid: float
    remaining_amount: float
    payment_status: str
    client_name: str | None
    phone_number: str | None

    def to_dict(self) -> dict:
        return asdict(self)


def normalize_payment_request(value) -> str:
    """Map "Paid" / "Half Paid" / "Pending" (and close spellings) to the canonical label."""
    raw = str(value or "").strip()
    if raw in _REQUESTED_TO_STORED:
        return raw
    key = raw.lower().replace(" ", "").replace("_", "").replace("-", "")
    if key in _REQUEST_ALIASES:
        return _REQUEST_ALIASES[key]
    raise ValidationError(
        f"Invalid payment_status '{value}'. Must be one of: Paid, Half Paid, Pending",
        field="payment_status",
    )


def payment_status_for(amount_paid: float, total_amount: float) -> str:
    if amount_paid >= total_amount - PAYMENT_EPSILON:
        return PAYMENT_COMPLETED
    if amount_paid > 0:
        return PAYMENT_PARTIAL
    return PAYMENT_PENDING


def _settle(sale: Sale) -> None:
    """Recompute remaining_amount and payment_status from amount_paid and total."""
    sale.payment_status = payment_status_for(sale.amount_paid, sale.total_amount)
    if sale.payment_status == PAYMENT_COMPLETED:
        sale.remaining_amount = 0.0
    else:
        sale.remaining_amount = sale.total_amount - sale.amount_paid


def build_quote(
    product: Product,
    boxes_quantity,
    kg_quantity,
    *,
    payment_status,
    amount_paid=None,
    client_name: str | None = None,
    phone_number: str | None = None,
) -> SaleQuote:
    """
    Compute totals and payment fields for a prospective sale.

    Checks run in this order so the first failing field is reported:
    quantities, payment status, declared amount, client details.
    """
    boxes = require_non_negative(0 if boxes_quantity is None else boxes_quantity, "boxes_quantity")
    kg = require_non_negative(0 if kg_quantity is None else kg_quantity, "kg_quantity")
    if boxes == 0 and kg == 0:
        raise ValidationError("Sale must include boxes or kg", field="boxes_quantity")

    requested = normalize_payment_request(payment_status)

    total = boxes * product.price_per_box + kg * product.price_per_kg
    profit = boxes * product.profit_per_box + kg * product.profit_per_kg

    if requested == REQUEST_PAID:
        paid = total
    elif requested == REQUEST_HALF_PAID:
        if amount_paid is None or (isinstance(amount_paid, str) and not amount_paid.strip()):
            paid = total / 2
        else:
            declared = require_non_negative(amount_paid, "amount_paid")
            if abs(declared - total) < AMBIGUITY_TOLERANCE:
                raise AmbiguousStatus()
            if declared > total:
                raise AmountExceedsTotal(declared, total)
            if declared == 0:
                raise ValidationError(
                    "amount_paid must be greater than 0 for 'Half Paid' sales",
                    field="amount_paid",
                )
            paid = declared
    else:
        paid = 0.0

    client = (client_name or "").strip() or None
    phone = (phone_number or "").strip() or None
    if requested in (REQUEST_PENDING, REQUEST_HALF_PAID):
        if not client:
            raise MissingClientInfo("client_name", requested)
        if not phone:
            raise MissingClientInfo("phone_number", requested)

    return SaleQuote(
        boxes_quantity=boxes,
        kg_quantity=kg,
        box_price=product.price_per_box,
        kg_price=product.price_per_kg,
        profit_per_box=product.profit_per_box,
        profit_per_kg=product.profit_per_kg,
        total_amount=total,
        profit=profit,
        amount_paid=paid,
        remaining_amount=total - paid,
        payment_status=_REQUESTED_TO_STORED[requested],
        client_name=client,
        phone_number=phone,
    )


def create_sale(
    product_id: int,
    boxes_quantity,
    kg_quantity,
    *,
    payment_status,
    amount_paid=None,
    payment_method: str | None = None,
    client_name: str | None = None,
    phone_number: str | None = None,
    performed_by_user_id: int | None = None,
) -> Sale:
    """
    Record a sale and take its stock out in one transaction.

    Nothing is written when the quote fails validation or stock is short.
    """
    def _op():
        product = inventory_service.get_product(product_id, lock=True)
        quote = build_quote(
            product,
            boxes_quantity,
            kg_quantity,
            payment_status=payment_status,
            amount_paid=amount_paid,
            client_name=client_name,
            phone_number=phone_number,
        )
        inventory_service.check_available(product, quote.boxes_quantity, quote.kg_quantity)

        sale = Sale(
            product_id=product.id,
            payment_method=(payment_method or "").strip() or None,
            performed_by_user_id=performed_by_user_id,
            **quote.to_dict(),
        )
        db.session.add(sale)
        db.session.flush()

        inventory_service.decrement_for_sale(
            product,
            quote.boxes_quantity,
            quote.kg_quantity,
            performed_by_user_id=performed_by_user_id,
            sale_id=sale.id,
            reason=f"Sale #{sale.id}",
        )
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    logger.info("Sale %s recorded for product %s (%s)", sale.id, product_id, sale.payment_status)
    return sale


def get_sale(sale_id: int, *, lock: bool = False, include_deleted: bool = False) -> Sale:
    q = db.session.query(Sale).filter_by(id=sale_id)
    if not include_deleted:
        q = q.filter(Sale.is_deleted.is_(False))
    if lock:
        q = lock_for_update(q)
    sale = q.first()
    if not sale:
        raise NotFound(f"Sale {sale_id} not found", field="sale_id")
    return sale


def list_sales(
    *,
    payment_status: str | None = None,
    client_name: str | None = None,
    product_id: int | None = None,
    include_deleted: bool = False,
) -> list[Sale]:
    q = db.session.query(Sale)
    if not include_deleted:
        q = q.filter(Sale.is_deleted.is_(False))
    if payment_status:
        q = q.filter(Sale.payment_status == payment_status.upper())
    if client_name:
        q = q.filter(Sale.client_name == client_name)
    if product_id is not None:
        q = q.filter(Sale.product_id == product_id)
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


# =============================================================================
# AMENDMENTS (audited)
# =============================================================================

def _ensure_no_pending_audit(sale: Sale) -> None:
    pending = (
        db.session.query(SaleAudit)
        .join(ApprovalRequest, SaleAudit.approval_request_id == ApprovalRequest.id)
        .filter(SaleAudit.sale_id == sale.id, ApprovalRequest.status == approval_service.STATUS_PENDING)
        .first()
    )
    if pending:
        raise ConflictError(
            f"Sale {sale.id} already has a pending {pending.audit_type.lower()} request",
            field="sale_id",
        )


def _sale_snapshot(sale: Sale) -> dict:
    return {
        "boxes_quantity": sale.boxes_quantity,
        "kg_quantity": sale.kg_quantity,
        "payment_method": sale.payment_method,
        "total_amount": sale.total_amount,
    }


def request_sale_edit(
    sale_id: int,
    *,
    reason,
    boxes_quantity=None,
    kg_quantity=None,
    payment_method: str | None = None,
    requested_by_user_id: int | None = None,
) -> SaleAudit:
    """Propose new quantities and/or payment method for a recorded sale."""
    reason = require_text(reason, "reason")
    sale = get_sale(sale_id)

    new_boxes = sale.boxes_quantity if boxes_quantity is None else require_non_negative(boxes_quantity, "boxes_quantity")
    new_kg = sale.kg_quantity if kg_quantity is None else require_non_negative(kg_quantity, "kg_quantity")
    new_method = sale.payment_method if payment_method is None else (payment_method.strip() or None)

    if new_boxes == 0 and new_kg == 0:
        raise ValidationError("Edited sale must keep boxes or kg; request a deletion instead", field="boxes_quantity")
    if (new_boxes, new_kg, new_method) == (sale.boxes_quantity, sale.kg_quantity, sale.payment_method):
        raise ValidationError("No changes requested", field="boxes_quantity")

    _ensure_no_pending_audit(sale)

    new_values = {
        "boxes_quantity": new_boxes,
        "kg_quantity": new_kg,
        "payment_method": new_method,
        "total_amount": new_boxes * sale.box_price + new_kg * sale.kg_price,
    }
    audit = SaleAudit(
        sale_id=sale.id,
        audit_type=AUDIT_EDIT,
        boxes_before=sale.boxes_quantity,
        boxes_after=new_boxes,
        kg_before=sale.kg_quantity,
        kg_after=new_kg,
        old_values=_sale_snapshot(sale),
        new_values=new_values,
        reason=reason,
        performed_by_user_id=requested_by_user_id,
    )
    db.session.add(audit)
    db.session.flush()

    request = approval_service.propose(
        kind=approval_service.KIND_SALE_EDIT,
        target_type="sale",
        target_id=sale.id,
        payload={"sale_audit_id": audit.id, **new_values},
        reason=reason,
        requested_by_user_id=requested_by_user_id,
    )
    audit.approval_request_id = request.id
    db.session.commit()
    return audit


def request_sale_delete(sale_id: int, *, reason, requested_by_user_id: int | None = None) -> SaleAudit:
    """Propose deleting a sale; approval returns its quantities to stock."""
    reason = require_text(reason, "reason")
    sale = get_sale(sale_id)
    _ensure_no_pending_audit(sale)

    audit = SaleAudit(
        sale_id=sale.id,
        audit_type=AUDIT_DELETE,
        boxes_before=sale.boxes_quantity,
        boxes_after=0.0,
        kg_before=sale.kg_quantity,
        kg_after=0.0,
        old_values=_sale_snapshot(sale),
        new_values=None,
        reason=reason,
        performed_by_user_id=requested_by_user_id,
    )
    db.session.add(audit)
    db.session.flush()

    request = approval_service.propose(
        kind=approval_service.KIND_SALE_DELETE,
        target_type="sale",
        target_id=sale.id,
        payload={"sale_audit_id": audit.id},
        reason=reason,
        requested_by_user_id=requested_by_user_id,
    )
    audit.approval_request_id = request.id
    db.session.commit()
    return audit


def _check_edit(sale: Sale, product: Product, payload: dict) -> tuple[float, float, float]:
    """Return (box_delta, kg_delta, new_total) or raise the first failing rule."""
    box_delta = payload["boxes_quantity"] - sale.boxes_quantity
    kg_delta = payload["kg_quantity"] - sale.kg_quantity
    inventory_service.check_available(product, max(box_delta, 0.0), max(kg_delta, 0.0))

    new_total = payload["boxes_quantity"] * sale.box_price + payload["kg_quantity"] * sale.kg_price
    if sale.amount_paid > new_total + PAYMENT_EPSILON:
        raise AmountExceedsTotal(sale.amount_paid, new_total)
    return box_delta, kg_delta, new_total


def _validate_edit(request: ApprovalRequest) -> None:
    sale = get_sale(request.target_id)
    product = inventory_service.get_product(sale.product_id)
    _check_edit(sale, product, request.payload)


def _apply_edit(request: ApprovalRequest) -> None:
    payload = request.payload
    sale = get_sale(request.target_id, lock=True)
    product = inventory_service.get_product(sale.product_id, lock=True)
    box_delta, kg_delta, new_total = _check_edit(sale, product, payload)

    if box_delta or kg_delta:
        old_box, old_kg = product.quantity_box, product.quantity_kg
        product.quantity_box = old_box - box_delta
        product.quantity_kg = old_kg - kg_delta
        inventory_service.record_movement(
            product=product,
            movement_type=inventory_service.MOVEMENT_SALE,
            box_change=-box_delta,
            kg_change=-kg_delta,
            old_box=old_box,
            old_kg=old_kg,
            new_box=product.quantity_box,
            new_kg=product.quantity_kg,
            reason=f"Sale #{sale.id} edited: {request.reason}",
            performed_by_user_id=request.decided_by_user_id,
            approval_request_id=request.id,
            sale_id=sale.id,
        )

    sale.boxes_quantity = payload["boxes_quantity"]
    sale.kg_quantity = payload["kg_quantity"]
    sale.payment_method = payload.get("payment_method")
    sale.total_amount = new_total
    sale.profit = sale.boxes_quantity * sale.profit_per_box + sale.kg_quantity * sale.profit_per_kg
    _settle(sale)


def _validate_delete(request: ApprovalRequest) -> None:
    get_sale(request.target_id)


def _apply_delete(request: ApprovalRequest) -> None:
    sale = get_sale(request.target_id, lock=True)
    product = inventory_service.get_product(sale.product_id, lock=True)

    old_box, old_kg = product.quantity_box, product.quantity_kg
    product.quantity_box = old_box + sale.boxes_quantity
    product.quantity_kg = old_kg + sale.kg_quantity
    inventory_service.record_movement(
        product=product,
        movement_type=inventory_service.MOVEMENT_SALE,
        box_change=sale.boxes_quantity,
        kg_change=sale.kg_quantity,
        old_box=old_box,
        old_kg=old_kg,
        new_box=product.quantity_box,
        new_kg=product.quantity_kg,
        reason=f"Sale #{sale.id} deleted: {request.reason}",
        performed_by_user_id=request.decided_by_user_id,
        approval_request_id=request.id,
        sale_id=sale.id,
    )
    sale.is_deleted = True


def list_sale_audits(*, status: str | None = None, sale_id: int | None = None) -> list[SaleAudit]:
    q = db.session.query(SaleAudit).join(ApprovalRequest, SaleAudit.approval_request_id == ApprovalRequest.id)
    if status:
        q = q.filter(ApprovalRequest.status == status.upper())
    if sale_id is not None:
        q = q.filter(SaleAudit.sale_id == sale_id)
    return q.order_by(SaleAudit.created_at.desc(), SaleAudit.id.desc()).all()


# =============================================================================
# PAYMENTS & DEBTORS
# =============================================================================

def _record_payment(sale: Sale, amount: float, payment_method: str | None, received_by_user_id: int | None) -> SalePayment:
    sale.amount_paid = sale.amount_paid + amount
    if payment_method:
        sale.payment_method = payment_method
    _settle(sale)
    payment = SalePayment(
        sale_id=sale.id,
        amount=amount,
        payment_method=payment_method,
        received_by_user_id=received_by_user_id,
    )
    db.session.add(payment)
    return payment


def add_payment(
    sale_id: int,
    amount,
    *,
    payment_method: str | None = None,
    received_by_user_id: int | None = None,
) -> Sale:
    """Take a payment against one sale. Cannot exceed what is still owed."""
    amount = require_positive(amount, "amount")
    payment_method = (payment_method or "").strip() or None

    def _op():
        sale = get_sale(sale_id, lock=True)
        if amount > sale.remaining_amount + PAYMENT_EPSILON:
            raise AmountExceedsTotal(amount, sale.remaining_amount, field="amount")
        _record_payment(sale, amount, payment_method, received_by_user_id)
        db.session.commit()
        return sale

    return run_with_retry(_op)


def _unpaid_query():
    return db.session.query(Sale).filter(
        Sale.is_deleted.is_(False),
        Sale.payment_status.in_(UNPAID_STATUSES),
        Sale.remaining_amount > PAYMENT_EPSILON,
    )


def list_debtors() -> list[dict]:
    """Unpaid balances grouped by client, largest total first."""
    sales = _unpaid_query().order_by(Sale.created_at.asc(), Sale.id.asc()).all()

    grouped: OrderedDict[str, dict] = OrderedDict()
    for sale in sales:
        name = sale.client_name or "Unknown"
        entry = grouped.get(name)
        if entry is None:
            entry = grouped[name] = {
                "client_name": name,
                "phone_number": sale.phone_number,
                "total_owed": 0.0,
                "sales_count": 0,
                "sale_ids": [],
                "oldest_sale_at": to_utc_z(sale.created_at),
            }
        entry["total_owed"] += sale.remaining_amount
        entry["sales_count"] += 1
        entry["sale_ids"].append(sale.id)
        if sale.phone_number:
            entry["phone_number"] = sale.phone_number

    return sorted(grouped.values(), key=lambda d: d["total_owed"], reverse=True)


def process_debtor_payment(
    client_name,
    amount,
    *,
    payment_method: str | None = None,
    received_by_user_id: int | None = None,
) -> dict:
    """
    Spread a client's payment over their unpaid sales, oldest first.

    Returns the sales touched and any amount left over once everything
    owed is settled (remaining_payment).
    """
    client_name = require_text(client_name, "client_name")
    amount = require_positive(amount, "amount")
    payment_method = (payment_method or "").strip() or None

    def _op():
        sales = (
            lock_for_update(_unpaid_query().filter(Sale.client_name == client_name))
            .order_by(Sale.created_at.asc(), Sale.id.asc())
            .all()
        )
        if not sales:
            raise NotFound(f"No outstanding sales for client '{client_name}'", field="client_name")

        left = amount
        touched = []
        for sale in sales:
            if left <= PAYMENT_EPSILON:
                break
            portion = min(left, sale.remaining_amount)
            _record_payment(sale, portion, payment_method, received_by_user_id)
            left -= portion
            touched.append(sale)

        db.session.commit()
        return {
            "client_name": client_name,
            "amount_applied": amount - left,
            "remaining_payment": left if left > PAYMENT_EPSILON else 0.0,
            "sales": [s.to_dict() for s in touched],
        }

    result = run_with_retry(_op)
    logger.info("Debtor payment of %s applied for %s", result["amount_applied"], client_name)
    return result


approval_service.register_handler(
    approval_service.KIND_SALE_EDIT,
    validate=_validate_edit,
    apply=_apply_edit,
)
approval_service.register_handler(
    approval_service.KIND_SALE_DELETE,
    validate=_validate_delete,
    apply=_apply_delete,
)
