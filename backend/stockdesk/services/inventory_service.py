# Overview: Service-layer operations for the stock ledger; encapsulates business logic and database work.

"""
Stock Ledger

Owns Product.quantity_box / Product.quantity_kg. Every change goes through
here and leaves a StockMovement row.

DIRECT (apply immediately, movement COMPLETED):
- restock: increments both units, sets the new expiry date
- sell / decrement_for_sale: decrements both units or raises InsufficientStock

AUDITED (proposal + PENDING movement, applied on approval):
- report_damage: decrement on approval
- correct_stock: signed adjustment on approval, under STOCK_CORRECTION_POLICY

INVARIANT: quantity_box >= 0 and quantity_kg >= 0 after every operation.
Each mutation locks the product row and commits once.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from flask import current_app

from ..extensions import db
from ..errors import InsufficientStock, InvalidCorrection, NotFound, ValidationError
from ..models import (
    ApprovalRequest,
    DamagedProductRecord,
    Product,
    Restock,
    StockCorrection,
    StockMovement,
)
from ..validation import require_non_negative, require_text, coerce_number
from . import approval_service
from .concurrency import lock_for_update, run_with_retry
from .conversion_service import loss_value, restock_cost
from stockdesk.time_utils import parse_iso_date, utcnow


logger = logging.getLogger(__name__)


MOVEMENT_RESTOCK = "RESTOCK"
MOVEMENT_SALE = "SALE"
MOVEMENT_DAMAGE = "DAMAGE"
MOVEMENT_CORRECTION = "CORRECTION"
MOVEMENT_PRODUCT_EDIT = "PRODUCT_EDIT"
VALID_MOVEMENT_TYPES = {
    MOVEMENT_RESTOCK,
    MOVEMENT_SALE,
    MOVEMENT_DAMAGE,
    MOVEMENT_CORRECTION,
    MOVEMENT_PRODUCT_EDIT,
}

MOVEMENT_PENDING = "PENDING"
MOVEMENT_COMPLETED = "COMPLETED"
MOVEMENT_REJECTED = "REJECTED"

CORRECTION_POLICY_REJECT = "reject"
CORRECTION_POLICY_CLAMP = "clamp"
CORRECTION_POLICIES = {CORRECTION_POLICY_REJECT, CORRECTION_POLICY_CLAMP}


def get_product(product_id: int, *, lock: bool = False) -> Product:
    q = db.session.query(Product).filter_by(id=product_id)
    if lock:
        q = lock_for_update(q)
    product = q.first()
    if not product:
        raise NotFound(f"Product {product_id} not found", field="product_id")
    return product


def correction_policy() -> str:
    policy = str(current_app.config.get("STOCK_CORRECTION_POLICY", CORRECTION_POLICY_REJECT)).strip().lower()
    if policy not in CORRECTION_POLICIES:
        raise ValueError(
            f"STOCK_CORRECTION_POLICY must be one of: {', '.join(sorted(CORRECTION_POLICIES))}"
        )
    return policy


def record_movement(
    *,
    product: Product,
    movement_type: str,
    box_change: float,
    kg_change: float,
    old_box: float | None,
    old_kg: float | None,
    new_box: float | None,
    new_kg: float | None,
    reason: str | None,
    performed_by_user_id: int | None,
    status: str = MOVEMENT_COMPLETED,
    approval_request_id: int | None = None,
    sale_id: int | None = None,
    field_changed: str | None = None,
) -> StockMovement:
    """Add a movement row to the session (caller commits)."""
    if movement_type not in VALID_MOVEMENT_TYPES:
        raise ValueError(f"Invalid movement type '{movement_type}'")
    movement = StockMovement(
        product_id=product.id,
        movement_type=movement_type,
        field_changed=field_changed,
        box_change=box_change,
        kg_change=kg_change,
        old_box=old_box,
        old_kg=old_kg,
        new_box=new_box,
        new_kg=new_kg,
        reason=reason,
        status=status,
        performed_by_user_id=performed_by_user_id,
        approval_request_id=approval_request_id,
        sale_id=sale_id,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    return movement


def finalize_pending_movements(request: ApprovalRequest, *, status: str, product: Product | None = None) -> None:
    """
    Close the PENDING movements written for an approval request.

    On COMPLETED, new_box/new_kg are read from the (already mutated) product.
    old values are stamped beforehand by _mark_old_values().
    """
    movements = db.session.query(StockMovement).filter_by(
        approval_request_id=request.id,
        status=MOVEMENT_PENDING,
    ).all()
    for movement in movements:
        movement.status = status
        if status == MOVEMENT_COMPLETED and product is not None:
            movement.new_box = product.quantity_box
            movement.new_kg = product.quantity_kg
        movement.occurred_at = utcnow()


def check_available(product: Product, boxes_requested: float, kg_requested: float) -> None:
    """Raise InsufficientStock naming the first unit that is short. Boxes are checked first."""
    if boxes_requested > product.quantity_box:
        raise InsufficientStock("box", boxes_requested, product.quantity_box)
    if kg_requested > product.quantity_kg:
        raise InsufficientStock("kg", kg_requested, product.quantity_kg)


def _validate_quantities(boxes, kg, *, box_field: str, kg_field: str) -> tuple[float, float]:
    boxes = require_non_negative(0 if boxes is None else boxes, box_field)
    kg = require_non_negative(0 if kg is None else kg, kg_field)
    return boxes, kg


# =============================================================================
# DIRECT OPERATIONS
# =============================================================================

def restock(
    product_id: int,
    boxes_added,
    kg_added,
    *,
    delivery_date=None,
    expiry_date=None,
    performed_by_user_id: int | None = None,
) -> Restock:
    """Increase both quantities. No upper bound."""
    boxes_added, kg_added = _validate_quantities(
        boxes_added, kg_added, box_field="boxes_added", kg_field="kg_added"
    )
    if boxes_added == 0 and kg_added == 0:
        raise ValidationError("Restock must add boxes or kg", field="boxes_added")
    try:
        delivery = parse_iso_date(delivery_date) or utcnow().date()
        expiry = parse_iso_date(expiry_date)
    except ValueError:
        raise ValidationError("delivery_date and expiry_date must be ISO-8601 dates", field="expiry_date")

    def _op():
        product = get_product(product_id, lock=True)
        old_box, old_kg = product.quantity_box, product.quantity_kg

        product.quantity_box = old_box + boxes_added
        product.quantity_kg = old_kg + kg_added
        if expiry is not None:
            product.expiry_date = expiry

        record = Restock(
            product_id=product.id,
            boxes_added=boxes_added,
            kg_added=kg_added,
            total_cost=restock_cost(product, boxes_added, kg_added),
            delivery_date=delivery,
            expiry_date=expiry,
            performed_by_user_id=performed_by_user_id,
        )
        db.session.add(record)
        record_movement(
            product=product,
            movement_type=MOVEMENT_RESTOCK,
            box_change=boxes_added,
            kg_change=kg_added,
            old_box=old_box,
            old_kg=old_kg,
            new_box=product.quantity_box,
            new_kg=product.quantity_kg,
            reason=f"Restocked {boxes_added:g} boxes and {kg_added:g} kg",
            performed_by_user_id=performed_by_user_id,
        )
        db.session.commit()
        return record

    record = run_with_retry(_op)
    logger.info("Restocked product %s: +%s box, +%s kg", product_id, boxes_added, kg_added)
    return record


def decrement_for_sale(
    product: Product,
    boxes: float,
    kg: float,
    *,
    performed_by_user_id: int | None = None,
    sale_id: int | None = None,
    reason: str | None = None,
) -> StockMovement:
    """
    Take stock out for a sale. Caller holds the product lock and commits.

    Nothing is changed when InsufficientStock is raised.
    """
    check_available(product, boxes, kg)
    old_box, old_kg = product.quantity_box, product.quantity_kg
    product.quantity_box = old_box - boxes
    product.quantity_kg = old_kg - kg
    return record_movement(
        product=product,
        movement_type=MOVEMENT_SALE,
        box_change=-boxes,
        kg_change=-kg,
        old_box=old_box,
        old_kg=old_kg,
        new_box=product.quantity_box,
        new_kg=product.quantity_kg,
        reason=reason or f"Sold {boxes:g} boxes and {kg:g} kg",
        performed_by_user_id=performed_by_user_id,
        sale_id=sale_id,
    )


def sell(product_id: int, boxes_requested, kg_requested, *, performed_by_user_id: int | None = None) -> Product:
    """
    Decrement stock for a sale without creating a sale record.

    Raises InsufficientStock when either unit is short; quantities are left
    unchanged on failure.
    """
    boxes, kg = _validate_quantities(
        boxes_requested, kg_requested, box_field="boxes_quantity", kg_field="kg_quantity"
    )
    if boxes == 0 and kg == 0:
        raise ValidationError("Sale must include boxes or kg", field="boxes_quantity")

    def _op():
        product = get_product(product_id, lock=True)
        decrement_for_sale(product, boxes, kg, performed_by_user_id=performed_by_user_id)
        db.session.commit()
        return product

    return run_with_retry(_op)


# =============================================================================
# DAMAGE (audited)
# =============================================================================

def report_damage(
    product_id: int,
    damaged_boxes,
    damaged_kg,
    reason,
    *,
    damage_date=None,
    evidence_ref: str | None = None,
    reported_by_user_id: int | None = None,
) -> DamagedProductRecord:
    """
    Record damaged stock as PENDING. Stock is decremented only on approval.
    """
    boxes, kg = _validate_quantities(
        damaged_boxes, damaged_kg, box_field="damaged_boxes", kg_field="damaged_kg"
    )
    if boxes == 0 and kg == 0:
        raise ValidationError("Damage report must include boxes or kg", field="damaged_boxes")
    reason = require_text(reason, "reason")
    try:
        damage_day = parse_iso_date(damage_date) or utcnow().date()
    except ValueError:
        raise ValidationError("damage_date must be an ISO-8601 date", field="damage_date")

    product = get_product(product_id)
    check_available(product, boxes, kg)

    record = DamagedProductRecord(
        product_id=product.id,
        damaged_boxes=boxes,
        damaged_kg=kg,
        reason=reason,
        damage_date=damage_day,
        loss_value=loss_value(product, boxes, kg),
        evidence_ref=evidence_ref,
        reported_by_user_id=reported_by_user_id,
    )
    db.session.add(record)
    db.session.flush()

    request = approval_service.propose(
        kind=approval_service.KIND_DAMAGE_REPORT,
        target_type="damaged_product",
        target_id=record.id,
        payload={"product_id": product.id, "damaged_boxes": boxes, "damaged_kg": kg},
        reason=reason,
        requested_by_user_id=reported_by_user_id,
    )
    record.approval_request_id = request.id

    record_movement(
        product=product,
        movement_type=MOVEMENT_DAMAGE,
        box_change=-boxes,
        kg_change=-kg,
        old_box=product.quantity_box,
        old_kg=product.quantity_kg,
        new_box=None,
        new_kg=None,
        reason=reason,
        performed_by_user_id=reported_by_user_id,
        status=MOVEMENT_PENDING,
        approval_request_id=request.id,
    )
    db.session.commit()
    return record


def _validate_damage(request: ApprovalRequest) -> None:
    payload = request.payload
    product = get_product(payload["product_id"])
    check_available(product, payload["damaged_boxes"], payload["damaged_kg"])


def _apply_damage(request: ApprovalRequest) -> None:
    payload = request.payload
    product = get_product(payload["product_id"], lock=True)
    boxes, kg = payload["damaged_boxes"], payload["damaged_kg"]
    check_available(product, boxes, kg)

    _mark_old_values(request, product)
    product.quantity_box = product.quantity_box - boxes
    product.quantity_kg = product.quantity_kg - kg
    finalize_pending_movements(request, status=MOVEMENT_COMPLETED, product=product)


def _reject_pending(request: ApprovalRequest) -> None:
    finalize_pending_movements(request, status=MOVEMENT_REJECTED)


def _mark_old_values(request: ApprovalRequest, product: Product, new_box=None, new_kg=None) -> None:
    """Stamp pending movements with the stock they start from, and the change actually applied when known."""
    for movement in db.session.query(StockMovement).filter_by(
        approval_request_id=request.id, status=MOVEMENT_PENDING
    ):
        movement.old_box = product.quantity_box
        movement.old_kg = product.quantity_kg
        if new_box is not None:
            movement.box_change = new_box - product.quantity_box
        if new_kg is not None:
            movement.kg_change = new_kg - product.quantity_kg


# =============================================================================
# CORRECTIONS (audited)
# =============================================================================

def corrected_quantities(product: Product, box_adjustment: float, kg_adjustment: float, policy: str) -> tuple[float, float]:
    """
    Resulting (box, kg) after a signed adjustment.

    policy "reject": InvalidCorrection naming the field that would go negative.
    policy "clamp":  floor each field at zero.
    """
    new_box = product.quantity_box + box_adjustment
    new_kg = product.quantity_kg + kg_adjustment

    if policy == CORRECTION_POLICY_CLAMP:
        return max(0.0, new_box), max(0.0, new_kg)

    if new_box < 0:
        raise InvalidCorrection("quantity_box", product.quantity_box, box_adjustment)
    if new_kg < 0:
        raise InvalidCorrection("quantity_kg", product.quantity_kg, kg_adjustment)
    return new_box, new_kg


def correct_stock(
    product_id: int,
    box_adjustment,
    kg_adjustment,
    reason,
    *,
    requested_by_user_id: int | None = None,
) -> StockCorrection:
    """Propose a signed correction to both quantities. Applied on approval."""
    box_adjustment = coerce_number(0 if box_adjustment is None else box_adjustment, "box_adjustment")
    kg_adjustment = coerce_number(0 if kg_adjustment is None else kg_adjustment, "kg_adjustment")
    if box_adjustment == 0 and kg_adjustment == 0:
        raise ValidationError("Correction must change boxes or kg", field="box_adjustment")
    reason = require_text(reason, "reason")

    product = get_product(product_id)

    correction = StockCorrection(
        product_id=product.id,
        box_adjustment=box_adjustment,
        kg_adjustment=kg_adjustment,
        reason=reason,
        requested_by_user_id=requested_by_user_id,
    )
    db.session.add(correction)
    db.session.flush()

    request = approval_service.propose(
        kind=approval_service.KIND_STOCK_CORRECTION,
        target_type="stock_correction",
        target_id=correction.id,
        payload={
            "product_id": product.id,
            "box_adjustment": box_adjustment,
            "kg_adjustment": kg_adjustment,
        },
        reason=reason,
        requested_by_user_id=requested_by_user_id,
    )
    correction.approval_request_id = request.id

    record_movement(
        product=product,
        movement_type=MOVEMENT_CORRECTION,
        box_change=box_adjustment,
        kg_change=kg_adjustment,
        old_box=product.quantity_box,
        old_kg=product.quantity_kg,
        new_box=None,
        new_kg=None,
        reason=reason,
        performed_by_user_id=requested_by_user_id,
        status=MOVEMENT_PENDING,
        approval_request_id=request.id,
    )
    db.session.commit()
    return correction


def _validate_correction(request: ApprovalRequest) -> None:
    payload = request.payload
    product = get_product(payload["product_id"])
    corrected_quantities(product, payload["box_adjustment"], payload["kg_adjustment"], correction_policy())


def _apply_correction(request: ApprovalRequest) -> None:
    payload = request.payload
    product = get_product(payload["product_id"], lock=True)
    new_box, new_kg = corrected_quantities(
        product, payload["box_adjustment"], payload["kg_adjustment"], correction_policy()
    )

    _mark_old_values(request, product, new_box, new_kg)
    product.quantity_box = new_box
    product.quantity_kg = new_kg
    finalize_pending_movements(request, status=MOVEMENT_COMPLETED, product=product)


# =============================================================================
# READS
# =============================================================================

def list_low_stock() -> list[Product]:
    """Products at or below their box threshold."""
    return (
        db.session.query(Product)
        .filter(Product.quantity_box <= Product.low_stock_threshold)
        .order_by(Product.quantity_box.asc(), Product.name.asc())
        .all()
    )


def list_expiring(within_days: int | None = None, *, today: date | None = None) -> list[Product]:
    """Products whose expiry date is within the window, including already expired ones."""
    if within_days is None:
        within_days = current_app.config.get("EXPIRY_WARNING_DAYS", 30)
    if within_days < 0:
        raise ValidationError("days must be >= 0", field="days")
    today = today or utcnow().date()
    cutoff = today + timedelta(days=within_days)
    return (
        db.session.query(Product)
        .filter(Product.expiry_date.isnot(None), Product.expiry_date <= cutoff)
        .order_by(Product.expiry_date.asc())
        .all()
    )


def list_stock_movements(
    *,
    product_id: int | None = None,
    movement_type: str | None = None,
    status: str | None = None,
    limit: int = 100,
) -> list[StockMovement]:
    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if movement_type:
        q = q.filter(StockMovement.movement_type == movement_type.upper())
    if status:
        q = q.filter(StockMovement.status == status.upper())
    return q.order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc()).limit(limit).all()


def list_restocks(*, product_id: int | None = None) -> list[Restock]:
    q = db.session.query(Restock)
    if product_id is not None:
        q = q.filter(Restock.product_id == product_id)
    return q.order_by(Restock.created_at.desc(), Restock.id.desc()).all()


def list_damage_records(*, product_id: int | None = None, approval: str | None = None) -> list[DamagedProductRecord]:
    q = db.session.query(DamagedProductRecord)
    if product_id is not None:
        q = q.filter(DamagedProductRecord.product_id == product_id)
    if approval:
        q = q.join(ApprovalRequest, DamagedProductRecord.approval_request_id == ApprovalRequest.id).filter(
            ApprovalRequest.status == approval.upper()
        )
    return q.order_by(DamagedProductRecord.created_at.desc(), DamagedProductRecord.id.desc()).all()


def list_corrections(*, product_id: int | None = None) -> list[StockCorrection]:
    q = db.session.query(StockCorrection)
    if product_id is not None:
        q = q.filter(StockCorrection.product_id == product_id)
    return q.order_by(StockCorrection.created_at.desc(), StockCorrection.id.desc()).all()


approval_service.register_handler(
    approval_service.KIND_DAMAGE_REPORT,
    validate=_validate_damage,
    apply=_apply_damage,
    reject=_reject_pending,
)
approval_service.register_handler(
    approval_service.KIND_STOCK_CORRECTION,
    validate=_validate_correction,
    apply=_apply_correction,
    reject=_reject_pending,
)
