# Overview: Service-layer operations for products and categories; encapsulates business logic and database work.

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..extensions import db
from ..errors import ConflictError, NotFound, ValidationError
from ..models import ApprovalRequest, Product, ProductCategory
from ..validation import (
    ModelValidationPolicy,
    coerce_number,
    enforce_rules_product,
    require_text,
    validate_payload,
)
from . import approval_service, inventory_service
from .conversion_service import derive_unit_economics, validate_ratio


logger = logging.getLogger(__name__)


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "sku",
        "description",
        "category_id",
        "quantity_box",
        "quantity_kg",
        "box_to_kg_ratio",
        "cost_per_box",
        "price_per_box",
        "low_stock_threshold",
        "expiry_date",
    },
    required_on_create={"name", "box_to_kg_ratio", "cost_per_box", "price_per_box"},
)

# Fields that change through an approved PRODUCT_EDIT request
EDITABLE_FIELDS = {"name", "box_to_kg_ratio", "cost_per_box", "price_per_box", "low_stock_threshold"}


# =============================================================================
# CATEGORIES
# =============================================================================

def create_category(name) -> ProductCategory:
    name = require_text(name, "name")
    if db.session.query(ProductCategory).filter(db.func.lower(ProductCategory.name) == name.lower()).first():
        raise ConflictError(f"Category '{name}' already exists", field="name")
    category = ProductCategory(name=name)
    db.session.add(category)
    db.session.commit()
    return category


def list_categories() -> list[ProductCategory]:
    return db.session.query(ProductCategory).order_by(ProductCategory.name.asc()).all()


def get_category(category_id: int) -> ProductCategory:
    category = db.session.query(ProductCategory).filter_by(id=category_id).first()
    if not category:
        raise NotFound(f"Category {category_id} not found", field="category_id")
    return category


def rename_category(category_id: int, name) -> ProductCategory:
    category = get_category(category_id)
    name = require_text(name, "name")
    clash = db.session.query(ProductCategory).filter(
        db.func.lower(ProductCategory.name) == name.lower(),
        ProductCategory.id != category_id,
    ).first()
    if clash:
        raise ConflictError(f"Category '{name}' already exists", field="name")
    category.name = name
    db.session.commit()
    return category


def delete_category(category_id: int) -> None:
    category = get_category(category_id)
    in_use = db.session.query(Product.id).filter_by(category_id=category_id).first()
    if in_use:
        raise ConflictError("Category still has products", field="category_id")
    db.session.delete(category)
    db.session.commit()


# =============================================================================
# PRODUCTS
# =============================================================================

def apply_economics(product: Product) -> None:
    """Rewrite the derived per-kg and profit fields from ratio/cost/price."""
    economics = derive_unit_economics(product.box_to_kg_ratio, product.cost_per_box, product.price_per_box)
    product.cost_per_kg = economics.cost_per_kg
    product.price_per_kg = economics.price_per_kg
    product.profit_per_box = economics.profit_per_box
    product.profit_per_kg = economics.profit_per_kg


def create_product(payload: dict, *, created_by_user_id: int | None = None) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    validate_ratio(patch["box_to_kg_ratio"])

    if patch.get("category_id") is not None:
        get_category(patch["category_id"])
    if patch.get("sku") and db.session.query(Product).filter_by(sku=patch["sku"]).first():
        raise ConflictError(f"SKU '{patch['sku']}' already exists", field="sku")

    product = Product(**patch)
    product.quantity_box = product.quantity_box or 0.0
    product.quantity_kg = product.quantity_kg or 0.0
    product.low_stock_threshold = product.low_stock_threshold or 0.0
    apply_economics(product)
    db.session.add(product)
    db.session.flush()

    if product.quantity_box or product.quantity_kg:
        inventory_service.record_movement(
            product=product,
            movement_type=inventory_service.MOVEMENT_RESTOCK,
            box_change=product.quantity_box,
            kg_change=product.quantity_kg,
            old_box=0.0,
            old_kg=0.0,
            new_box=product.quantity_box,
            new_kg=product.quantity_kg,
            reason="Initial stock",
            performed_by_user_id=created_by_user_id,
        )

    db.session.commit()
    logger.info("Product %s created (%s)", product.id, product.name)
    return product


def list_products(*, category_id: int | None = None, search: str | None = None) -> list[Product]:
    q = db.session.query(Product)
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Product.name.ilike(like), Product.sku.ilike(like)))
    return q.order_by(Product.name.asc()).all()


def _coerce_edit_value(field: str, value):
    if field == "name":
        return require_text(value, "name")
    if field == "box_to_kg_ratio":
        return validate_ratio(value)
    number = coerce_number(value, field)
    if number < 0:
        raise ValidationError(f"{field} must be >= 0", field=field)
    return number


def request_product_edit(
    product_id: int,
    field: str,
    new_value,
    *,
    reason,
    requested_by_user_id: int | None = None,
) -> ApprovalRequest:
    """Propose changing one product field; derived prices are recomputed on approval."""
    if field not in EDITABLE_FIELDS:
        raise ValidationError(
            f"Field not editable: {field}. Must be one of: {', '.join(sorted(EDITABLE_FIELDS))}",
            field="field",
        )
    reason = require_text(reason, "reason")
    value = _coerce_edit_value(field, new_value)
    product = inventory_service.get_product(product_id)

    old_value = getattr(product, field)
    if old_value == value:
        raise ValidationError(f"{field} is already {value}", field=field)

    request = approval_service.propose(
        kind=approval_service.KIND_PRODUCT_EDIT,
        target_type="product",
        target_id=product.id,
        payload={"field": field, "old_value": old_value, "new_value": value},
        reason=reason,
        requested_by_user_id=requested_by_user_id,
    )
    inventory_service.record_movement(
        product=product,
        movement_type=inventory_service.MOVEMENT_PRODUCT_EDIT,
        field_changed=field,
        box_change=0.0,
        kg_change=0.0,
        old_box=product.quantity_box,
        old_kg=product.quantity_kg,
        new_box=None,
        new_kg=None,
        reason=f"{field}: {old_value} -> {value}. {reason}",
        performed_by_user_id=requested_by_user_id,
        status=inventory_service.MOVEMENT_PENDING,
        approval_request_id=request.id,
    )
    db.session.commit()
    return request


def _validate_product_edit(request: ApprovalRequest) -> None:
    inventory_service.get_product(request.target_id)
    _coerce_edit_value(request.payload["field"], request.payload["new_value"])


def _apply_product_edit(request: ApprovalRequest) -> None:
    product = inventory_service.get_product(request.target_id, lock=True)
    field = request.payload["field"]
    setattr(product, field, _coerce_edit_value(field, request.payload["new_value"]))
    apply_economics(product)
    inventory_service.finalize_pending_movements(
        request, status=inventory_service.MOVEMENT_COMPLETED, product=product
    )


def _reject_product_edit(request: ApprovalRequest) -> None:
    inventory_service.finalize_pending_movements(request, status=inventory_service.MOVEMENT_REJECTED)


approval_service.register_handler(
    approval_service.KIND_PRODUCT_EDIT,
    validate=_validate_product_edit,
    apply=_apply_product_edit,
    reject=_reject_product_edit,
)
