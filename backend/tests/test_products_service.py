"""
Catalog and deposit tests.
"""

import pytest

from stockdesk.errors import ConflictError, InvalidRatio, InvalidState, ValidationError
from stockdesk.models import ApprovalRequest, Deposit, StockMovement
from stockdesk.services import approval_service, deposit_service, products_service


class TestCategories:

    def test_create_and_rename(self, db_session):
        category = products_service.create_category("Fish")
        products_service.rename_category(category.id, "Frozen fish")
        assert [c.name for c in products_service.list_categories()] == ["Frozen fish"]

    def test_duplicate_name_case_insensitive(self, db_session):
        products_service.create_category("Fish")
        with pytest.raises(ConflictError):
            products_service.create_category("fish")

    def test_cannot_delete_category_in_use(self, owner):
        category = products_service.create_category("Fish")
        products_service.create_product(
            {"name": "Tuna", "category_id": category.id, "box_to_kg_ratio": 5, "cost_per_box": 10, "price_per_box": 12},
            created_by_user_id=owner.id,
        )
        with pytest.raises(ConflictError):
            products_service.delete_category(category.id)


class TestCreateProduct:

    def test_derived_fields_written(self, product):
        assert product.cost_per_kg == pytest.approx(8)
        assert product.price_per_kg == pytest.approx(10)
        assert product.profit_per_box == pytest.approx(20)
        assert product.profit_per_kg == pytest.approx(2)

    def test_zero_ratio_rejected(self, db_session):
        with pytest.raises(InvalidRatio):
            products_service.create_product(
                {"name": "Bad", "box_to_kg_ratio": 0, "cost_per_box": 1, "price_per_box": 2}
            )

    def test_missing_required_field(self, db_session):
        with pytest.raises(ValidationError) as exc:
            products_service.create_product({"name": "No price", "box_to_kg_ratio": 5, "cost_per_box": 1})
        assert exc.value.field == "price_per_box"

    def test_no_movement_without_stock(self, db_session):
        product = products_service.create_product(
            {"name": "Empty", "box_to_kg_ratio": 5, "cost_per_box": 1, "price_per_box": 2}
        )
        assert db_session.query(StockMovement).filter_by(product_id=product.id).count() == 0

    def test_search(self, product):
        assert [p.id for p in products_service.list_products(search="tila")] == [product.id]
        assert products_service.list_products(search="salmon") == []


class TestProductEdit:

    def test_ratio_edit_recomputes_per_kg(self, product, owner, staff):
        request = products_service.request_product_edit(
            product.id, "box_to_kg_ratio", 20, reason="New box size", requested_by_user_id=staff.id
        )
        assert products_service.inventory_service.get_product(product.id).box_to_kg_ratio == 10

        approval_service.decide(request.id, "approve", decided_by_user_id=owner.id)

        refreshed = products_service.inventory_service.get_product(product.id)
        assert refreshed.box_to_kg_ratio == 20
        assert refreshed.price_per_kg == pytest.approx(5)
        assert refreshed.cost_per_kg == pytest.approx(4)

        movement = (
            products_service.inventory_service.list_stock_movements(product_id=product.id, movement_type="PRODUCT_EDIT")[0]
        )
        assert movement.status == "COMPLETED"
        assert movement.field_changed == "box_to_kg_ratio"

    def test_field_not_editable(self, product):
        with pytest.raises(ValidationError) as exc:
            products_service.request_product_edit(product.id, "quantity_box", 99, reason="Cheat")
        assert exc.value.field == "field"

    def test_same_value_refused(self, product):
        with pytest.raises(ValidationError):
            products_service.request_product_edit(product.id, "price_per_box", 100, reason="No-op")


class TestDeposits:

    def test_deposit_waits_for_approval(self, owner, staff):
        deposit = deposit_service.create_deposit(
            deposit_type="bank", account_name="Main", amount=500, created_by_user_id=staff.id
        )
        assert deposit.approval == "PENDING"

        approval_service.decide(deposit.approval_request_id, "approve", decided_by_user_id=owner.id)
        assert deposit_service.get_deposit(deposit.id).approval == "APPROVED"
        assert [d.id for d in deposit_service.list_deposits(approval="approved")] == [deposit.id]

    def test_delete_pending_deposit_keeps_audit_record(self, staff, db_session):
        deposit = deposit_service.create_deposit(
            deposit_type="momo", account_name="MTN", amount=50, created_by_user_id=staff.id
        )
        request_id = deposit.approval_request_id
        deposit_service.delete_deposit(deposit.id, deleted_by_user_id=staff.id)

        assert db_session.query(Deposit).count() == 0
        request = db_session.query(ApprovalRequest).filter_by(id=request_id).one()
        assert request.status == "REJECTED"
        assert request.reject_reason == "Withdrawn by requester"
        assert request.decided_by_user_id == staff.id

    def test_withdrawn_request_cannot_be_decided(self, owner):
        deposit = deposit_service.create_deposit(deposit_type="bank", account_name="Main", amount=50)
        request_id = deposit.approval_request_id
        deposit_service.delete_deposit(deposit.id)
        with pytest.raises(InvalidState):
            approval_service.decide(request_id, "approve", decided_by_user_id=owner.id)

    def test_cannot_delete_decided_deposit(self, owner):
        deposit = deposit_service.create_deposit(deposit_type="bank", account_name="Main", amount=50)
        approval_service.decide(deposit.approval_request_id, "reject", decided_by_user_id=owner.id)
        with pytest.raises(InvalidState):
            deposit_service.delete_deposit(deposit.id)

    def test_amount_must_be_positive(self, db_session):
        with pytest.raises(ValidationError) as exc:
            deposit_service.create_deposit(deposit_type="bank", account_name="Main", amount=0)
        assert exc.value.field == "amount"
