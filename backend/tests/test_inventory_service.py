"""
Stock ledger tests.

Verifies:
- Quantities never go negative and failed operations change nothing
- Restock applies immediately and records a movement
- Damage and corrections only touch stock once approved
"""

from datetime import date

import pytest

from stockdesk.errors import (
    InsufficientStock,
    InvalidCorrection,
    NotFound,
    StockDeskError,
    ValidationError,
)
from stockdesk.models import StockMovement
from stockdesk.services import approval_service, inventory_service


def _movements(product_id, movement_type):
    return inventory_service.list_stock_movements(product_id=product_id, movement_type=movement_type)


class TestRestock:

    def test_restock_increments_and_sets_expiry(self, product, owner):
        record = inventory_service.restock(
            product.id, 5, 2.5,
            delivery_date="2026-10-01",
            expiry_date="2026-12-31",
            performed_by_user_id=owner.id,
        )

        refreshed = inventory_service.get_product(product.id)
        assert refreshed.quantity_box == 15
        assert refreshed.quantity_kg == 22.5
        assert refreshed.expiry_date == date(2026, 12, 31)
        assert record.total_cost == pytest.approx(5 * 80 + 2.5 * 8)

        movement = _movements(product.id, "RESTOCK")[0]
        assert movement.reason == "Restocked 5 boxes and 2.5 kg"
        assert (movement.old_box, movement.new_box) == (10, 15)

    def test_negative_restock_rejected(self, product):
        with pytest.raises(ValidationError) as exc:
            inventory_service.restock(product.id, -1, 0)
        assert exc.value.field == "boxes_added"

    def test_empty_restock_refused(self, product):
        with pytest.raises(ValidationError) as exc:
            inventory_service.restock(product.id, 0, 0)
        assert exc.value.field == "boxes_added"
        assert _movements(product.id, "RESTOCK") == []

    def test_bad_date_rejected(self, product):
        with pytest.raises(ValidationError):
            inventory_service.restock(product.id, 1, 0, expiry_date="31/12/2026")

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFound):
            inventory_service.restock(999, 1, 0)


class TestSell:

    def test_sell_decrements_both_units(self, product):
        inventory_service.sell(product.id, 3, 5)
        refreshed = inventory_service.get_product(product.id)
        assert (refreshed.quantity_box, refreshed.quantity_kg) == (7, 15)

    def test_short_boxes_changes_nothing(self, product):
        with pytest.raises(InsufficientStock) as exc:
            inventory_service.sell(product.id, 11, 0)
        assert exc.value.field == "quantity_box"

        refreshed = inventory_service.get_product(product.id)
        assert (refreshed.quantity_box, refreshed.quantity_kg) == (10, 20)
        assert _movements(product.id, "SALE") == []

    def test_boxes_checked_before_kg(self, product):
        with pytest.raises(InsufficientStock) as exc:
            inventory_service.sell(product.id, 11, 50)
        assert exc.value.field == "quantity_box"

    def test_short_kg(self, product):
        with pytest.raises(InsufficientStock) as exc:
            inventory_service.sell(product.id, 1, 20.5)
        assert exc.value.field == "quantity_kg"

    def test_empty_sale_refused(self, product):
        with pytest.raises(ValidationError) as exc:
            inventory_service.sell(product.id, 0, 0)
        assert exc.value.field == "boxes_quantity"
        assert _movements(product.id, "SALE") == []

    def test_sell_everything_reaches_zero(self, product):
        inventory_service.sell(product.id, 10, 20)
        refreshed = inventory_service.get_product(product.id)
        assert (refreshed.quantity_box, refreshed.quantity_kg) == (0, 0)


class TestDamage:

    def test_report_leaves_stock_untouched(self, product, staff):
        record = inventory_service.report_damage(
            product.id, 1, 2, "Crushed", reported_by_user_id=staff.id
        )
        assert record.approval == "PENDING"
        assert record.loss_value == pytest.approx(80 + 16)

        refreshed = inventory_service.get_product(product.id)
        assert (refreshed.quantity_box, refreshed.quantity_kg) == (10, 20)
        assert _movements(product.id, "DAMAGE")[0].status == "PENDING"

    def test_approve_decrements(self, product, owner, staff):
        record = inventory_service.report_damage(product.id, 1, 2, "Crushed", reported_by_user_id=staff.id)
        approval_service.decide(record.approval_request_id, "approve", decided_by_user_id=owner.id)

        refreshed = inventory_service.get_product(product.id)
        assert (refreshed.quantity_box, refreshed.quantity_kg) == (9, 18)

        movement = _movements(product.id, "DAMAGE")[0]
        assert movement.status == "COMPLETED"
        assert (movement.old_box, movement.new_box, movement.old_kg, movement.new_kg) == (10, 9, 20, 18)

    def test_reject_leaves_stock(self, product, owner, staff):
        record = inventory_service.report_damage(product.id, 1, 2, "Crushed", reported_by_user_id=staff.id)
        approval_service.decide(
            record.approval_request_id, "reject", decided_by_user_id=owner.id, reject_reason="Not damaged"
        )

        refreshed = inventory_service.get_product(product.id)
        assert (refreshed.quantity_box, refreshed.quantity_kg) == (10, 20)
        assert record.approval == "REJECTED"
        assert _movements(product.id, "DAMAGE")[0].status == "REJECTED"

    def test_more_than_on_hand_refused_at_report(self, product):
        with pytest.raises(InsufficientStock):
            inventory_service.report_damage(product.id, 11, 0, "Crushed")

    def test_empty_report_refused(self, product):
        with pytest.raises(ValidationError):
            inventory_service.report_damage(product.id, 0, 0, "Crushed")

    def test_stock_sold_before_approval(self, product, owner, staff):
        record = inventory_service.report_damage(product.id, 5, 0, "Crushed", reported_by_user_id=staff.id)
        inventory_service.sell(product.id, 8, 0)

        with pytest.raises(InsufficientStock):
            approval_service.decide(record.approval_request_id, "approve", decided_by_user_id=owner.id)

        request = approval_service.get_request(record.approval_request_id)
        assert request.status == "PENDING"
        assert inventory_service.get_product(product.id).quantity_box == 2


class TestCorrection:

    def test_approve_applies_signed_adjustment(self, product, owner, staff):
        correction = inventory_service.correct_stock(
            product.id, 5, -2, "Recount", requested_by_user_id=staff.id
        )
        approval_service.decide(correction.approval_request_id, "approve", decided_by_user_id=owner.id)

        refreshed = inventory_service.get_product(product.id)
        assert (refreshed.quantity_box, refreshed.quantity_kg) == (15, 18)

    def test_reject_leaves_stock(self, product, owner, staff):
        correction = inventory_service.correct_stock(
            product.id, 5, -2, "Recount", requested_by_user_id=staff.id
        )
        approval_service.decide(correction.approval_request_id, "reject", decided_by_user_id=owner.id)

        refreshed = inventory_service.get_product(product.id)
        assert (refreshed.quantity_box, refreshed.quantity_kg) == (10, 20)

    def test_negative_result_rejected_by_default(self, product, owner):
        correction = inventory_service.correct_stock(product.id, 0, -25, "Recount")

        with pytest.raises(InvalidCorrection) as exc:
            approval_service.decide(correction.approval_request_id, "approve", decided_by_user_id=owner.id)
        assert exc.value.field == "quantity_kg"
        assert inventory_service.get_product(product.id).quantity_kg == 20

    def test_clamp_policy_floors_at_zero(self, app, product, owner):
        correction = inventory_service.correct_stock(product.id, -12, 1, "Recount")

        app.config["STOCK_CORRECTION_POLICY"] = "clamp"
        try:
            approval_service.decide(correction.approval_request_id, "approve", decided_by_user_id=owner.id)
        finally:
            app.config["STOCK_CORRECTION_POLICY"] = "reject"

        refreshed = inventory_service.get_product(product.id)
        assert (refreshed.quantity_box, refreshed.quantity_kg) == (0, 21)

        movement = _movements(product.id, "CORRECTION")[0]
        assert (movement.old_box, movement.new_box) == (10, 0)
        assert movement.box_change == movement.new_box - movement.old_box == -10
        assert movement.kg_change == movement.new_kg - movement.old_kg == 1

    def test_zero_adjustment_refused(self, product):
        with pytest.raises(ValidationError):
            inventory_service.correct_stock(product.id, 0, 0, "Nothing")

    def test_reason_required(self, product):
        with pytest.raises(ValidationError) as exc:
            inventory_service.correct_stock(product.id, 1, 0, "  ")
        assert exc.value.field == "reason"


class TestReads:

    def test_low_stock(self, product):
        assert inventory_service.list_low_stock() == []
        inventory_service.sell(product.id, 8, 0)
        assert [p.id for p in inventory_service.list_low_stock()] == [product.id]

    def test_expiring_window(self, product):
        inventory_service.restock(product.id, 0, 1, expiry_date="2026-10-20")

        assert inventory_service.list_expiring(7, today=date(2026, 10, 1)) == []
        assert [p.id for p in inventory_service.list_expiring(30, today=date(2026, 10, 1))] == [product.id]
        # Already expired products stay on the list
        assert [p.id for p in inventory_service.list_expiring(0, today=date(2026, 11, 1))] == [product.id]

    def test_initial_stock_movement(self, product, db_session):
        movement = db_session.query(StockMovement).filter_by(product_id=product.id).one()
        assert movement.reason == "Initial stock"
        assert (movement.box_change, movement.kg_change) == (10, 20)


class TestMixedSequences:
    """Quantities stay >= 0 through any mix of ledger operations."""

    SEQUENCES = [
        [("sell", 4, 5), ("damage", 6, 15), ("sell", 1, 0), ("restock", 2, 3), ("correct", -2, -3)],
        [("correct", -10, -20), ("sell", 1, 0), ("restock", 0, 0.5), ("damage", 0, 1), ("sell", 0, 0.5)],
        [("damage", 3, 0), ("sell", 8, 20), ("correct", -1, 0), ("restock", 5, 5), ("sell", 5, 5)],
        [("restock", 1, 1), ("correct", 0, -22), ("damage", 12, 0), ("sell", 11, 21), ("sell", 11, 21)],
    ]

    def _run(self, step, product, owner):
        op, boxes, kg = step
        if op == "restock":
            inventory_service.restock(product.id, boxes, kg)
        elif op == "sell":
            inventory_service.sell(product.id, boxes, kg)
        elif op == "damage":
            record = inventory_service.report_damage(product.id, boxes, kg, "Spoiled")
            approval_service.decide(record.approval_request_id, "approve", decided_by_user_id=owner.id)
        else:
            correction = inventory_service.correct_stock(product.id, boxes, kg, "Recount")
            approval_service.decide(correction.approval_request_id, "approve", decided_by_user_id=owner.id)

    @pytest.mark.parametrize("sequence", SEQUENCES)
    def test_quantities_never_negative(self, product, owner, sequence):
        for step in sequence:
            before = inventory_service.get_product(product.id)
            before = (before.quantity_box, before.quantity_kg)
            try:
                self._run(step, product, owner)
            except StockDeskError:
                current = inventory_service.get_product(product.id)
                assert (current.quantity_box, current.quantity_kg) == before, step

            current = inventory_service.get_product(product.id)
            assert current.quantity_box >= 0, step
            assert current.quantity_kg >= 0, step
