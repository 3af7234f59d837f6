"""
Sales tests.

Fixture product: 100 per box, 10 per kg (ratio 10), profit 20 per box and
2 per kg, 10 boxes and 20 kg on hand.
"""

import pytest

from stockdesk.errors import (
    AmbiguousStatus,
    AmountExceedsTotal,
    ConflictError,
    InsufficientStock,
    MissingClientInfo,
    NotFound,
    ValidationError,
)
from stockdesk.services import approval_service, inventory_service, sales_service


CLIENT = {"client_name": "Ama", "phone_number": "0240000000"}


def _sale(product, boxes=2, kg=0, status="Paid", **kwargs):
    fields = dict(CLIENT) if status != "Paid" else {}
    fields.update(kwargs)
    return sales_service.create_sale(product.id, boxes, kg, payment_status=status, **fields)


class TestQuote:

    def test_paid(self, product):
        quote = sales_service.build_quote(product, 2, 5, payment_status="Paid")
        assert quote.total_amount == pytest.approx(250)
        assert quote.profit == pytest.approx(50)
        assert quote.amount_paid == pytest.approx(250)
        assert quote.remaining_amount == 0
        assert quote.payment_status == "COMPLETED"

    def test_half_paid_defaults_to_half(self, product):
        quote = sales_service.build_quote(product, 2, 0, payment_status="Half Paid", **CLIENT)
        assert quote.amount_paid == pytest.approx(100)
        assert quote.remaining_amount == pytest.approx(100)
        assert quote.payment_status == "PARTIAL"

    def test_half_paid_declared_amount(self, product):
        quote = sales_service.build_quote(product, 2, 0, payment_status="Half Paid", amount_paid=50, **CLIENT)
        assert quote.remaining_amount == pytest.approx(150)

    def test_half_paid_full_amount_is_ambiguous(self, product):
        with pytest.raises(AmbiguousStatus) as exc:
            sales_service.build_quote(product, 2, 0, payment_status="Half Paid", amount_paid=200, **CLIENT)
        assert exc.value.field == "payment_status"

    @pytest.mark.parametrize("amount", [199.995, 200.005])
    def test_half_paid_within_a_cent_is_ambiguous(self, product, amount):
        with pytest.raises(AmbiguousStatus):
            sales_service.build_quote(product, 2, 0, payment_status="Half Paid", amount_paid=amount, **CLIENT)

    def test_half_paid_over_total(self, product):
        with pytest.raises(AmountExceedsTotal) as exc:
            sales_service.build_quote(product, 2, 0, payment_status="Half Paid", amount_paid=250, **CLIENT)
        assert exc.value.field == "amount_paid"

    def test_half_paid_zero_amount(self, product):
        with pytest.raises(ValidationError):
            sales_service.build_quote(product, 2, 0, payment_status="Half Paid", amount_paid=0, **CLIENT)

    def test_pending_needs_client_name(self, product):
        with pytest.raises(MissingClientInfo) as exc:
            sales_service.build_quote(product, 2, 0, payment_status="Pending", client_name="", phone_number="024")
        assert exc.value.field == "client_name"

    def test_half_paid_needs_phone(self, product):
        with pytest.raises(MissingClientInfo) as exc:
            sales_service.build_quote(product, 2, 0, payment_status="Half Paid", client_name="Ama")
        assert exc.value.field == "phone_number"

    def test_pending(self, product):
        quote = sales_service.build_quote(product, 0, 3, payment_status="pending", **CLIENT)
        assert quote.amount_paid == 0
        assert quote.remaining_amount == pytest.approx(30)
        assert quote.payment_status == "PENDING"

    def test_unknown_status(self, product):
        with pytest.raises(ValidationError) as exc:
            sales_service.build_quote(product, 1, 0, payment_status="Sometimes")
        assert exc.value.field == "payment_status"

    def test_empty_sale(self, product):
        with pytest.raises(ValidationError):
            sales_service.build_quote(product, 0, 0, payment_status="Paid")


class TestCreateSale:

    def test_sale_decrements_stock(self, product):
        sale = _sale(product, boxes=2, kg=5)
        refreshed = inventory_service.get_product(product.id)
        assert (refreshed.quantity_box, refreshed.quantity_kg) == (8, 15)
        assert sale.box_price == 100 and sale.kg_price == pytest.approx(10)

        movement = inventory_service.list_stock_movements(product_id=product.id, movement_type="SALE")[0]
        assert movement.sale_id == sale.id

    def test_insufficient_stock_records_nothing(self, product):
        with pytest.raises(InsufficientStock):
            _sale(product, boxes=11)
        assert sales_service.list_sales() == []
        assert inventory_service.get_product(product.id).quantity_box == 10

    def test_invalid_payment_touches_nothing(self, product):
        with pytest.raises(MissingClientInfo):
            sales_service.create_sale(product.id, 2, 0, payment_status="Pending")
        assert sales_service.list_sales() == []
        assert inventory_service.get_product(product.id).quantity_box == 10

    def test_price_snapshot_survives_product_edit(self, product, owner):
        from stockdesk.services import products_service

        sale = _sale(product, boxes=1)
        approval = products_service.request_product_edit(product.id, "price_per_box", 150, reason="Price up")
        approval_service.decide(approval.id, "approve", decided_by_user_id=owner.id)

        assert sales_service.get_sale(sale.id).box_price == 100


class TestAmendments:

    def test_edit_applies_on_approval(self, product, owner, staff):
        sale = _sale(product, boxes=2)
        audit = sales_service.request_sale_edit(sale.id, reason="Miscounted", boxes_quantity=3)

        # Nothing changes until approved
        assert inventory_service.get_product(product.id).quantity_box == 8
        assert sales_service.get_sale(sale.id).boxes_quantity == 2

        approval_service.decide(audit.approval_request_id, "approve", decided_by_user_id=owner.id)

        edited = sales_service.get_sale(sale.id)
        assert edited.boxes_quantity == 3
        assert edited.total_amount == pytest.approx(300)
        assert edited.remaining_amount == pytest.approx(100)
        assert edited.payment_status == "PARTIAL"
        assert inventory_service.get_product(product.id).quantity_box == 7
        assert audit.approval_status == "APPROVED"

    def test_edit_reducing_total_below_paid_fails(self, product, owner):
        sale = _sale(product, boxes=2)
        audit = sales_service.request_sale_edit(sale.id, reason="Returned one", boxes_quantity=1)

        with pytest.raises(AmountExceedsTotal):
            approval_service.decide(audit.approval_request_id, "approve", decided_by_user_id=owner.id)
        assert sales_service.get_sale(sale.id).boxes_quantity == 2

    def test_rejected_edit_changes_nothing(self, product, owner):
        sale = _sale(product, boxes=2)
        audit = sales_service.request_sale_edit(sale.id, reason="Oops", payment_method="Card")
        approval_service.decide(audit.approval_request_id, "reject", decided_by_user_id=owner.id)

        assert sales_service.get_sale(sale.id).payment_method is None
        assert audit.approval_status == "REJECTED"

    def test_delete_returns_stock(self, product, owner):
        sale = _sale(product, boxes=2, kg=4)
        audit = sales_service.request_sale_delete(sale.id, reason="Duplicate entry")
        approval_service.decide(audit.approval_request_id, "approve", decided_by_user_id=owner.id)

        refreshed = inventory_service.get_product(product.id)
        assert (refreshed.quantity_box, refreshed.quantity_kg) == (10, 20)
        with pytest.raises(NotFound):
            sales_service.get_sale(sale.id)
        assert sales_service.get_sale(sale.id, include_deleted=True).is_deleted

    def test_one_pending_audit_per_sale(self, product):
        sale = _sale(product, boxes=2)
        sales_service.request_sale_edit(sale.id, reason="First", boxes_quantity=1)
        with pytest.raises(ConflictError):
            sales_service.request_sale_delete(sale.id, reason="Second")

    def test_edit_without_changes(self, product):
        sale = _sale(product, boxes=2)
        with pytest.raises(ValidationError):
            sales_service.request_sale_edit(sale.id, reason="Same", boxes_quantity=2)

    def test_list_audits(self, product):
        sale = _sale(product, boxes=2)
        sales_service.request_sale_delete(sale.id, reason="Duplicate")
        audits = sales_service.list_sale_audits(status="PENDING")
        assert [(a.sale_id, a.audit_type) for a in audits] == [(sale.id, "DELETE")]


class TestPayments:

    def test_payment_settles_sale(self, product):
        sale = _sale(product, boxes=2, status="Pending")
        sales_service.add_payment(sale.id, 150, payment_method="Cash")
        sale = sales_service.add_payment(sale.id, 50)

        assert sale.payment_status == "COMPLETED"
        assert sale.remaining_amount == 0

    def test_payment_over_remaining(self, product):
        sale = _sale(product, boxes=2, status="Half Paid")
        with pytest.raises(AmountExceedsTotal) as exc:
            sales_service.add_payment(sale.id, 150)
        assert exc.value.field == "amount"

    def test_debtors_grouped_by_client(self, product):
        _sale(product, boxes=1, status="Pending")
        _sale(product, boxes=2, status="Half Paid")
        _sale(product, boxes=1, status="Pending", client_name="Kojo", phone_number="0550000000")

        debtors = sales_service.list_debtors()
        assert [(d["client_name"], d["total_owed"], d["sales_count"]) for d in debtors] == [
            ("Ama", pytest.approx(200), 2),
            ("Kojo", pytest.approx(100), 1),
        ]

    def test_debtor_payment_oldest_first(self, product):
        first = _sale(product, boxes=1, status="Pending")
        second = _sale(product, boxes=2, status="Pending")

        result = sales_service.process_debtor_payment("Ama", 150)

        assert result["amount_applied"] == pytest.approx(150)
        assert result["remaining_payment"] == 0
        assert sales_service.get_sale(first.id).payment_status == "COMPLETED"
        assert sales_service.get_sale(second.id).remaining_amount == pytest.approx(150)

    def test_debtor_overpayment_reported(self, product):
        _sale(product, boxes=1, status="Pending")
        result = sales_service.process_debtor_payment("Ama", 130)
        assert result["amount_applied"] == pytest.approx(100)
        assert result["remaining_payment"] == pytest.approx(30)
        assert sales_service.list_debtors() == []

    def test_unknown_debtor(self, product):
        with pytest.raises(NotFound):
            sales_service.process_debtor_payment("Nobody", 10)
