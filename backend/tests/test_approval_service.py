"""
Approval workflow tests.

Verifies:
- A request is decided at most once
- Approve runs the handler, reject never does
- Approved-but-unapplied requests can be reprocessed, and reprocessing an
  applied request is a no-op
"""

import pytest

from stockdesk.errors import InvalidState, ValidationError
from stockdesk.models import Approved, ApprovalRequest, Pending, Rejected
from stockdesk.permissions import PermissionKey
from stockdesk.services import approval_service, inventory_service


def _damage_request(product, user):
    record = inventory_service.report_damage(product.id, 2, 0, "Dropped", reported_by_user_id=user.id)
    return approval_service.get_request(record.approval_request_id)


class TestDecide:

    def test_new_request_is_pending(self, product, staff):
        request = _damage_request(product, staff)
        assert isinstance(request.state, Pending)
        assert request.applied_at is None

    def test_approve_sets_applied_at(self, product, owner, staff):
        request = _damage_request(product, staff)
        decided = approval_service.decide(request.id, "approve", decided_by_user_id=owner.id)

        assert decided.status == "APPROVED"
        assert decided.decided_by_user_id == owner.id
        assert decided.applied_at is not None
        assert isinstance(decided.state, Approved)

    def test_reject_keeps_reason(self, product, owner, staff):
        request = _damage_request(product, staff)
        decided = approval_service.decide(
            request.id, "reject", decided_by_user_id=owner.id, reject_reason="Photo unclear"
        )

        assert decided.status == "REJECTED"
        assert decided.applied_at is None
        assert decided.state == Rejected(reason="Photo unclear")

    @pytest.mark.parametrize("second", ["approve", "reject"])
    def test_second_decision_is_invalid_state(self, product, owner, staff, second):
        request = _damage_request(product, staff)
        approval_service.decide(request.id, "approve", decided_by_user_id=owner.id)

        with pytest.raises(InvalidState):
            approval_service.decide(request.id, second, decided_by_user_id=owner.id)

        # Stock was decremented exactly once
        assert inventory_service.get_product(product.id).quantity_box == 8

    def test_unknown_decision(self, product, owner, staff):
        request = _damage_request(product, staff)
        with pytest.raises(ValidationError) as exc:
            approval_service.decide(request.id, "maybe", decided_by_user_id=owner.id)
        assert exc.value.field == "decision"

    @pytest.mark.parametrize("alias,expected", [
        ("Approve", "APPROVED"),
        ("confirm", "APPROVED"),
        ("REJECTED", "REJECTED"),
    ])
    def test_decision_aliases(self, alias, expected):
        assert approval_service.normalize_decision(alias) == expected


class TestReprocess:

    def _approved_unapplied(self, product, owner, staff, db_session):
        request = _damage_request(product, staff)
        # Simulate a crash between the decision commit and the apply commit
        request.status = "APPROVED"
        request.decided_by_user_id = owner.id
        db_session.commit()
        return request

    def test_reprocess_applies_once(self, product, owner, staff, db_session):
        request = self._approved_unapplied(product, owner, staff, db_session)
        assert inventory_service.get_product(product.id).quantity_box == 10

        approval_service.reprocess(request.id)
        assert inventory_service.get_product(product.id).quantity_box == 8

        # Second call is a no-op
        approval_service.reprocess(request.id)
        assert inventory_service.get_product(product.id).quantity_box == 8

    def test_reprocess_unapplied_batch(self, product, owner, staff, db_session):
        request = self._approved_unapplied(product, owner, staff, db_session)

        result = approval_service.reprocess_unapplied()
        assert result == {"applied": [request.id], "failed": []}
        assert approval_service.reprocess_unapplied() == {"applied": [], "failed": []}

    def test_reprocess_pending_is_invalid(self, product, staff):
        request = _damage_request(product, staff)
        with pytest.raises(InvalidState):
            approval_service.reprocess(request.id)

    def test_failed_apply_is_reported(self, product, owner, staff, db_session):
        request = self._approved_unapplied(product, owner, staff, db_session)
        inventory_service.sell(product.id, 9, 0)

        result = approval_service.reprocess_unapplied()
        assert result["applied"] == []
        assert result["failed"][0]["request_id"] == request.id
        assert result["failed"][0]["error"] == "INSUFFICIENT_STOCK"
        assert db_session.get(ApprovalRequest, request.id).applied_at is None


class TestListing:

    def test_filter_by_status_and_kind(self, product, owner, staff):
        first = _damage_request(product, staff)
        inventory_service.correct_stock(product.id, 1, 0, "Recount", requested_by_user_id=staff.id)
        approval_service.decide(first.id, "reject", decided_by_user_id=owner.id)

        pending = approval_service.list_requests(status="pending")
        assert [r.kind for r in pending] == ["STOCK_CORRECTION"]
        assert [r.id for r in approval_service.list_requests(kind="DAMAGE_REPORT")] == [first.id]

    def test_bad_status_filter(self, db_session):
        with pytest.raises(ValidationError):
            approval_service.list_requests(status="DONE")


class TestRequiredPermission:

    def test_sale_kinds_use_audit_keys(self):
        assert approval_service.required_permission("SALE_EDIT", "approve") == PermissionKey.AUDIT_SALES_CONFIRM
        assert approval_service.required_permission("SALE_DELETE", "reject") == PermissionKey.AUDIT_SALES_REJECT

    def test_other_kinds_are_owner_only(self):
        for kind in ("STOCK_CORRECTION", "DAMAGE_REPORT", "PRODUCT_EDIT", "DEPOSIT"):
            assert approval_service.required_permission(kind, "approve") is None
