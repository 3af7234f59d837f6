"""
Staff permission gate tests.

Verifies:
- The module master key denies every sub-key while it is off
- A sub-group's view key is a prerequisite for its other keys
- Toggle cascade (view off -> siblings off, non-view on -> view on)
- Owners pass every check, deactivated users pass none
"""

import pytest

from stockdesk.errors import PermissionDenied, ValidationError
from stockdesk.models import SecurityEvent
from stockdesk.permissions import PERMISSION_DEFINITIONS, PermissionKey as K
from stockdesk.services import auth_service, permission_service
from stockdesk.services.permission_service import PermissionSet, can_perform


def _set(*enabled):
    return PermissionSet.from_rows([(key.value, True) for key in enabled])


class TestGate:

    @pytest.mark.parametrize("key", [k for k, _label, module, sub, _a in PERMISSION_DEFINITIONS if sub])
    def test_master_off_denies_everything(self, key):
        everything_but_masters = [k for k, _l, _m, sub, _a in PERMISSION_DEFINITIONS if sub]
        perms = _set(*everything_but_masters)
        assert not perms.allows(key)

    def test_view_off_denies_edit(self):
        perms = _set(K.STAFF_SALES_MASTER, K.MANAGE_SALES_EDIT)
        assert not can_perform(perms, K.STAFF_SALES_MASTER, K.MANAGE_SALES_EDIT)

    def test_view_on_allows_edit(self):
        perms = _set(K.STAFF_SALES_MASTER, K.MANAGE_SALES_VIEW, K.MANAGE_SALES_EDIT)
        assert can_perform(perms, K.STAFF_SALES_MASTER, K.MANAGE_SALES_EDIT)

    def test_view_in_other_sub_group_does_not_count(self):
        perms = _set(K.STAFF_SALES_MASTER, K.ADD_SALES_VIEW, K.MANAGE_SALES_EDIT)
        assert not perms.allows(K.MANAGE_SALES_EDIT)

    def test_unknown_keys_ignored(self):
        perms = PermissionSet.from_rows([("not_a_key", True), ("debtors_view", True)])
        assert perms.enabled_keys == frozenset({K.DEBTORS_VIEW})
        assert not perms.allows("not_a_key")

    def test_capabilities_shape(self):
        perms = _set(K.STAFF_SALES_MASTER, K.MANAGE_SALES_VIEW, K.MANAGE_SALES_EDIT)
        caps = perms.capabilities()

        assert caps["sales"]["enabled"] is True
        assert caps["sales"]["manage_sales"]["edit"] is True
        assert caps["sales"]["manage_sales"]["delete"] is False
        assert caps["products"]["enabled"] is False
        assert caps["products"]["live_stock"]["view"] is False


class TestUserChecks:

    def test_owner_always_allowed(self, owner):
        assert permission_service.user_can(owner, K.DEPOSITED_DELETE)

    def test_new_staff_denied(self, staff):
        assert not permission_service.user_can(staff, K.LIVE_STOCK_VIEW)

    def test_denial_is_logged(self, staff, db_session):
        with pytest.raises(PermissionDenied) as exc:
            permission_service.require_permission(staff, K.LIVE_STOCK_VIEW, resource="/api/products")
        assert exc.value.to_dict()["required_permission"] == "live_stock_view"

        event = db_session.query(SecurityEvent).one()
        assert event.event_type == "PERMISSION_DENIED"
        assert event.user_id == staff.id

    def test_inactive_staff_denied(self, staff):
        permission_service.set_staff_permission(staff.id, K.STAFF_PRODUCT_MASTER, True)
        permission_service.set_staff_permission(staff.id, K.LIVE_STOCK_VIEW, True)
        assert permission_service.user_can(staff, K.LIVE_STOCK_VIEW)

        auth_service.set_user_active(staff.id, False)
        assert not permission_service.user_can(staff, K.LIVE_STOCK_VIEW)

    def test_require_owner(self, owner, staff):
        permission_service.require_owner(owner)
        with pytest.raises(PermissionDenied):
            permission_service.require_owner(staff)


class TestToggleCascade:

    def test_enabling_edit_enables_view(self, staff):
        perms = permission_service.set_staff_permission(staff.id, K.LIVE_STOCK_EDIT, True)
        assert perms["live_stock_edit"] is True
        assert perms["live_stock_view"] is True
        assert perms["live_stock_delete"] is False

    def test_disabling_view_disables_siblings(self, staff):
        permission_service.set_staff_permission(staff.id, K.MANAGE_SALES_EDIT, True)
        permission_service.set_staff_permission(staff.id, K.MANAGE_SALES_DELETE, True)
        permission_service.set_staff_permission(staff.id, K.ADD_SALES_VIEW, True)

        perms = permission_service.set_staff_permission(staff.id, K.MANAGE_SALES_VIEW, False)
        assert perms["manage_sales_view"] is False
        assert perms["manage_sales_edit"] is False
        assert perms["manage_sales_delete"] is False
        # Other sub-groups untouched
        assert perms["add_sales_view"] is True

    def test_master_toggle_keeps_sub_keys(self, staff):
        permission_service.set_staff_permission(staff.id, K.STAFF_SALES_MASTER, True)
        permission_service.set_staff_permission(staff.id, K.MANAGE_SALES_VIEW, True)
        assert permission_service.user_can(staff, K.MANAGE_SALES_VIEW)

        perms = permission_service.set_staff_permission(staff.id, K.STAFF_SALES_MASTER, False)
        assert perms["manage_sales_view"] is True
        assert not permission_service.user_can(staff, K.MANAGE_SALES_VIEW)

        permission_service.set_staff_permission(staff.id, K.STAFF_SALES_MASTER, True)
        assert permission_service.user_can(staff, K.MANAGE_SALES_VIEW)

    def test_unknown_key(self, staff):
        with pytest.raises(ValidationError) as exc:
            permission_service.set_staff_permission(staff.id, "fly", True)
        assert exc.value.field == "permission_key"

    def test_owner_not_toggleable(self, owner):
        with pytest.raises(ValidationError):
            permission_service.set_staff_permission(owner.id, K.LIVE_STOCK_VIEW, True)

    def test_full_map_defaults_false(self, staff):
        perms = permission_service.get_staff_permissions(staff.id)
        assert set(perms) == {key.value for key, *_rest in PERMISSION_DEFINITIONS}
        assert not any(perms.values())
