# Overview: Service-layer operations for staff permissions; encapsulates business logic and database work.

"""
Permission Gate and Security Event Logging

TWO-LEVEL GATE (staff only; owners always pass):
1. Module master key (staff_product_master, staff_sales_master,
   staff_cash_tracking_master) must be enabled, otherwise every key in the
   module is denied regardless of its own flag.
2. Within a sub-group, the "view" key is a prerequisite for every other key
   of that sub-group (manage_sales_edit needs manage_sales_view).

Permissions are read from the database on every check (PermissionSet is
built per call), so a toggle takes effect on the very next request.

TOGGLE CASCADE (set_staff_permission):
- Disabling a view key disables its siblings.
- Enabling a non-view key also enables its sub-group's view key.
- Master keys gate at read time only; toggling one never rewrites sub-keys.
"""

from __future__ import annotations

import logging
from typing import Iterable

from ..extensions import db
from ..errors import NotFound, PermissionDenied, ValidationError
from ..models import SecurityEvent, StaffPermission, User
from ..permissions import (
    CAPABILITY_ACTIONS,
    MODULE_MASTER_KEYS,
    PERMISSION_DEFINITIONS,
    PERMISSION_INDEX,
    SUB_GROUP_VIEW_KEYS,
    PermissionAction,
    PermissionKey,
    parse_permission_key,
)
from stockdesk.time_utils import utcnow


logger = logging.getLogger(__name__)


OWNER_ONLY = "owner"


class PermissionSet:
    """Enabled keys for one staff member, built once from the raw rows."""

    def __init__(self, enabled: Iterable[PermissionKey]):
        self._enabled = frozenset(enabled)

    @classmethod
    def from_rows(cls, rows) -> "PermissionSet":
        """
        rows: StaffPermission objects or (key, is_enabled) pairs.
        Unknown keys are ignored.
        """
        enabled = []
        for row in rows:
            if isinstance(row, StaffPermission):
                raw, is_enabled = row.permission_key, row.is_enabled
            else:
                raw, is_enabled = row
            key = parse_permission_key(raw)
            if key is not None and is_enabled:
                enabled.append(key)
        return cls(enabled)

    @classmethod
    def for_user(cls, user_id: int) -> "PermissionSet":
        rows = db.session.query(StaffPermission).filter_by(user_id=user_id).all()
        return cls.from_rows(rows)

    @property
    def enabled_keys(self) -> frozenset:
        return self._enabled

    def is_enabled(self, key) -> bool:
        return parse_permission_key(key) in self._enabled

    def can_perform(self, module_master_key, sub_permission_key) -> bool:
        if not self.is_enabled(module_master_key):
            return False
        sub = parse_permission_key(sub_permission_key)
        if sub is None or sub not in self._enabled:
            return False
        module, sub_group, action = PERMISSION_INDEX[sub]
        if action in (PermissionAction.VIEW, PermissionAction.MASTER):
            return True
        view_key = SUB_GROUP_VIEW_KEYS.get((module, sub_group))
        return view_key is None or view_key in self._enabled

    def allows(self, key) -> bool:
        """can_perform() with the master key looked up from the key's own module."""
        parsed = parse_permission_key(key)
        if parsed is None:
            return False
        module = PERMISSION_INDEX[parsed][0]
        return self.can_perform(MODULE_MASTER_KEYS[module], parsed)

    def capabilities(self) -> dict:
        """
        Coarse flags per module and sub-group:
        {"sales": {"enabled": True, "manage_sales": {"view": True, "edit": False, ...}}}
        """
        result: dict = {}
        for module, master in MODULE_MASTER_KEYS.items():
            result[module] = {"enabled": self.is_enabled(master)}
        for key, _label, module, sub_group, action in PERMISSION_DEFINITIONS:
            if sub_group is None:
                continue
            flags = result[module].setdefault(sub_group, {a: False for a in CAPABILITY_ACTIONS})
            flags[action] = self.allows(key)
        return result


def can_perform(permissions: PermissionSet, module_master_key, sub_permission_key) -> bool:
    return permissions.can_perform(module_master_key, sub_permission_key)


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - PERMISSION_CHANGED
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.commit()
    return event


def user_can(user: User, key) -> bool:
    if user is None or not user.is_active:
        return False
    if user.is_owner:
        return True
    return PermissionSet.for_user(user.id).allows(key)


def require_permission(
    user: User,
    key,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Raise PermissionDenied (and log the denial) unless the user holds key.

    Usage:
        require_permission(g.current_user, PermissionKey.MANAGE_SALES_EDIT, resource=request.path)
    """
    if user_can(user, key):
        return

    code = str(key)
    log_security_event(
        user_id=user.id if user else None,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=code,
        reason=f"Missing permission: {code}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise PermissionDenied(code)


def require_owner(
    user: User,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    if user is not None and user.is_active and user.is_owner:
        return
    log_security_event(
        user_id=user.id if user else None,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=OWNER_ONLY,
        reason="Owner access required",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise PermissionDenied(OWNER_ONLY)


def _get_staff(staff_user_id: int) -> User:
    user = db.session.query(User).filter_by(id=staff_user_id).first()
    if not user:
        raise NotFound(f"User {staff_user_id} not found", field="user_id")
    if user.is_owner:
        raise ValidationError("Owners hold every permission; nothing to toggle", field="user_id")
    return user


def _set_row(user_id: int, key: PermissionKey, enabled: bool, updated_by_user_id: int | None) -> StaffPermission | None:
    row = db.session.query(StaffPermission).filter_by(user_id=user_id, permission_key=key.value).first()
    if row is None:
        if not enabled:
            return None
        row = StaffPermission(user_id=user_id, permission_key=key.value)
        db.session.add(row)
    elif row.is_enabled == enabled:
        return None
    row.is_enabled = enabled
    row.updated_by_user_id = updated_by_user_id
    return row


def set_staff_permission(
    staff_user_id: int,
    key,
    enabled: bool,
    *,
    updated_by_user_id: int | None = None,
) -> dict[str, bool]:
    """
    Toggle one key with the view cascade. Returns the full key -> enabled map.
    """
    parsed = parse_permission_key(key)
    if parsed is None:
        raise ValidationError(f"Unknown permission key '{key}'", field="permission_key")
    _get_staff(staff_user_id)

    module, sub_group, action = PERMISSION_INDEX[parsed]
    changed = [_set_row(staff_user_id, parsed, enabled, updated_by_user_id)]

    if action == PermissionAction.VIEW and not enabled:
        for sibling, _label, sib_module, sib_group, _action in PERMISSION_DEFINITIONS:
            if (sib_module, sib_group) == (module, sub_group) and sibling != parsed:
                changed.append(_set_row(staff_user_id, sibling, False, updated_by_user_id))
    elif action not in (PermissionAction.VIEW, PermissionAction.MASTER) and enabled:
        view_key = SUB_GROUP_VIEW_KEYS.get((module, sub_group))
        if view_key is not None:
            changed.append(_set_row(staff_user_id, view_key, True, updated_by_user_id))

    db.session.commit()
    changed_keys = [row.permission_key for row in changed if row is not None]
    if changed_keys:
        logger.info("Staff %s permissions changed: %s -> %s", staff_user_id, ", ".join(changed_keys), enabled)
    return get_staff_permissions(staff_user_id)


def get_staff_permissions(staff_user_id: int) -> dict[str, bool]:
    """Every known key with its stored flag (missing rows are False)."""
    stored = {
        row.permission_key: row.is_enabled
        for row in db.session.query(StaffPermission).filter_by(user_id=staff_user_id).all()
    }
    return {key.value: bool(stored.get(key.value, False)) for key, *_rest in PERMISSION_DEFINITIONS}


def capabilities_for(user: User) -> dict:
    if user.is_owner:
        return PermissionSet(PermissionKey).capabilities()
    return PermissionSet.for_user(user.id).capabilities()
