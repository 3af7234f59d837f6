# Overview: Permission system package.
# Re-exports all public APIs for short imports.

from .categories import PermissionModule, PermissionAction, CAPABILITY_ACTIONS
from .definitions import (
    PermissionKey,
    PERMISSION_DEFINITIONS,
    MASTER_PERMISSIONS,
    PRODUCT_PERMISSIONS,
    SALES_PERMISSIONS,
    CASH_TRACKING_PERMISSIONS,
    MODULE_MASTER_KEYS,
    PERMISSION_INDEX,
    SUB_GROUP_VIEW_KEYS,
)
from .helpers import (
    get_all_permission_keys,
    get_permissions_by_module,
    get_permission_definition,
    parse_permission_key,
    validate_permission_key,
)

__all__ = [
    "PermissionModule",
    "PermissionAction",
    "CAPABILITY_ACTIONS",
    "PermissionKey",
    "PERMISSION_DEFINITIONS",
    "MASTER_PERMISSIONS",
    "PRODUCT_PERMISSIONS",
    "SALES_PERMISSIONS",
    "CASH_TRACKING_PERMISSIONS",
    "MODULE_MASTER_KEYS",
    "PERMISSION_INDEX",
    "SUB_GROUP_VIEW_KEYS",
    "get_all_permission_keys",
    "get_permissions_by_module",
    "get_permission_definition",
    "parse_permission_key",
    "validate_permission_key",
]
