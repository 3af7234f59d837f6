# Overview: Permission module and sub-group constants for grouping related permissions.


class PermissionModule:
    """Top-level staff modules; each one is gated by a master key."""
    PRODUCTS = "products"
    SALES = "sales"
    CASH_TRACKING = "cash_tracking"


class PermissionAction:
    MASTER = "master"
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    CONFIRM = "confirm"
    REJECT = "reject"


# Every action a capability flag can report, in display order
CAPABILITY_ACTIONS = (
    PermissionAction.VIEW,
    PermissionAction.CREATE,
    PermissionAction.EDIT,
    PermissionAction.DELETE,
    PermissionAction.CONFIRM,
    PermissionAction.REJECT,
)
