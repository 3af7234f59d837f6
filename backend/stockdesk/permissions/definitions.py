# Overview: All staff permission definitions organized by module.
# Each permission is defined as: (key, label, module, sub_group, action)

from enum import Enum

from .categories import PermissionModule, PermissionAction


class PermissionKey(str, Enum):
    """Every permission key a staff member can hold."""

    # Module masters
    STAFF_PRODUCT_MASTER = "staff_product_master"
    STAFF_SALES_MASTER = "staff_sales_master"
    STAFF_CASH_TRACKING_MASTER = "staff_cash_tracking_master"

    # Products
    PRODUCT_CATEGORIES_VIEW = "product_categories_view"
    PRODUCT_CATEGORIES_CREATE = "product_categories_create"
    PRODUCT_CATEGORIES_EDIT = "product_categories_edit"
    PRODUCT_CATEGORIES_DELETE = "product_categories_delete"
    PRODUCT_ADDING_VIEW = "product_adding_view"
    PRODUCT_ADDING_CREATE = "product_adding_create"
    LIVE_STOCK_VIEW = "live_stock_view"
    LIVE_STOCK_EDIT = "live_stock_edit"
    LIVE_STOCK_DELETE = "live_stock_delete"

    # Sales
    MANAGE_SALES_VIEW = "manage_sales_view"
    MANAGE_SALES_EDIT = "manage_sales_edit"
    MANAGE_SALES_DELETE = "manage_sales_delete"
    ADD_SALES_VIEW = "add_sales_view"
    AUDIT_SALES_VIEW = "audit_sales_view"
    AUDIT_SALES_CONFIRM = "audit_sales_confirm"
    AUDIT_SALES_REJECT = "audit_sales_reject"

    # Cash tracking
    DEPOSITED_VIEW = "deposited_view"
    DEPOSITED_CREATE = "deposited_create"
    DEPOSITED_DELETE = "deposited_delete"
    DEBTORS_VIEW = "debtors_view"

    def __str__(self) -> str:
        return self.value


K = PermissionKey
M = PermissionModule
A = PermissionAction


# -- MASTERS --

MASTER_PERMISSIONS = [
    (K.STAFF_PRODUCT_MASTER, "Staff Product Access", M.PRODUCTS, None, A.MASTER),
    (K.STAFF_SALES_MASTER, "Staff Sales Access", M.SALES, None, A.MASTER),
    (K.STAFF_CASH_TRACKING_MASTER, "Staff Cash Tracking Access", M.CASH_TRACKING, None, A.MASTER),
]


# -- PRODUCTS --

PRODUCT_PERMISSIONS = [
    (K.PRODUCT_CATEGORIES_VIEW, "View Categories", M.PRODUCTS, "categories", A.VIEW),
    (K.PRODUCT_CATEGORIES_CREATE, "Create Category", M.PRODUCTS, "categories", A.CREATE),
    (K.PRODUCT_CATEGORIES_EDIT, "Edit Category", M.PRODUCTS, "categories", A.EDIT),
    (K.PRODUCT_CATEGORIES_DELETE, "Delete Category", M.PRODUCTS, "categories", A.DELETE),
    (K.PRODUCT_ADDING_VIEW, "View Product Adding", M.PRODUCTS, "product_adding", A.VIEW),
    (K.PRODUCT_ADDING_CREATE, "Add Product", M.PRODUCTS, "product_adding", A.CREATE),
    (K.LIVE_STOCK_VIEW, "View Live Stock", M.PRODUCTS, "live_stock", A.VIEW),
    (K.LIVE_STOCK_EDIT, "Edit Stock", M.PRODUCTS, "live_stock", A.EDIT),
    (K.LIVE_STOCK_DELETE, "Delete Stock", M.PRODUCTS, "live_stock", A.DELETE),
]


# -- SALES --

SALES_PERMISSIONS = [
    (K.MANAGE_SALES_VIEW, "View Sales", M.SALES, "manage_sales", A.VIEW),
    (K.MANAGE_SALES_EDIT, "Edit Sales", M.SALES, "manage_sales", A.EDIT),
    (K.MANAGE_SALES_DELETE, "Delete Sales", M.SALES, "manage_sales", A.DELETE),
    (K.ADD_SALES_VIEW, "Add Sale Access", M.SALES, "add_sales", A.VIEW),
    (K.AUDIT_SALES_VIEW, "View Sales Audit", M.SALES, "audit_sales", A.VIEW),
    (K.AUDIT_SALES_CONFIRM, "Confirm Audit", M.SALES, "audit_sales", A.CONFIRM),
    (K.AUDIT_SALES_REJECT, "Reject Audit", M.SALES, "audit_sales", A.REJECT),
]


# -- CASH TRACKING --

CASH_TRACKING_PERMISSIONS = [
    (K.DEPOSITED_VIEW, "View Deposited", M.CASH_TRACKING, "deposited", A.VIEW),
    (K.DEPOSITED_CREATE, "Create Deposit", M.CASH_TRACKING, "deposited", A.CREATE),
    (K.DEPOSITED_DELETE, "Delete Deposit", M.CASH_TRACKING, "deposited", A.DELETE),
    (K.DEBTORS_VIEW, "View Debtors", M.CASH_TRACKING, "debtors", A.VIEW),
]


# Combined list of all permissions (preserves display ordering)
PERMISSION_DEFINITIONS = (
    MASTER_PERMISSIONS
    + PRODUCT_PERMISSIONS
    + SALES_PERMISSIONS
    + CASH_TRACKING_PERMISSIONS
)


# module -> master key
MODULE_MASTER_KEYS = {perm[2]: perm[0] for perm in MASTER_PERMISSIONS}

# key -> (module, sub_group, action); the single lookup table used by the gate
PERMISSION_INDEX = {perm[0]: (perm[2], perm[3], perm[4]) for perm in PERMISSION_DEFINITIONS}

# (module, sub_group) -> view key of that sub-group
SUB_GROUP_VIEW_KEYS = {
    (perm[2], perm[3]): perm[0]
    for perm in PERMISSION_DEFINITIONS
    if perm[4] == A.VIEW
}
