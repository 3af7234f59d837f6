from .auth import User, StaffPermission, SessionToken
from .security import SecurityEvent
from .approvals import ApprovalRequest, ApprovalState, Pending, Approved, Rejected
from .inventory import ProductCategory, Product, Restock, StockMovement, DamagedProductRecord, StockCorrection
from .sales import Sale, SaleAudit, SalePayment
from .cash import Deposit, ExpenseCategory, Expense

__all__ = [
    'User', 'StaffPermission', 'SessionToken', 'SecurityEvent',
    'ApprovalRequest', 'ApprovalState', 'Pending', 'Approved', 'Rejected',
    'ProductCategory', 'Product', 'Restock', 'StockMovement', 'DamagedProductRecord', 'StockCorrection',
    'Sale', 'SaleAudit', 'SalePayment',
    'Deposit', 'ExpenseCategory', 'Expense',
]
