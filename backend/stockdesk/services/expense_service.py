# Overview: Service-layer operations for expenses; encapsulates business logic and database work.

from __future__ import annotations

import logging
from datetime import date

from ..extensions import db
from ..errors import ConflictError, NotFound, ValidationError
from ..models import Expense, ExpenseCategory
from ..validation import ModelValidationPolicy, require_non_negative, require_positive, require_text, validate_payload
from . import reporting_service
from stockdesk.time_utils import parse_iso_date, utcnow


logger = logging.getLogger(__name__)


EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"title", "category_id", "amount", "expense_date", "added_by", "status", "receipt_ref"},
    required_on_create={"title", "category_id", "amount", "expense_date"},
)

STATUS_PENDING = "PENDING"
STATUS_PAID = "PAID"
EXPENSE_STATUSES = {STATUS_PENDING, STATUS_PAID}


# =============================================================================
# CATEGORIES
# =============================================================================

def _check_name_free(name: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(ExpenseCategory).filter(db.func.lower(ExpenseCategory.name) == name.lower())
    if exclude_id is not None:
        q = q.filter(ExpenseCategory.id != exclude_id)
    if q.first():
        raise ConflictError(f"Expense category '{name}' already exists", field="name")


def _budget(value) -> float | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return require_non_negative(value, "budget")


def create_category(name, budget=None) -> ExpenseCategory:
    name = require_text(name, "name")
    _check_name_free(name)
    category = ExpenseCategory(name=name, budget=_budget(budget))
    db.session.add(category)
    db.session.commit()
    return category


def list_categories() -> list[ExpenseCategory]:
    return db.session.query(ExpenseCategory).order_by(ExpenseCategory.name.asc()).all()


def get_category(category_id: int) -> ExpenseCategory:
    category = db.session.query(ExpenseCategory).filter_by(id=category_id).first()
    if not category:
        raise NotFound(f"Expense category {category_id} not found", field="category_id")
    return category


def update_category(category_id: int, payload: dict) -> ExpenseCategory:
    """Rename and/or re-budget. A null budget removes it."""
    category = get_category(category_id)
    unknown = sorted(set(payload) - {"name", "budget"})
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}", field=unknown[0])

    if "name" in payload:
        name = require_text(payload["name"], "name")
        _check_name_free(name, exclude_id=category.id)
        category.name = name
    if "budget" in payload:
        category.budget = _budget(payload["budget"])
    db.session.commit()
    return category


def delete_category(category_id: int) -> None:
    category = get_category(category_id)
    if db.session.query(Expense.id).filter_by(category_id=category_id).first():
        raise ConflictError("Expense category still has expenses", field="category_id")
    db.session.delete(category)
    db.session.commit()


# =============================================================================
# EXPENSES
# =============================================================================

def _enforce_rules(patch: dict) -> None:
    if "amount" in patch:
        patch["amount"] = require_positive(patch["amount"], "amount")
    if "status" in patch:
        status = (patch["status"] or "").upper()
        if status not in EXPENSE_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(sorted(EXPENSE_STATUSES))}",
                field="status",
            )
        patch["status"] = status
    if "category_id" in patch:
        get_category(patch["category_id"])


def create_expense(payload: dict, *, created_by_user_id: int | None = None) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    _enforce_rules(patch)

    expense = Expense(**patch)
    expense.status = expense.status or STATUS_PENDING
    expense.created_by_user_id = created_by_user_id
    db.session.add(expense)
    db.session.commit()
    logger.info("Expense %s recorded: %s %.2f", expense.id, expense.title, expense.amount)
    return expense


def get_expense(expense_id: int) -> Expense:
    expense = db.session.query(Expense).filter_by(id=expense_id).first()
    if not expense:
        raise NotFound(f"Expense {expense_id} not found", field="expense_id")
    return expense


def _date_arg(value, field: str) -> date | None:
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date", field=field)


def list_expenses(*, category_id: int | None = None, start_date=None, end_date=None) -> list[Expense]:
    start = _date_arg(start_date, "start_date")
    end = _date_arg(end_date, "end_date")

    q = db.session.query(Expense)
    if category_id is not None:
        q = q.filter(Expense.category_id == category_id)
    if start is not None:
        q = q.filter(Expense.expense_date >= start)
    if end is not None:
        q = q.filter(Expense.expense_date <= end)
    return q.order_by(Expense.expense_date.desc(), Expense.id.desc()).all()


def update_expense(expense_id: int, payload: dict) -> Expense:
    expense = get_expense(expense_id)
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
    _enforce_rules(patch)
    for key, value in patch.items():
        setattr(expense, key, value)
    db.session.commit()
    return expense


def delete_expense(expense_id: int) -> None:
    expense = get_expense(expense_id)
    db.session.delete(expense)
    db.session.commit()
    logger.info("Expense %s deleted", expense_id)


def expense_stats(period: str | None = None, *, today: date | None = None) -> dict:
    """
    Totals for the period, split by category, with budget use for categories
    that have a budget.
    """
    period = reporting_service.normalize_period(period)
    today = today or utcnow().date()
    start = reporting_service.period_start(period, today)

    expenses = list_expenses(start_date=start, end_date=today)

    by_category: dict[str, float] = {}
    for expense in expenses:
        name = expense.category.name if expense.category else "Unknown"
        by_category[name] = by_category.get(name, 0.0) + expense.amount

    budgets = {
        c.name: {
            "budget": c.budget,
            "spent": by_category.get(c.name, 0.0),
            "remaining": c.budget - by_category.get(c.name, 0.0),
        }
        for c in list_categories()
        if c.budget is not None
    }

    return {
        "period": period,
        "start_date": start.isoformat(),
        "total_expenses": sum(e.amount for e in expenses),
        "count": len(expenses),
        "by_category": by_category,
        "budgets": budgets,
    }
