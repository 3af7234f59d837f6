# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

"""
Dashboard and sales statistics.

PERIODS:
    daily    window = today
    weekly   window = the last 7 days, today included
    monthly  window = the calendar month so far

The dashboard charts look further back than the window: 7 daily buckets,
7 weekly buckets or 6 monthly buckets, ending today. Its totals cover the
whole chart range so they always add up to the plotted series.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from ..extensions import db
from ..errors import ValidationError
from ..models import ApprovalRequest, DamagedProductRecord, Expense, Product, ProductCategory, Sale
from . import inventory_service
from stockdesk.time_utils import utcnow


PERIOD_DAILY = "daily"
PERIOD_WEEKLY = "weekly"
PERIOD_MONTHLY = "monthly"
PERIODS = (PERIOD_DAILY, PERIOD_WEEKLY, PERIOD_MONTHLY)

RECENT_LIMIT = 5


def normalize_period(period: str | None) -> str:
    value = (period or PERIOD_MONTHLY).strip().lower()
    if value not in PERIODS:
        raise ValidationError(f"period must be one of: {', '.join(PERIODS)}", field="period")
    return value


def period_start(period: str, today: date | None = None) -> date:
    """First day included in the stats window for period."""
    period = normalize_period(period)
    today = today or utcnow().date()
    if period == PERIOD_DAILY:
        return today
    if period == PERIOD_WEEKLY:
        return today - timedelta(days=6)
    return today.replace(day=1)


def _add_months(d: date, months: int) -> date:
    index = d.year * 12 + (d.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def chart_buckets(period: str, today: date | None = None) -> list[tuple[str, date, date]]:
    """(label, first_day, last_day) for each chart bucket, oldest first, ending today."""
    period = normalize_period(period)
    today = today or utcnow().date()

    if period == PERIOD_DAILY:
        days = [today - timedelta(days=i) for i in range(6, -1, -1)]
        return [(d.isoformat(), d, d) for d in days]

    if period == PERIOD_WEEKLY:
        buckets = []
        for i in range(6, -1, -1):
            last = today - timedelta(days=7 * i)
            first = last - timedelta(days=6)
            buckets.append((first.isoformat(), first, last))
        return buckets

    buckets = []
    for i in range(5, -1, -1):
        first = _add_months(today.replace(day=1), -i)
        last = min(_add_months(first, 1) - timedelta(days=1), today)
        buckets.append((first.strftime("%Y-%m"), first, last))
    return buckets


def _start_of(d: date) -> datetime:
    return datetime.combine(d, time.min)


def _sales_between(first: date, last: date) -> list[Sale]:
    return (
        db.session.query(Sale)
        .filter(
            Sale.is_deleted.is_(False),
            Sale.created_at >= _start_of(first),
            Sale.created_at < _start_of(last + timedelta(days=1)),
        )
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )


def _expenses_between(first: date, last: date) -> list[Expense]:
    return (
        db.session.query(Expense)
        .filter(Expense.expense_date >= first, Expense.expense_date <= last)
        .all()
    )


def _damage_loss_between(first: date, last: date) -> float:
    total = (
        db.session.query(db.func.coalesce(db.func.sum(DamagedProductRecord.loss_value), 0.0))
        .join(ApprovalRequest, DamagedProductRecord.approval_request_id == ApprovalRequest.id)
        .filter(
            ApprovalRequest.status == "APPROVED",
            DamagedProductRecord.damage_date >= first,
            DamagedProductRecord.damage_date <= last,
        )
        .scalar()
    )
    return float(total or 0.0)


def _bucket_totals(buckets, items, day_of, amount_of) -> list[dict]:
    totals = {label: 0.0 for label, _first, _last in buckets}
    for item in items:
        day = day_of(item)
        for label, first, last in buckets:
            if first <= day <= last:
                totals[label] += amount_of(item)
                break
    return [{"name": label, "value": totals[label]} for label, _first, _last in buckets]


def sales_stats(period: str | None = None, *, today: date | None = None) -> dict:
    """Sale count, revenue collected and average order value for the period."""
    period = normalize_period(period)
    today = today or utcnow().date()
    start = period_start(period, today)

    sales = _sales_between(start, today)
    total_revenue = sum(s.amount_paid for s in sales)
    return {
        "period": period,
        "start_date": start.isoformat(),
        "total_sales": len(sales),
        "total_revenue": total_revenue,
        "average_order_value": total_revenue / len(sales) if sales else 0.0,
    }


def dashboard_stats(period: str | None = None, *, today: date | None = None) -> dict:
    """
    Owner dashboard: revenue against expenses and damage losses, stock alerts
    and chart series.

    Profit uses the per-sale profit recorded at sale time; net profit
    subtracts expenses and approved damage losses over the same range.
    """
    period = normalize_period(period)
    today = today or utcnow().date()
    buckets = chart_buckets(period, today)
    first_day = buckets[0][1]

    sales = _sales_between(first_day, today)
    expenses = _expenses_between(first_day, today)
    damage_loss = _damage_loss_between(first_day, today)

    total_revenue = sum(s.amount_paid for s in sales)
    gross_profit = sum(s.profit for s in sales)
    total_expenses = sum(e.amount for e in expenses)

    # Growth compares against the range of the same length just before this one
    span = today - first_day
    previous_last = first_day - timedelta(days=1)
    previous_revenue = sum(s.amount_paid for s in _sales_between(previous_last - span, previous_last))
    revenue_growth = (
        (total_revenue - previous_revenue) / previous_revenue * 100 if previous_revenue > 0 else 0.0
    )

    low_stock = inventory_service.list_low_stock()

    return {
        "period": period,
        "start_date": first_day.isoformat(),
        "end_date": today.isoformat(),
        "total_sales": len(sales),
        "total_revenue": total_revenue,
        "total_expenses": total_expenses,
        "damage_loss": damage_loss,
        "gross_profit": gross_profit,
        "net_profit": gross_profit - total_expenses - damage_loss,
        "revenue_growth": revenue_growth,
        "low_stock_count": len(low_stock),
        "low_stock_products": [p.to_dict() for p in low_stock[:RECENT_LIMIT]],
        "recent_sales": [s.to_dict() for s in sales[:RECENT_LIMIT]],
        "total_products": db.session.query(Product).count(),
        "product_categories": db.session.query(ProductCategory).count(),
        "revenue_series": _bucket_totals(buckets, sales, lambda s: s.created_at.date(), lambda s: s.amount_paid),
        "expense_series": _bucket_totals(buckets, expenses, lambda e: e.expense_date, lambda e: e.amount),
    }
