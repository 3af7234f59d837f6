"""
Dashboard and sales statistics tests.

Sales are pinned to fixed timestamps so windows do not depend on the day the
suite runs.
"""

from datetime import date, datetime

import pytest

from stockdesk.errors import ValidationError
from stockdesk.services import (
    approval_service,
    expense_service,
    inventory_service,
    reporting_service,
    sales_service,
)


TODAY = date(2026, 10, 18)


def _sale_at(db_session, product, when, boxes=1, **kwargs):
    kwargs.setdefault("payment_status", "Paid")
    sale = sales_service.create_sale(product.id, boxes, 0, **kwargs)
    sale.created_at = when
    db_session.commit()
    return sale


class TestPeriods:

    @pytest.mark.parametrize("period,start", [
        ("daily", date(2026, 10, 18)),
        ("weekly", date(2026, 10, 12)),
        ("monthly", date(2026, 10, 1)),
    ])
    def test_period_start(self, period, start):
        assert reporting_service.period_start(period, TODAY) == start

    def test_unknown_period(self):
        with pytest.raises(ValidationError) as exc:
            reporting_service.period_start("yearly", TODAY)
        assert exc.value.field == "period"

    def test_monthly_buckets_cross_the_year(self):
        buckets = reporting_service.chart_buckets("monthly", date(2026, 2, 10))
        assert [label for label, _first, _last in buckets] == [
            "2025-09", "2025-10", "2025-11", "2025-12", "2026-01", "2026-02",
        ]
        assert buckets[-1][2] == date(2026, 2, 10)

    def test_weekly_buckets_end_today(self):
        buckets = reporting_service.chart_buckets("weekly", TODAY)
        assert len(buckets) == 7
        assert buckets[-1][1:] == (date(2026, 10, 12), TODAY)
        assert buckets[0][1] == date(2026, 8, 31)


class TestSalesStats:

    def test_counts_revenue_in_window(self, db_session, product):
        _sale_at(db_session, product, datetime(2026, 10, 18, 9), boxes=2)
        _sale_at(
            db_session, product, datetime(2026, 10, 18, 10),
            payment_status="Pending", client_name="Ama", phone_number="0240000000",
        )
        _sale_at(db_session, product, datetime(2026, 10, 17, 23))

        stats = reporting_service.sales_stats("daily", today=TODAY)

        assert stats["total_sales"] == 2
        assert stats["total_revenue"] == pytest.approx(200)
        assert stats["average_order_value"] == pytest.approx(100)

    def test_deleted_sales_ignored(self, db_session, product, owner):
        sale = _sale_at(db_session, product, datetime(2026, 10, 18, 9))
        audit = sales_service.request_sale_delete(sale.id, reason="Duplicate")
        approval_service.decide(audit.approval_request_id, "approve", decided_by_user_id=owner.id)

        stats = reporting_service.sales_stats("daily", today=TODAY)
        assert stats["total_sales"] == 0
        assert stats["average_order_value"] == 0


class TestDashboardStats:

    def test_net_profit_subtracts_expenses_and_damage(self, db_session, product, owner):
        _sale_at(db_session, product, datetime(2026, 10, 18, 9), boxes=2)

        fuel = expense_service.create_category("Fuel")
        expense_service.create_expense(
            {"title": "Fuel", "category_id": fuel.id, "amount": 15, "expense_date": "2026-10-18"}
        )

        record = inventory_service.report_damage(product.id, 1, 0, "Crushed", damage_date="2026-10-18")
        approval_service.decide(record.approval_request_id, "approve", decided_by_user_id=owner.id)
        # Pending damage does not count
        inventory_service.report_damage(product.id, 1, 0, "Dented", damage_date="2026-10-18")

        stats = reporting_service.dashboard_stats("daily", today=TODAY)

        assert stats["total_revenue"] == pytest.approx(200)
        assert stats["gross_profit"] == pytest.approx(40)
        assert stats["total_expenses"] == pytest.approx(15)
        assert stats["damage_loss"] == pytest.approx(80)
        assert stats["net_profit"] == pytest.approx(40 - 15 - 80)
        assert stats["revenue_series"][-1] == {"name": "2026-10-18", "value": pytest.approx(200)}
        assert stats["expense_series"][-1]["value"] == pytest.approx(15)
        assert len(stats["revenue_series"]) == 7

    def test_revenue_growth_against_previous_range(self, db_session, product):
        _sale_at(db_session, product, datetime(2026, 10, 10, 9), boxes=2)
        _sale_at(db_session, product, datetime(2026, 10, 18, 9), boxes=3)

        stats = reporting_service.dashboard_stats("daily", today=TODAY)

        assert stats["start_date"] == "2026-10-12"
        assert stats["total_revenue"] == pytest.approx(300)
        assert stats["revenue_growth"] == pytest.approx(50)

    def test_low_stock_and_recent(self, db_session, product):
        _sale_at(db_session, product, datetime(2026, 10, 18, 9), boxes=9)

        stats = reporting_service.dashboard_stats("monthly", today=TODAY)

        assert stats["low_stock_count"] == 1
        assert stats["low_stock_products"][0]["id"] == product.id
        assert len(stats["recent_sales"]) == 1
        assert stats["total_products"] == 1
