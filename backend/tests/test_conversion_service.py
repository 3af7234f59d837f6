"""
Unit conversion and derived economics.

Pure functions; no app or database needed.
"""

from datetime import date, datetime
from types import SimpleNamespace

import pytest

from stockdesk.display import DisplaySettings, format_amount
from stockdesk.errors import InvalidRatio
from stockdesk.services.conversion_service import (
    boxes_to_kg,
    days_left,
    derive_unit_economics,
    kg_to_boxes,
    loss_value,
    validate_ratio,
)


class TestRatio:

    @pytest.mark.parametrize("ratio", [0, -1, None, "abc", float("inf")])
    def test_invalid_ratio_rejected(self, ratio):
        with pytest.raises(InvalidRatio) as exc:
            validate_ratio(ratio)
        assert exc.value.field == "box_to_kg_ratio"

    def test_numeric_string_accepted(self):
        assert validate_ratio("12.5") == 12.5

    def test_conversions_use_ratio(self):
        assert boxes_to_kg(3, 10) == 30
        assert kg_to_boxes(25, 10) == 2.5


class TestDerivedEconomics:

    def test_per_kg_and_profit_fields(self):
        e = derive_unit_economics(10, 80, 100)
        assert e.cost_per_kg == pytest.approx(8)
        assert e.price_per_kg == pytest.approx(10)
        assert e.profit_per_box == pytest.approx(20)
        assert e.profit_per_kg == pytest.approx(2)

    def test_profit_per_kg_matches_box_profit_over_ratio(self):
        e = derive_unit_economics(4, 30, 50)
        assert e.profit_per_kg == pytest.approx(e.profit_per_box / 4)

    def test_loss_allowed(self):
        e = derive_unit_economics(5, 100, 90)
        assert e.profit_per_box == pytest.approx(-10)

    def test_zero_ratio_never_divides(self):
        with pytest.raises(InvalidRatio):
            derive_unit_economics(0, 80, 100)

    def test_loss_value(self):
        product = SimpleNamespace(cost_per_box=80, cost_per_kg=8)
        assert loss_value(product, 2, 5) == pytest.approx(200)


class TestDaysLeft:

    def test_none_without_expiry(self):
        assert days_left(None) is None

    def test_rounds_up_partial_days(self):
        now = datetime(2026, 10, 1, 12, 0)
        assert days_left(date(2026, 10, 3), now=now) == 2

    def test_exact_midnight(self):
        assert days_left(date(2026, 10, 3), now=datetime(2026, 10, 1)) == 2

    def test_expired_is_negative(self):
        assert days_left(date(2026, 9, 28), now=datetime(2026, 10, 1)) == -3


class TestDisplay:

    def test_format_amount(self):
        assert format_amount(1234.5, DisplaySettings()) == "$1,234.50"

    def test_format_negative_with_custom_currency(self):
        settings = DisplaySettings(currency_code="GHS", currency_symbol="GH₵", decimals=1)
        assert format_amount(-5, settings) == "-GH₵5.0"

    def test_none_passes_through(self):
        assert format_amount(None, DisplaySettings()) is None
