"""Tests for unit conversion."""

from decimal import Decimal

import pytest

from costbook.services.unit_converter import (
    convert_standard_units,
    format_conversion,
    get_conversion_factor,
    get_unit_type,
    units_compatible,
)


class TestUnitTypes:
    @pytest.mark.parametrize(
        "unit,expected",
        [
            ("oz", "weight"),
            ("LB", "weight"),
            ("cup", "us_volume"),
            ("fl oz", "us_volume"),
            ("ml", "metric_volume"),
            ("dozen", "count"),
            ("bunch", "unknown"),
        ],
    )
    def test_get_unit_type(self, unit, expected):
        assert get_unit_type(unit) == expected

    def test_units_compatible(self):
        assert units_compatible("lb", "oz")
        assert units_compatible("cup", "tbsp")
        assert not units_compatible("cup", "oz")
        assert not units_compatible("cup", "ml")
        assert not units_compatible("bunch", "bunch")


class TestConversionFactor:
    def test_pound_to_ounce_is_exact(self):
        assert get_conversion_factor("lb", "oz") == Decimal("16")

    def test_gallon_to_cup(self):
        assert get_conversion_factor("gal", "cup") == Decimal("16")

    def test_dozen_to_each(self):
        assert get_conversion_factor("dozen", "each") == Decimal("12")

    def test_fractional_factor(self):
        assert get_conversion_factor("oz", "lb") == Decimal("0.0625")

    def test_same_unit_is_one(self):
        assert get_conversion_factor("bunch", "bunch") == Decimal("1")

    def test_incompatible_units_return_none(self):
        assert get_conversion_factor("cup", "lb") is None
        assert get_conversion_factor("bunch", "each") is None


class TestConvertStandardUnits:
    def test_converts_value(self):
        success, value, error = convert_standard_units(Decimal("2"), "lb", "oz")
        assert success
        assert value == Decimal("32")
        assert error == ""

    def test_negative_value_rejected(self):
        success, value, error = convert_standard_units(Decimal("-1"), "lb", "oz")
        assert not success
        assert value == 0
        assert "negative" in error

    def test_unknown_unit(self):
        success, _, error = convert_standard_units(Decimal("1"), "bunch", "oz")
        assert not success
        assert "Unknown unit" in error

    def test_incompatible(self):
        success, _, error = convert_standard_units(Decimal("1"), "cup", "oz")
        assert not success
        assert "incompatible" in error

    def test_format_conversion(self):
        assert format_conversion(Decimal("1"), "lb", "oz") == "1 lb = 16.00 oz"
        assert format_conversion(Decimal("1"), "cup", "oz").startswith("Error:")
