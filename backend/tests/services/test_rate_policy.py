"""
房价与税费策略测试
"""
import pytest
from decimal import Decimal
from types import SimpleNamespace

from folio.services.rate_policy import (
    to_minor, from_minor, compute_tax, tax_lines, inclusive_tax, receipt_taxes,
    format_rate, tax_description
)


def _component(name="VAT", rate="7.5", is_inclusive=False, is_active=True, show_on_receipt=True):
    return SimpleNamespace(
        name=name, rate=Decimal(rate), is_inclusive=is_inclusive,
        is_active=is_active, show_on_receipt=show_on_receipt
    )


def _tax(is_enabled=True, rate="7.5", name="VAT", extra=()):
    return SimpleNamespace(
        is_enabled=is_enabled,
        components=[_component(name=name, rate=rate), *extra]
    )


class TestMinorUnits:

    def test_to_minor_whole_amount(self):
        assert to_minor(Decimal("20000")) == 2000000

    def test_to_minor_rounds_half_up(self):
        assert to_minor(Decimal("0.005")) == 1
        assert to_minor(Decimal("10.125")) == 1013
        assert to_minor(Decimal("-10.125")) == -1013

    def test_to_minor_accepts_str_and_int(self):
        assert to_minor("12.34") == 1234
        assert to_minor(5) == 500

    def test_to_minor_rejects_non_finite(self):
        with pytest.raises(ValueError):
            to_minor(Decimal("NaN"))
        with pytest.raises(ValueError):
            to_minor(Decimal("Infinity"))

    def test_from_minor(self):
        assert from_minor(2150000) == Decimal("21500.00")
        assert from_minor(-1) == Decimal("-0.01")
        assert from_minor(None) == Decimal("0.00")


class TestComputeTax:

    def test_standard_rate(self):
        # 100.00 * 7.5% = 7.50
        assert compute_tax(10000, _tax()) == 750

    def test_room_charge(self):
        assert compute_tax(2000000, _tax()) == 150000

    def test_rounding(self):
        # 0.33 * 7.5% = 0.02475 -> 0.02
        assert compute_tax(33, _tax()) == 2
        # 0.10 * 5% = 0.005 -> 0.01
        assert compute_tax(10, _tax(rate="5")) == 1

    def test_disabled(self):
        assert compute_tax(10000, _tax(is_enabled=False)) == 0

    def test_zero_rate(self):
        assert compute_tax(10000, _tax(rate="0")) == 0

    def test_no_settings(self):
        assert compute_tax(10000, None) == 0

    def test_sums_exclusive_components(self):
        tax = _tax(extra=[_component(name="Tourism Levy", rate="5")])
        assert compute_tax(20000, tax) == 2500


class TestTaxLines:

    def test_single_component(self):
        assert tax_lines(20000, _tax()) == [("VAT (7.5%)", 1500)]

    def test_one_line_per_exclusive_component(self):
        tax = _tax(extra=[_component(name="Tourism Levy", rate="5")])
        assert tax_lines(20000, tax) == [("VAT (7.5%)", 1500), ("Tourism Levy (5%)", 1000)]

    def test_inclusive_component_posts_nothing(self):
        tax = _tax(extra=[_component(name="Consumption Tax", rate="5", is_inclusive=True)])
        assert tax_lines(20000, tax) == [("VAT (7.5%)", 1500)]

    def test_inactive_component_posts_nothing(self):
        tax = _tax(extra=[_component(name="Old Levy", rate="2", is_active=False)])
        assert tax_lines(20000, tax) == [("VAT (7.5%)", 1500)]

    def test_zero_amount_skipped(self):
        assert tax_lines(1, _tax(rate="5")) == []

    def test_disabled(self):
        assert tax_lines(20000, _tax(is_enabled=False)) == []


class TestReceiptTaxes:

    def test_inclusive_tax(self):
        # 107.50 含 7.5% 税 7.50
        assert inclusive_tax(10750, "7.5") == 750
        assert inclusive_tax(10000, "0") == 0

    def test_exclusive_and_inclusive_lines(self):
        tax = _tax(extra=[_component(name="Consumption Tax", rate="5", is_inclusive=True)])
        lines = receipt_taxes(21000, tax)

        assert [(line["name"], line["amount_minor"]) for line in lines] == [
            ("VAT", 1575), ("Consumption Tax", 1000),
        ]
        assert lines[1]["is_inclusive"] is True
        assert lines[0]["rate"] == Decimal("7.5")

    def test_hidden_and_inactive_components_omitted(self):
        tax = _tax(extra=[
            _component(name="Hidden", rate="3", show_on_receipt=False),
            _component(name="Old Levy", rate="2", is_active=False),
        ])
        assert [line["name"] for line in receipt_taxes(10000, tax)] == ["VAT"]

    def test_disabled(self):
        assert receipt_taxes(10000, _tax(is_enabled=False)) == []
        assert receipt_taxes(10000, None) == []


class TestDescription:

    def test_format_rate(self):
        assert format_rate(Decimal("7.50")) == "7.5"
        assert format_rate(Decimal("10.00")) == "10"
        assert format_rate("12.25") == "12.25"

    def test_tax_description(self):
        assert tax_description(_component(rate="7.50")) == "VAT (7.5%)"
        assert tax_description(_component(rate="10", name="Service")) == "Service (10%)"
