"""Tests for money parsing and currency figure extraction."""

from decimal import Decimal

import pytest

from claim_validation.utils.number_parsing import (
    extract_currency_amounts,
    format_money,
    largest_amount,
    parse_amount,
)


class TestParseAmount:
    @pytest.mark.parametrize("value,expected", [
        ("$1,000", Decimal("1000")),
        ("USD 250", Decimal("250")),
        ("250 USD", Decimal("250")),
        ("1,000.50", Decimal("1000.50")),
        ("1.000,50", Decimal("1000.50")),
        ("249,77", Decimal("249.77")),
        ("12,500,000", Decimal("12500000")),
        (42, Decimal("42")),
        (19.99, Decimal("19.99")),
        (Decimal("7.5"), Decimal("7.5")),
    ])
    def test_parsed(self, value, expected):
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", [None, "", "$", "n/a", ["1"]])
    def test_unparseable(self, value):
        assert parse_amount(value) is None


class TestExtraction:
    def test_figures_in_order(self):
        text = "Covered up to $50,000 per incident, deductible USD 500, and $1,250.00 for towing."
        assert extract_currency_amounts(text) == [Decimal("50000"), Decimal("500"), Decimal("1250.00")]

    def test_trailing_punctuation(self):
        assert extract_currency_amounts("The limit is $5,000.") == [Decimal("5000")]

    def test_plain_numbers_ignored(self):
        assert extract_currency_amounts("Policy 2024 covers 3 vehicles") == []
        assert extract_currency_amounts("") == []

    def test_largest(self):
        assert largest_amount("Subtotal $480.00, tax $40.00, total $520.00") == Decimal("520.00")
        assert largest_amount("no figures") is None


class TestFormatMoney:
    def test_format(self):
        assert format_money(Decimal("25000")) == "$25,000.00"
        assert format_money(Decimal("0.5")) == "$0.50"
