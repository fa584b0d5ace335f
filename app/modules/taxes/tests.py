"""
Tests for the taxes module

- Totals: per-line subtotal and tax, no intermediate rounding
- Amount in words and money formatting
- Currency / tax label resolution by jurisdiction
- Tax registration validation
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from app.common.validators import validate_gstin, validate_tax_registration, validate_vat_number
from app.modules.taxes.calculator import (
    amount_in_words, compute_totals, format_amount, format_money, format_rate, number_to_words
)
from app.modules.taxes.resolver import (
    GST_RULES, VAT_RULES, registration_format, resolve, resolve_country, rules_for_customer, tax_rules_for
)


class TestComputeTotals:
    """Totals are sums of per-line values"""

    def test_reference_basket(self):
        items = [
            {"quantity": 2, "unit_price": 100, "tax_rate": 18},
            {"quantity": 1, "unit_price": 500, "tax_rate": 0},
            {"quantity": 3, "unit_price": 50, "tax_rate": 5},
        ]
        totals = compute_totals(items)

        assert totals.subtotal == Decimal("850")
        assert totals.tax_amount == Decimal("43.5")
        assert totals.total == Decimal("893.5")

    def test_total_is_subtotal_plus_tax(self):
        items = [
            SimpleNamespace(quantity=Decimal("1.333"), unit_price=Decimal("19.99"), tax_rate=Decimal("12.5")),
            SimpleNamespace(quantity=Decimal("7"), unit_price=Decimal("0.33"), tax_rate=Decimal("18")),
        ]
        totals = compute_totals(items)
        assert totals.total == totals.subtotal + totals.tax_amount

    def test_no_intermediate_rounding(self):
        totals = compute_totals([{"quantity": "0.333", "unit_price": "0.10", "tax_rate": "18"}])
        assert totals.subtotal == Decimal("0.03330")
        assert totals.tax_amount == Decimal("0.005994")

    def test_empty(self):
        totals = compute_totals([])
        assert totals.total == Decimal("0")


class TestAmountInWords:
    def test_zero(self):
        assert amount_in_words(0) == "Zero Rupees Only"

    def test_whole_amount(self):
        assert amount_in_words(100) == "One Hundred Rupees Only"

    def test_fraction(self):
        assert amount_in_words(Decimal("100.50")) == "One Hundred Rupees and Fifty Paise Only"

    def test_reference_total(self):
        assert amount_in_words(Decimal("893.5")) == "Eight Hundred Ninety Three Rupees and Fifty Paise Only"

    def test_indian_grouping(self):
        assert number_to_words(12_345_678) == (
            "One Crore Twenty Three Lakh Forty Five Thousand Six Hundred Seventy Eight"
        )

    def test_other_currency_fraction_name(self):
        assert amount_in_words(Decimal("12.05"), "Dollars") == "Twelve Dollars and Five Cents Only"

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            amount_in_words(Decimal("-1"))


class TestMoneyFormatting:
    def test_indian_grouping_for_inr(self):
        assert format_amount(Decimal("1234567.891"), "INR") == "12,34,567.89"

    def test_western_grouping_otherwise(self):
        assert format_amount(Decimal("1234567.891"), "USD") == "1,234,567.89"

    def test_half_up_at_format_time(self):
        assert format_amount(Decimal("0.005"), "INR") == "0.01"

    def test_format_money(self):
        assert format_money(Decimal("893.5"), "₹", "INR") == "₹893.50"

    def test_format_rate(self):
        assert format_rate(Decimal("18.00")) == "18"
        assert format_rate(Decimal("12.50")) == "12.5"
        assert format_rate(0) == "0"


class TestResolver:
    """Same input, same descriptor; defaults when the jurisdiction is missing"""

    def test_customer_without_jurisdiction_gets_defaults(self):
        currency = resolve(SimpleNamespace(country=None))
        assert (currency.symbol, currency.code, currency.name, currency.tax_label) == ("₹", "INR", "Rupees", "GST")

    def test_explicit_currency_fields_win(self):
        country = SimpleNamespace(code="USA", currency_symbol="US$", currency_code="USD", currency_name=None)
        currency = resolve_country(country)
        assert currency.symbol == "US$"
        assert currency.code == "USD"
        assert currency.name == "Currency"
        assert currency.tax_label == "Tax"

    def test_fallback_table_by_code(self):
        currency = resolve_country({"code": "gbr"})
        assert (currency.symbol, currency.code, currency.name, currency.tax_label) == ("£", "GBP", "Pounds", "VAT")

    def test_unknown_code_defaults_currency_and_vat(self):
        currency = resolve_country({"code": "ZZZ"})
        assert currency.code == "INR"
        assert currency.tax_label == "VAT"

    def test_resolution_is_pure(self):
        customer = {"country": {"code": "DEU"}}
        assert resolve(customer) == resolve(customer)

    def test_pdf_symbol(self):
        assert resolve(None).pdf_symbol == "Rs. "
        assert resolve_country({"code": "USA"}).pdf_symbol == "$"

    def test_tax_rules(self):
        assert tax_rules_for(None) is GST_RULES
        assert tax_rules_for("IN") is GST_RULES
        assert tax_rules_for("FRA") is VAT_RULES
        assert tax_rules_for("USA").default_tax_rate == Decimal("0")
        assert rules_for_customer({"country": {"code": "IND"}}).classification_label == "HSN Code"


class TestRegistrationValidation:
    def test_gstin(self):
        assert validate_gstin("27AAPFU0939F1ZV")
        assert not validate_gstin("27AAPFU0939F1Z")
        assert validate_gstin("")

    def test_vat_number_is_free_form(self):
        assert validate_vat_number("GB 123 456 789")
        assert not validate_vat_number("123")

    def test_strict_only_for_home_jurisdiction_by_default(self):
        assert not validate_tax_registration("ABC123", "IND")
        assert not validate_tax_registration("ABC123", None)
        assert validate_tax_registration("ABC123", "GBR")

    def test_configured_strict_pattern(self):
        overrides = {"GBR": r"^GB[0-9]{9}$"}
        assert validate_tax_registration("GB123456789", "gbr", overrides)
        assert not validate_tax_registration("ABC123", "GBR", overrides)
        assert registration_format("GBR", overrides) == r"pattern ^GB[0-9]{9}$"

    def test_empty_value_is_valid(self):
        assert validate_tax_registration("", "IND")


class TestTaxesRouter:
    async def test_jurisdiction_lookup(self, client):
        response = await client.get("/taxes/jurisdictions/gbr")
        assert response.status_code == 200
        body = response.json()
        assert body["code"] == "GBR"
        assert body["currency"]["code"] == "GBP"
        assert body["rules"]["registration_label"] == "VAT Number"

    async def test_resolve_customer(self, client, customer):
        response = await client.get(f"/taxes/resolve/{customer.id}")
        assert response.status_code == 200
        body = response.json()
        assert body["currency"]["symbol"] == "₹"
        assert body["rules"]["tax_label"] == "GST"

    async def test_validate_registration(self, client):
        response = await client.post(
            "/taxes/validate-registration", json={"value": "27AAPFU0939F1ZV", "jurisdiction_code": "IND"}
        )
        assert response.status_code == 200
        assert response.json()["is_valid"] is True
        assert response.json()["registration_label"] == "GSTIN"
