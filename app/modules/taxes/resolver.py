"""
Tax/currency resolution by customer jurisdiction.

Pure lookups: the same customer (or country) always resolves to the same
currency descriptor and tax labels. Works with ORM rows, pydantic models
or dicts.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from app.common.validators import strict_pattern_for, validate_tax_registration


@dataclass(frozen=True)
class CurrencyInfo:
    symbol: str
    code: str
    name: str
    tax_label: str

    @property
    def pdf_symbol(self) -> str:
        """Symbol drawable with the standard PDF fonts"""
        return PDF_SAFE_SYMBOLS.get(self.symbol, self.symbol)


@dataclass(frozen=True)
class JurisdictionTaxRules:
    tax_label: str
    registration_label: str
    classification_label: str
    classification_short: str
    default_tax_rate: Decimal


PDF_SAFE_SYMBOLS = {"₹": "Rs. "}

_INR = ("₹", "INR", "Rupees")
_USD = ("$", "USD", "Dollars")
_GBP = ("£", "GBP", "Pounds")
_EUR = ("€", "EUR", "Euros")

DEFAULT_CURRENCY = _INR

# Used only when the jurisdiction record carries no currency fields
CURRENCY_FALLBACKS: Dict[str, tuple] = {
    "IND": _INR, "IN": _INR,
    "USA": _USD, "US": _USD,
    "GBR": _GBP, "GB": _GBP, "UK": _GBP,
    "DEU": _EUR, "DE": _EUR,
    "FRA": _EUR, "FR": _EUR,
    "ITA": _EUR, "IT": _EUR,
    "ESP": _EUR, "ES": _EUR,
    "NLD": _EUR, "NL": _EUR,
}

GST_RULES = JurisdictionTaxRules("GST", "GSTIN", "HSN Code", "HSN", Decimal("18"))
SALES_TAX_RULES = JurisdictionTaxRules("Tax", "Tax ID", "Product Code", "Code", Decimal("0"))
VAT_RULES = JurisdictionTaxRules("VAT", "VAT Number", "Product Code", "Code", Decimal("20"))

TAX_RULES: Dict[str, JurisdictionTaxRules] = {
    "IND": GST_RULES, "IN": GST_RULES,
    "USA": SALES_TAX_RULES, "US": SALES_TAX_RULES,
}


def _get(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _normalize(code: Optional[str]) -> Optional[str]:
    return code.strip().upper() if code else None


def jurisdiction_of(customer: Any) -> Any:
    return _get(customer, "country")


def tax_rules_for(jurisdiction_code: Optional[str]) -> JurisdictionTaxRules:
    """GST when there is no jurisdiction, table lookup otherwise, VAT for the rest."""
    code = _normalize(jurisdiction_code)
    if code is None:
        return GST_RULES
    return TAX_RULES.get(code, VAT_RULES)


def resolve_country(country: Any) -> CurrencyInfo:
    code = _normalize(_get(country, "code"))
    tax_label = tax_rules_for(code).tax_label

    symbol = _get(country, "currency_symbol")
    currency_code = _get(country, "currency_code")
    if symbol and currency_code:
        return CurrencyInfo(
            symbol=symbol,
            code=currency_code,
            name=_get(country, "currency_name") or "Currency",
            tax_label=tax_label,
        )

    symbol, currency_code, name = CURRENCY_FALLBACKS.get(code, DEFAULT_CURRENCY)
    return CurrencyInfo(symbol=symbol, code=currency_code, name=name, tax_label=tax_label)


def resolve(customer: Any) -> CurrencyInfo:
    """Currency descriptor and tax label for a customer."""
    return resolve_country(jurisdiction_of(customer))


def rules_for_customer(customer: Any) -> JurisdictionTaxRules:
    return tax_rules_for(_get(jurisdiction_of(customer), "code"))


def registration_format(jurisdiction_code: Optional[str], overrides: Optional[Dict[str, str]] = None) -> str:
    """Human-readable description of the expected registration id format."""
    pattern = strict_pattern_for(jurisdiction_code or "IND", overrides)
    if pattern:
        return f"pattern {pattern}"
    return "4-20 characters"


def is_valid_registration(value: str, jurisdiction_code: Optional[str], overrides: Optional[Dict[str, str]] = None) -> bool:
    return validate_tax_registration(value, jurisdiction_code, overrides)
