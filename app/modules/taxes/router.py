from fastapi import APIRouter
from typing import Any, Optional
from uuid import UUID

from app.common.exceptions import NotFound
from app.core.config import settings
from app.dependencies.dbDependecies import async_db_dependency
from app.modules.catalog.crud import CatalogCrud
from app.modules.taxes.resolver import (
    CurrencyInfo, JurisdictionTaxRules, is_valid_registration, registration_format,
    resolve_country, tax_rules_for
)
from app.modules.taxes.schemas import (
    CurrencyOut, JurisdictionOut, RegistrationCheck, RegistrationCheckResult, TaxRulesOut
)

taxes_router = APIRouter(prefix="/taxes", tags=["Taxes"])


def _currency_out(currency: CurrencyInfo) -> CurrencyOut:
    return CurrencyOut(
        symbol=currency.symbol,
        code=currency.code,
        name=currency.name,
        tax_label=currency.tax_label,
        pdf_symbol=currency.pdf_symbol,
    )


def _rules_out(rules: JurisdictionTaxRules) -> TaxRulesOut:
    return TaxRulesOut(
        tax_label=rules.tax_label,
        registration_label=rules.registration_label,
        classification_label=rules.classification_label,
        classification_short=rules.classification_short,
        default_tax_rate=rules.default_tax_rate,
    )


def _jurisdiction_out(country: Any, code: Optional[str] = None) -> JurisdictionOut:
    return JurisdictionOut(
        code=code,
        currency=_currency_out(resolve_country(country)),
        rules=_rules_out(tax_rules_for(code)),
        registration_format=registration_format(code, settings.STRICT_TAX_REGISTRATION_PATTERNS),
    )


@taxes_router.get("/resolve/{customer_id}", response_model=JurisdictionOut)
async def resolve_customer_taxes(customer_id: UUID, db: async_db_dependency):
    """
    Currency and tax labels for a customer

    Resolved from the customer's country; customers without one get the
    home jurisdiction (INR / GST).
    """
    customer = await CatalogCrud(db).get_customer(customer_id)
    if customer is None:
        raise NotFound("Customer", customer_id)
    country = customer.country
    return _jurisdiction_out(country, country.code if country else None)


@taxes_router.get("/jurisdictions/{code}", response_model=JurisdictionOut)
async def get_jurisdiction(code: str):
    """Static lookup by jurisdiction code, without a stored country record"""
    code = code.strip().upper()
    return _jurisdiction_out({"code": code}, code)


@taxes_router.post("/validate-registration", response_model=RegistrationCheckResult)
async def validate_registration(check: RegistrationCheck):
    overrides = settings.STRICT_TAX_REGISTRATION_PATTERNS
    return RegistrationCheckResult(
        value=check.value,
        jurisdiction_code=check.jurisdiction_code,
        is_valid=is_valid_registration(check.value, check.jurisdiction_code, overrides),
        registration_label=tax_rules_for(check.jurisdiction_code).registration_label,
        expected_format=registration_format(check.jurisdiction_code, overrides),
    )
