from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional


class CurrencyOut(BaseModel):
    symbol: str
    code: str
    name: str
    tax_label: str
    pdf_symbol: str


class TaxRulesOut(BaseModel):
    tax_label: str
    registration_label: str
    classification_label: str
    classification_short: str
    default_tax_rate: Decimal


class JurisdictionOut(BaseModel):
    """Currency and tax labels of a jurisdiction code (e.g. 'IND', 'USA', 'GBR')"""
    code: Optional[str] = None
    currency: CurrencyOut
    rules: TaxRulesOut
    registration_format: str


class RegistrationCheck(BaseModel):
    value: str = Field(..., max_length=50, description="Tax registration id, e.g. a GSTIN or VAT number")
    jurisdiction_code: Optional[str] = Field(None, max_length=3, description="Empty means the home jurisdiction")


class RegistrationCheckResult(BaseModel):
    value: str
    jurisdiction_code: Optional[str] = None
    is_valid: bool
    registration_label: str
    expected_format: str
