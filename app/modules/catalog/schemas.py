from pydantic import BaseModel
from decimal import Decimal
from typing import Optional
from uuid import UUID


class CountryOut(BaseModel):
    id: UUID
    name: str
    code: str
    currency_code: Optional[str] = None
    currency_name: Optional[str] = None
    currency_symbol: Optional[str] = None

    class Config:
        from_attributes = True


class CustomerOut(BaseModel):
    id: UUID
    company_name: str
    contact_person: Optional[str] = None
    display_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    tax_registration_id: Optional[str] = None
    pan: Optional[str] = None
    is_active: bool
    country: Optional[CountryOut] = None

    class Config:
        from_attributes = True


class ProductOut(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    product_code: Optional[str] = None
    unit_price: Decimal
    unit: str
    tax_rate: Decimal
    hsn_code: Optional[str] = None

    class Config:
        from_attributes = True


class CompanySettingsOut(BaseModel):
    """Company profile shown on documents; branding image bytes are not exposed"""
    id: UUID
    company_name: str
    legal_name: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    tax_registration_id: Optional[str] = None
    pan: Optional[str] = None
    cin: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    branch_name: Optional[str] = None
    header_image_width: Optional[int] = None
    header_image_height: Optional[int] = None
    footer_image_width: Optional[int] = None
    footer_image_height: Optional[int] = None
    country: Optional[CountryOut] = None

    class Config:
        from_attributes = True


class InvoiceSettingsOut(BaseModel):
    invoice_prefix: str
    invoice_suffix: str
    number_format: str
    reset_annually: bool
    financial_year_start_month: int
    current_financial_year: str
    current_number: int
    default_tax_rate: Decimal
    due_days: int

    class Config:
        from_attributes = True


class TermsTemplateOut(BaseModel):
    id: UUID
    name: str
    category: str
    content: str
    is_default: bool

    class Config:
        from_attributes = True
