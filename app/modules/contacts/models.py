"""
SQLAlchemy models for billing contacts.

Customers are managed outside the billing core; invoices only reference
them and read their jurisdiction (Country) for currency and tax rules.
"""

from app.database.database import Base
from sqlalchemy import Column, String, Boolean, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship
from app.common.mixins import IdentityMixin, TimestampMixin


class Country(Base, IdentityMixin):
    """Jurisdiction record; `code` is ISO-style (IND, IN, USA, GBR...)"""
    __tablename__ = "countries"

    name = Column(String(100), nullable=False)
    code = Column(String(3), nullable=False, unique=True, index=True)
    currency_code = Column(String(3), nullable=True)
    currency_name = Column(String(50), nullable=True)
    currency_symbol = Column(String(10), nullable=True)


class Customer(Base, IdentityMixin, TimestampMixin):
    __tablename__ = "customers"

    company_name = Column(String(200), nullable=False)
    contact_person = Column(String(150), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)

    address_line1 = Column(String(255), nullable=True)
    address_line2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)

    # GSTIN, VAT number... depending on the jurisdiction
    tax_registration_id = Column(String(30), nullable=True)
    pan = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    country_id = Column(Uuid(as_uuid=True), ForeignKey("countries.id"), nullable=True)
    country = relationship("Country")

    @property
    def display_name(self) -> str:
        return self.company_name or self.contact_person or ""
