from app.database.database import Base
from sqlalchemy import Column, Integer, String, LargeBinary, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from app.common.mixins import IdentityMixin, TimestampMixin


class CompanySettings(Base, IdentityMixin, TimestampMixin):
    """Sender identity, bank details and branding used on printed invoices"""
    __tablename__ = "company_settings"

    company_name = Column(String(200), nullable=False)
    legal_name = Column(String(200), nullable=True)
    address_line1 = Column(String(255), nullable=True)
    address_line2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    phone = Column(String(30), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(255), nullable=True)

    # Legal identifiers
    tax_registration_id = Column(String(30), nullable=True)
    pan = Column(String(20), nullable=True)
    cin = Column(String(30), nullable=True)

    # Bank details
    bank_name = Column(String(150), nullable=True)
    account_number = Column(String(50), nullable=True)
    ifsc_code = Column(String(20), nullable=True)
    branch_name = Column(String(150), nullable=True)

    # Branding images with their pixel size so the layout can keep the aspect ratio
    header_image = Column(LargeBinary, nullable=True)
    header_image_width = Column(Integer, nullable=True)
    header_image_height = Column(Integer, nullable=True)
    footer_image = Column(LargeBinary, nullable=True)
    footer_image_width = Column(Integer, nullable=True)
    footer_image_height = Column(Integer, nullable=True)

    country_id = Column(Uuid(as_uuid=True), ForeignKey("countries.id"), nullable=True)
    country = relationship("Country")
