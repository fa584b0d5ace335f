from app.database.database import Base
from sqlalchemy import Column, String, Boolean, Numeric, Text
from app.common.mixins import IdentityMixin, TimestampMixin


class Product(Base, IdentityMixin, TimestampMixin):
    """Catalog product; only used to pre-fill invoice item fields."""
    __tablename__ = "products"

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    product_code = Column(String(50), nullable=True)
    unit_price = Column(Numeric(15, 2), nullable=False, default=0)
    unit = Column(String(20), nullable=False, default="pcs")
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    hsn_code = Column(String(20), nullable=True)  # Classification code
    is_active = Column(Boolean, default=True, nullable=False)
