"""
Read-only listings of the records the billing core consumes:
customers, products, countries, company settings and terms templates.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.modules.company.models import CompanySettings
from app.modules.contacts.models import Country, Customer
from app.modules.invoices.models import TermsTemplate
from app.modules.products.models import Product


class CatalogCrud:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_customers(self, search: Optional[str] = None, limit: int = 100) -> List[Customer]:
        query = (
            select(Customer)
            .options(selectinload(Customer.country))
            .where(Customer.is_active.is_(True))
        )
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    Customer.company_name.ilike(pattern),
                    Customer.contact_person.ilike(pattern),
                    Customer.email.ilike(pattern),
                )
            )
        result = await self.db.execute(query.order_by(Customer.company_name).limit(limit))
        return list(result.scalars().all())

    async def get_customer(self, customer_id: UUID) -> Optional[Customer]:
        result = await self.db.execute(
            select(Customer)
            .options(selectinload(Customer.country))
            .where(Customer.id == customer_id)
        )
        return result.scalars().first()

    async def list_products(self, search: Optional[str] = None, limit: int = 100) -> List[Product]:
        query = select(Product).where(Product.is_active.is_(True))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(or_(Product.name.ilike(pattern), Product.product_code.ilike(pattern)))
        result = await self.db.execute(query.order_by(Product.name).limit(limit))
        return list(result.scalars().all())

    async def list_countries(self) -> List[Country]:
        result = await self.db.execute(select(Country).order_by(Country.name))
        return list(result.scalars().all())

    async def get_company_settings(self) -> Optional[CompanySettings]:
        result = await self.db.execute(
            select(CompanySettings)
            .options(selectinload(CompanySettings.country))
            .order_by(CompanySettings.created_at)
            .limit(1)
        )
        return result.scalars().first()

    async def list_terms_templates(self, category: Optional[str] = None) -> List[TermsTemplate]:
        """Default template first, then by name"""
        query = select(TermsTemplate)
        if category:
            query = query.where(TermsTemplate.category == category)
        result = await self.db.execute(
            query.order_by(TermsTemplate.is_default.desc(), TermsTemplate.name)
        )
        return list(result.scalars().all())
