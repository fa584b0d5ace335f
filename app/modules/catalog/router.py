"""
Read-only catalog endpoints used to fill the invoice form
"""

from fastapi import APIRouter, Query
from typing import List, Optional

from app.common.exceptions import NotFound
from app.dependencies.dbDependecies import async_db_dependency
from app.modules.catalog.crud import CatalogCrud
from app.modules.catalog.schemas import (
    CompanySettingsOut, CountryOut, CustomerOut, InvoiceSettingsOut, ProductOut, TermsTemplateOut
)
from app.modules.invoices.numbering import InvoiceNumberService

catalog_router = APIRouter(prefix="/catalog", tags=["Catalog"])


@catalog_router.get("/customers", response_model=List[CustomerOut])
async def list_customers(
    db: async_db_dependency,
    search: Optional[str] = Query(None, description="Company, contact person or email"),
    limit: int = Query(100, ge=1, le=500),
):
    return await CatalogCrud(db).list_customers(search, limit)


@catalog_router.get("/products", response_model=List[ProductOut])
async def list_products(
    db: async_db_dependency,
    search: Optional[str] = Query(None, description="Name or product code"),
    limit: int = Query(100, ge=1, le=500),
):
    """Active products only"""
    return await CatalogCrud(db).list_products(search, limit)


@catalog_router.get("/countries", response_model=List[CountryOut])
async def list_countries(db: async_db_dependency):
    return await CatalogCrud(db).list_countries()


@catalog_router.get("/company", response_model=CompanySettingsOut)
async def get_company_settings(db: async_db_dependency):
    company = await CatalogCrud(db).get_company_settings()
    if company is None:
        raise NotFound("Company settings")
    return company


@catalog_router.get("/invoice-settings", response_model=InvoiceSettingsOut)
async def get_invoice_settings(db: async_db_dependency):
    """Numbering configuration; the default row is created on first access"""
    return await InvoiceNumberService(db).get_settings()


@catalog_router.get("/terms-templates", response_model=List[TermsTemplateOut])
async def list_terms_templates(
    db: async_db_dependency,
    category: Optional[str] = Query(None),
):
    return await CatalogCrud(db).list_terms_templates(category)
