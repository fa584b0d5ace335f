"""
Tests for the catalog listings used by the invoice form
"""

from decimal import Decimal

from app.modules.catalog.crud import CatalogCrud
from app.modules.contacts.models import Customer
from app.modules.invoices.models import TermsTemplate
from app.modules.products.models import Product


class TestCatalogCrud:
    async def test_customer_search(self, db, customer, customer_without_email):
        crud = CatalogCrud(db)

        everyone = await crud.list_customers()
        assert [c.company_name for c in everyone] == ["Acme Traders", "Quiet Supplies"]

        found = await crud.list_customers(search="acme.example")
        assert [c.id for c in found] == [customer.id]

    async def test_inactive_customers_hidden(self, db, customer):
        db.add(Customer(company_name="Dormant Co", is_active=False))
        await db.commit()

        names = [c.company_name for c in await CatalogCrud(db).list_customers()]

        assert "Dormant Co" not in names

    async def test_active_products_only(self, db):
        db.add_all([
            Product(name="Widget", product_code="W-1", unit_price=Decimal("100"), tax_rate=Decimal("18")),
            Product(name="Retired", product_code="R-1", unit_price=Decimal("10"), is_active=False),
        ])
        await db.commit()

        products = await CatalogCrud(db).list_products(search="w-")

        assert [p.name for p in products] == ["Widget"]

    async def test_default_terms_first(self, db):
        db.add_all([
            TermsTemplate(name="Advance", category="payment", content="50% in advance"),
            TermsTemplate(name="Net 30", category="payment", content="Due in 30 days", is_default=True),
            TermsTemplate(name="Warranty", category="service", content="One year"),
        ])
        await db.commit()

        templates = await CatalogCrud(db).list_terms_templates("payment")

        assert [t.name for t in templates] == ["Net 30", "Advance"]

    async def test_no_company_settings(self, db):
        assert await CatalogCrud(db).get_company_settings() is None


class TestCatalogRouter:
    async def test_customers(self, client, customer):
        response = await client.get("/catalog/customers", params={"search": "Acme"})
        assert response.status_code == 200
        [body] = response.json()
        assert body["display_name"] == "Acme Traders"
        assert body["country"]["code"] == "IND"

    async def test_countries(self, client, india, united_kingdom):
        response = await client.get("/catalog/countries")
        assert [c["code"] for c in response.json()] == ["IND", "GBR"]

    async def test_company_missing(self, client):
        response = await client.get("/catalog/company")
        assert response.status_code == 404

    async def test_company(self, client, company):
        response = await client.get("/catalog/company")
        assert response.status_code == 200
        body = response.json()
        assert body["company_name"] == "Northwind Billing Pvt Ltd"
        assert "header_image" not in body

    async def test_invoice_settings_created_on_first_access(self, client):
        response = await client.get("/catalog/invoice-settings")
        assert response.status_code == 200
        body = response.json()
        assert body["invoice_prefix"] == "INV"
        assert body["number_format"] == "YYYY-MM-####"
        assert body["current_number"] == 0

        again = await client.get("/catalog/invoice-settings")
        assert again.json() == body
