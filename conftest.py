"""
Shared fixtures: one in-memory SQLite database per test, seeded
jurisdictions and customers, and an email stub in place of SMTP.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"

from datetime import date
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database.database import Base, get_async_db
from app.main import app as fastapi_app
from app.modules.company.models import CompanySettings
from app.modules.contacts.models import Country, Customer
from app.modules.invoices.schemas import InvoiceCreate, InvoiceItemIn
from app.modules.invoices.service import InvoiceService
from app.modules.payments.models import PaymentGateway

TODAY = date(2025, 10, 15)


class StubEmailService:
    """Records what would have been sent; `succeed` decides the outcome"""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.invoice_emails = []
        self.payment_requests = []

    def send_invoice_email(self, payload) -> bool:
        self.invoice_emails.append(payload)
        return self.succeed

    def send_payment_request_email(self, recipient, invoice_number, customer_name, company_name,
                                   amount, payment_url, expires_in_hours) -> bool:
        self.payment_requests.append({
            "recipient": recipient,
            "invoice_number": invoice_number,
            "amount": amount,
            "payment_url": payment_url,
            "expires_in_hours": expires_in_hours,
        })
        return self.succeed


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def email_stub():
    return StubEmailService()


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def service(db, email_stub, today):
    return InvoiceService(db, email=email_stub, today=lambda: today)


@pytest.fixture
async def india(db):
    country = Country(name="India", code="IND", currency_code="INR", currency_name="Rupees", currency_symbol="₹")
    db.add(country)
    await db.commit()
    return country


@pytest.fixture
async def united_kingdom(db):
    country = Country(name="United Kingdom", code="GBR")
    db.add(country)
    await db.commit()
    return country


@pytest.fixture
async def customer(db, india):
    customer = Customer(
        company_name="Acme Traders",
        contact_person="R. Sharma",
        email="billing@acme.example.com",
        phone="+91 22 5555 0101",
        address_line1="12 Market Road",
        city="Mumbai",
        state="Maharashtra",
        postal_code="400001",
        tax_registration_id="27AAPFU0939F1ZV",
        country_id=india.id,
    )
    db.add(customer)
    await db.commit()
    return customer


@pytest.fixture
async def customer_without_email(db, india):
    customer = Customer(company_name="Quiet Supplies", country_id=india.id)
    db.add(customer)
    await db.commit()
    return customer


@pytest.fixture
async def company(db, india):
    company = CompanySettings(
        company_name="Northwind Billing Pvt Ltd",
        address_line1="1 Harbour Street",
        city="Pune",
        state="Maharashtra",
        email="accounts@northwind.example.com",
        tax_registration_id="27AABCN1234F1Z5",
        bank_name="State Bank",
        account_number="001234567890",
        ifsc_code="SBIN0000123",
        country_id=india.id,
    )
    db.add(company)
    await db.commit()
    return company


@pytest.fixture
async def gateway(db):
    gateway = PaymentGateway(name="Razorpay", provider="razorpay", is_active=True, priority=1)
    db.add(gateway)
    await db.commit()
    return gateway


@pytest.fixture
def make_form(today):
    """Invoice form with the three-line reference basket unless items are given"""
    def _make_form(customer_id, **overrides):
        data = {
            "customer_id": customer_id,
            "invoice_date": today,
            "due_date": date(2025, 11, 14),
            "notes": None,
            "items": [
                InvoiceItemIn(item_name="Widget", description="Steel widget", quantity=Decimal("2"),
                              unit_price=Decimal("100"), tax_rate=Decimal("18"), hsn_code="8479"),
                InvoiceItemIn(item_name="Setup", description="On-site setup", quantity=Decimal("1"),
                              unit_price=Decimal("500"), tax_rate=Decimal("0")),
                InvoiceItemIn(item_name="Bolts", description="M8 bolts", quantity=Decimal("3"),
                              unit_price=Decimal("50"), tax_rate=Decimal("5")),
            ],
        }
        data.update(overrides)
        return InvoiceCreate(**data)
    return _make_form


@pytest.fixture
async def client(session_factory, email_stub, monkeypatch):
    async def override_get_async_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_async_db] = override_get_async_db
    monkeypatch.setattr("app.modules.invoices.service.email_service", email_stub)
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()
