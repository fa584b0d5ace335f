"""
Contacts module

Customers billed by invoices and the countries (jurisdictions) that decide
their currency and tax labels.

Components:
- models.py: Country and Customer SQLAlchemy models
"""

from .models import Country, Customer

__all__ = ["Country", "Customer"]
