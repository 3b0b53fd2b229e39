"""
Pytest fixtures for the billing tests.

Every test gets a fresh in-memory store.
"""

import pytest

from catalog import Catalog
from database import Database
from models import Cashier
from settlement import CashierSystem


@pytest.fixture
def db():
    """In-memory key-value store."""
    database = Database(":memory:")
    yield database
    database.close()


@pytest.fixture
def catalog(db):
    return Catalog(db)


@pytest.fixture
def system(db):
    """Cashier session bound to the test store."""
    return CashierSystem(db, Cashier(id="u1", name="Asha"))


@pytest.fixture
def rice(catalog):
    """Loose rice sold by weight."""
    return catalog.create("Basmati Rice", "Kg", price=100, stock=10,
                          min_stock=2, category="Grains", barcode="8901001")


@pytest.fixture
def oil(catalog):
    return catalog.create("Sunflower Oil", "Litre", price=180, stock=5,
                          category="Oils", barcode="8901002")


@pytest.fixture
def soap(catalog):
    return catalog.create("Bath Soap", "Piece", price=35, stock=20,
                          min_stock=5, category="Toiletries", barcode="8901003")
