import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
from storefront.catalog import ProductService
from storefront.domain import Product
from storefront.storage import MemoryStorage


def make_product(id, price=1000, discounted_price=None, **kwargs) -> Product:
    defaults = dict(
        name=f"Product {id}",
        brand="Urban Thread",
        category="Men",
        sizes=("S", "M", "L"),
        colors=("Red", "Blue"),
        images=(f"https://img.example/{id}.jpg",),
        description="",
        in_stock=True,
    )
    defaults.update(kwargs)
    return Product(id=id, price=price, discounted_price=discounted_price, **defaults)


@pytest.fixture
def products():
    return (
        make_product(1, 1000, 800, brand="Urban Thread", category="Men"),
        make_product(2, 500, brand="Denim Co", category="Men", sizes=("30", "32")),
        make_product(3, 2000, 1000, brand="Bloom", category="Women", colors=("Pink",)),
        make_product(4, 1500, 1350, brand="Bloom", category="Women", sizes=("XS", "S")),
        make_product(5, 300, brand="Homely", category="Home Living", in_stock=False),
    )


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def product_service(products):
    return ProductService(products, delay=0)
