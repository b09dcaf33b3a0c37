import asyncio
import json
import random
from typing import Any, Dict, List, Optional, Tuple

from .domain import FilterOptions, Product, product_from_dict, product_to_dict
from .errors import LookupFailure, ProductNotFound
from .ftypes import Maybe
from .logger import get_logger
from .tasks import CancelToken, check

logger = get_logger(__name__)

RECOMMENDATIONS_LIMIT = 4

DEFAULT_FILTER_OPTIONS = FilterOptions(
    categories=("Men", "Women", "Kids", "Home Living", "Beauty"),
    brands=(),
    sizes=("XS", "S", "M", "L", "XL", "XXL"),
    colors=("Black", "White", "Blue", "Red", "Green"),
    discounts=("10% and above", "20% and above", "30% and above", "50% and above"),
)


def load_products(path: str) -> Tuple[Product, ...]:
    """Загружает products.json и возвращает кортеж иммутабельных товаров"""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return tuple(map(product_from_dict, data))


class ProductService:
    """
    Каталог товаров (внешний источник данных).
    Каждый вызов - одна асинхронная операция с имитацией задержки сети,
    без повторов и таймаутов.
    """

    def __init__(self, products: Tuple[Product, ...], delay: float = 0.0):
        self._products: List[Product] = list(products)
        self.delay = delay

    @classmethod
    def from_file(cls, path: str, delay: float = 0.0) -> "ProductService":
        return cls(load_products(path), delay)

    async def _wait(self, factor: float = 1.0) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay * factor)

    def _index(self, product_id: int) -> int:
        for i, p in enumerate(self._products):
            if p.id == product_id:
                return i
        raise ProductNotFound(product_id)

    async def get_all(self) -> Tuple[Product, ...]:
        await self._wait()
        return tuple(self._products)

    async def get_by_id(self, product_id: int) -> Product:
        await self._wait(2 / 3)
        return self._products[self._index(product_id)]

    async def get_recommendations(
        self, product_id: int, category: str
    ) -> Tuple[Product, ...]:
        """До 4 товаров той же категории в наличии, кроме product_id. Порядок случайный"""
        await self._wait(2 / 3)
        candidates = [
            p
            for p in self._products
            if p.id != product_id and p.category == category and p.in_stock
        ]
        random.shuffle(candidates)
        return tuple(candidates[:RECOMMENDATIONS_LIMIT])

    async def create(self, data: Dict[str, Any]) -> Product:
        await self._wait(4 / 3)
        new_id = max((p.id for p in self._products), default=0) + 1
        product = product_from_dict({**data, "Id": new_id})
        self._products.append(product)
        logger.info("Created product %s (%s)", product.id, product.name)
        return product

    async def update(self, product_id: int, changes: Dict[str, Any]) -> Product:
        """changes - в ключах JSON каталога, как и в create; Id менять нельзя"""
        if "Id" in changes or "id" in changes:
            raise ValueError("Product Id cannot be changed")
        await self._wait()
        index = self._index(product_id)
        merged = {**product_to_dict(self._products[index]), **changes}
        updated = product_from_dict(merged)
        self._products[index] = updated
        return updated

    async def delete(self, product_id: int) -> Product:
        await self._wait(2 / 3)
        index = self._index(product_id)
        return self._products.pop(index)


class FilterService:
    """Варианты фильтров для боковой панели; при недоступном источнике - дефолты"""

    def __init__(self, path: str, delay: float = 0.0):
        self.path = path
        self.delay = delay

    async def get_filters(self) -> FilterOptions:
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return FilterOptions(
                **{
                    key: tuple(data.get(key, ()))
                    for key in ("categories", "brands", "sizes", "colors", "discounts")
                }
            )
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(
                "Filter options unavailable (%s), using defaults: %s", self.path, e
            )
            return DEFAULT_FILTER_OPTIONS


class CatalogStore:
    """Полный список товаров, полученный из каталога, и поиск по Id"""

    def __init__(self, products: Tuple[Product, ...] = ()):
        self._products = tuple(products)
        self._by_id = {p.id: p for p in self._products}
        self.loaded = bool(products)

    @property
    def products(self) -> Tuple[Product, ...]:
        return self._products

    async def load(
        self, service: ProductService, token: Optional[CancelToken] = None
    ) -> Tuple[Product, ...]:
        """
        Одна попытка загрузки. При ошибке - LookupFailure, стор не меняется;
        повтор только по действию пользователя ("Retry").
        """
        try:
            products = await service.get_all()
        except Exception as e:
            logger.error("Failed to load products: %s", e)
            raise LookupFailure("Failed to load products", e) from e
        check(token)
        self._products = tuple(products)
        self._by_id = {p.id: p for p in self._products}
        self.loaded = True
        logger.info("Catalog loaded: %d products", len(self._products))
        return self._products

    def get(self, product_id: int) -> Maybe[Product]:
        return Maybe.from_optional(self._by_id.get(product_id))
