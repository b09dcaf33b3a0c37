import asyncio
from typing import Optional, Tuple, Union

from storefront.cart import CartStore
from storefront.catalog import CatalogStore, FilterService, ProductService
from storefront.checkout import (
    CheckoutOrchestrator,
    PaymentProcessor,
    simulated_payment,
)
from storefront.config import Settings, load_settings
from storefront.domain import ActiveFilters, FilterOptions, Product
from storefront.errors import LookupFailure
from storefront.filters import SortKey, apply, products_in_category, search_products
from storefront.ftypes import Either
from storefront.logger import get_logger
from storefront.storage import FileStorage, Storage
from storefront.tasks import CancelToken
from storefront.wishlist import WishlistStore

logger = get_logger(__name__)


class CatalogService:
    """Фасад каталога: загрузка, страницы категорий, поиск, рекомендации"""

    def __init__(self, products: ProductService, filters: FilterService):
        self.products = products
        self.filters = filters
        self.store = CatalogStore()
        self.filter_options: Optional[FilterOptions] = None

    async def load(
        self, token: Optional[CancelToken] = None
    ) -> Either[LookupFailure, Tuple[Product, ...]]:
        """Товары и варианты фильтров параллельно; ошибка каталога -> Left"""
        try:
            products, options = await asyncio.gather(
                self.store.load(self.products, token), self.filters.get_filters()
            )
        except LookupFailure as e:
            return Either.left(e)
        self.filter_options = options
        return Either.right(products)

    def browse(
        self,
        category_slug: str = "all",
        filters: Optional[ActiveFilters] = None,
        sort_key: Union[SortKey, str] = SortKey.POPULARITY,
    ) -> Tuple[Product, ...]:
        scoped = products_in_category(self.store.products, category_slug)
        return apply(scoped, filters or ActiveFilters(), sort_key)

    def search(self, query: str) -> Tuple[Product, ...]:
        return search_products(self.store.products, query)

    async def recommendations(self, product: Product) -> Tuple[Product, ...]:
        try:
            return await self.products.get_recommendations(product.id, product.category)
        except Exception as e:
            logger.warning("Failed to load recommendations for %s: %s", product.id, e)
            return ()


class Storefront:
    """
    Всё состояние одной сессии витрины. Сторы создаются здесь и передаются
    в UI явно, без глобальных синглтонов.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[Storage] = None,
        product_service: Optional[ProductService] = None,
        filter_service: Optional[FilterService] = None,
    ):
        self.settings = settings or load_settings()
        self.storage = storage or FileStorage(self.settings.storage_dir)
        products = product_service or ProductService.from_file(
            self.settings.products_path, self.settings.fetch_delay
        )
        filters = filter_service or FilterService(
            self.settings.filters_path, self.settings.filters_delay
        )
        self.catalog = CatalogService(products, filters)
        self.cart = CartStore(
            self.storage,
            products,
            free_shipping_threshold=self.settings.free_shipping_threshold,
            shipping_fee=self.settings.shipping_fee,
        )
        self.wishlist = WishlistStore(self.storage)

    async def start(
        self, token: Optional[CancelToken] = None
    ) -> Either[LookupFailure, Tuple[Product, ...]]:
        """Однократная гидрация при старте сессии"""
        self.wishlist.hydrate()
        await self.cart.hydrate(token)
        return await self.catalog.load(token)

    def begin_checkout(
        self, payment_processor: Optional[PaymentProcessor] = None
    ) -> CheckoutOrchestrator:
        """EmptyCartError, если корзина пуста"""
        return CheckoutOrchestrator(
            self.cart,
            payment_processor or simulated_payment(self.settings.payment_delay),
        )


# ============ Синхронные обёртки для UI ============


def run(coro):
    """Streamlit вызывает колбэки синхронно: выполняем корутину до конца"""
    return asyncio.run(coro)
