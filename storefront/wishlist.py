from functools import reduce
from typing import Optional, Tuple

from .config import WISHLIST_STORAGE_KEY
from .domain import Product, product_from_dict, product_to_dict
from .errors import LookupFailure, PersistenceParseFailure
from .ftypes import Either
from .logger import get_logger
from .storage import Storage, load_json_list, save_json

logger = get_logger(__name__)


class WishlistStore:
    """Избранное: снимки товаров на момент добавления, без дублей по Id"""

    def __init__(self, storage: Storage, key: str = WISHLIST_STORAGE_KEY):
        self.storage = storage
        self.key = key
        self._items: Tuple[Product, ...] = ()

    @property
    def items(self) -> Tuple[Product, ...]:
        return self._items

    @property
    def count(self) -> int:
        return len(self._items)

    def _commit(self, items: Tuple[Product, ...]) -> None:
        self._items = items
        save_json(self.storage, self.key, [product_to_dict(p) for p in items])

    def hydrate(self) -> Tuple[Product, ...]:
        try:
            raw = load_json_list(self.storage, self.key)
            products = tuple(map(product_from_dict, raw))
        except (PersistenceParseFailure, KeyError, TypeError, ValueError) as e:
            logger.error("Failed to parse wishlist from storage: %s", e)
            products = ()

        # дубли в сохранённых данных схлопываем, первый снимок выигрывает
        def keep_first(acc: Tuple[Product, ...], p: Product) -> Tuple[Product, ...]:
            return acc if any(x.id == p.id for x in acc) else acc + (p,)

        self._items = reduce(keep_first, products, ())
        return self._items

    def is_in_wishlist(self, product_id: int) -> bool:
        return any(p.id == product_id for p in self._items)

    def add_to_wishlist(self, product: Product) -> None:
        if self.is_in_wishlist(product.id):
            return
        self._commit(self._items + (product,))

    def remove_from_wishlist(self, product_id: int) -> None:
        self._commit(tuple(p for p in self._items if p.id != product_id))

    def clear_wishlist(self) -> None:
        self._commit(())

    def toggle(self, product: Product) -> bool:
        """Кнопка-сердечко. Возвращает True, если товар теперь в избранном"""
        if self.is_in_wishlist(product.id):
            self.remove_from_wishlist(product.id)
            return False
        self.add_to_wishlist(product)
        return True

    async def move_to_cart(
        self,
        product_id: int,
        cart,
        size: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Either[LookupFailure, object]:
        """
        Переносит товар в корзину (по умолчанию первый размер и цвет,
        эффективная цена) и убирает из избранного, если добавление удалось
        """
        product = next((p for p in self._items if p.id == product_id), None)
        if product is None:
            return Either.left(LookupFailure(f"Product {product_id} is not in wishlist"))

        result = await cart.add_to_cart(
            product_id=product.id,
            quantity=1,
            size=size if size is not None else next(iter(product.sizes), ""),
            color=color if color is not None else next(iter(product.colors), ""),
            price=product.effective_price,
        )
        if result.is_right:
            self.remove_from_wishlist(product_id)
        return result
