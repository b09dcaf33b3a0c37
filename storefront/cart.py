from dataclasses import replace
from functools import reduce
from typing import Optional, Tuple

from .config import CART_STORAGE_KEY
from .domain import CartLineItem
from .errors import LookupFailure, PersistenceParseFailure
from .ftypes import Either
from .logger import get_logger
from .storage import Storage, load_json_list, save_json
from .tasks import CancelToken, check

logger = get_logger(__name__)

CartItems = Tuple[CartLineItem, ...]

FREE_SHIPPING_THRESHOLD = 999
SHIPPING_FEE = 99


# ============ Операции над корзиной (чистые функции) ============


def add_item(items: CartItems, item: CartLineItem) -> CartItems:
    """
    Тот же (productId, size, color) -> количество складывается,
    иначе позиция добавляется в конец
    """
    if any(i.key == item.key for i in items):
        return tuple(
            replace(i, quantity=i.quantity + item.quantity) if i.key == item.key else i
            for i in items
        )
    return items + (item,)


def set_quantity(items: CartItems, product_id: int, quantity: int) -> CartItems:
    """Меняет количество у всех вариантов товара (ключ только productId)"""
    return tuple(
        replace(i, quantity=quantity) if i.product_id == product_id else i
        for i in items
    )


def remove_items(items: CartItems, product_id: int) -> CartItems:
    return tuple(filter(lambda i: i.product_id != product_id, items))


def cart_total(items: CartItems) -> float:
    return reduce(lambda acc, i: acc + i.price * i.quantity, items, 0)


def cart_count(items: CartItems) -> int:
    return reduce(lambda acc, i: acc + i.quantity, items, 0)


def shipping_fee(
    subtotal: float,
    threshold: float = FREE_SHIPPING_THRESHOLD,
    fee: float = SHIPPING_FEE,
) -> float:
    """Бесплатная доставка от порога, иначе фиксированная плата"""
    return 0 if subtotal >= threshold else fee


def cart_savings(items: CartItems) -> float:
    """Экономия по позициям со скидкой (только если товар известен)"""

    def saved(item: CartLineItem) -> float:
        product = item.product
        if product is None or not product.has_discount:
            return 0
        return (product.price - product.discounted_price) * item.quantity

    return reduce(lambda acc, i: acc + saved(i), items, 0)


def cart_summary(
    items: CartItems,
    threshold: float = FREE_SHIPPING_THRESHOLD,
    fee: float = SHIPPING_FEE,
) -> dict:
    subtotal = cart_total(items)
    shipping = shipping_fee(subtotal, threshold, fee) if items else 0
    return {
        "subtotal": subtotal,
        "shipping_fee": shipping,
        "total": subtotal + shipping,
        "count": cart_count(items),
        "savings": cart_savings(items),
    }


# ============ Стор корзины ============


class CartStore:
    """
    Корзина одной сессии. Владеет состоянием, хранилищем и ссылкой на каталог;
    после каждой мутации весь список позиций пишется в хранилище.
    """

    def __init__(
        self,
        storage: Storage,
        catalog,
        key: str = CART_STORAGE_KEY,
        free_shipping_threshold: float = FREE_SHIPPING_THRESHOLD,
        shipping_fee: float = SHIPPING_FEE,
    ):
        self.storage = storage
        self.catalog = catalog
        self.key = key
        self.free_shipping_threshold = free_shipping_threshold
        self.shipping_fee = shipping_fee
        self._items: CartItems = ()

    @property
    def items(self) -> CartItems:
        return self._items

    @property
    def is_empty(self) -> bool:
        return not self._items

    def _commit(self, items: CartItems) -> None:
        self._items = items
        save_json(self.storage, self.key, [i.to_dict() for i in items])

    async def hydrate(self, token: Optional[CancelToken] = None) -> CartItems:
        """
        Однократная загрузка из хранилища при старте.
        Испорченные данные -> пустая корзина; каталог недоступен -> позиции
        остаются без привязанного товара.
        """
        try:
            raw = load_json_list(self.storage, self.key)
            loaded = reduce(
                add_item, (CartLineItem.from_dict(entry) for entry in raw), ()
            )
        except (PersistenceParseFailure, KeyError, TypeError, ValueError) as e:
            logger.error("Failed to parse cart from storage: %s", e)
            self._items = ()
            return self._items

        if loaded:
            try:
                products = {p.id: p for p in await self.catalog.get_all()}
                loaded = tuple(
                    replace(i, product=products.get(i.product_id)) for i in loaded
                )
            except Exception as e:
                logger.error("Failed to load cart products: %s", e)
        check(token)
        self._items = loaded
        return self._items

    async def add_to_cart(
        self,
        product_id: int,
        quantity: int,
        size: str,
        color: str,
        price: float,
        token: Optional[CancelToken] = None,
    ) -> Either[LookupFailure, CartLineItem]:
        """
        Добавляет товар, предварительно запрашивая его в каталоге.
        Если каталог не ответил - ничего не добавляем, Left(LookupFailure).
        """
        if quantity < 1:
            raise ValueError("quantity must be >= 1")

        try:
            product = await self.catalog.get_by_id(product_id)
        except Exception as e:
            logger.error("Failed to add item to cart: %s", e)
            return Either.left(LookupFailure(f"Could not add product {product_id}", e))
        check(token)

        item = CartLineItem(
            product_id=product_id,
            quantity=quantity,
            size=size,
            color=color,
            price=price,
            product=product,
        )
        self._commit(add_item(self._items, item))
        logger.info(
            "Added product %s (%s/%s) x%d to cart", product_id, size, color, quantity
        )
        return Either.right(next(i for i in self._items if i.key == item.key))

    def update_quantity(self, product_id: int, quantity: int) -> None:
        """Количество < 1 не хранится: товар удаляется из корзины"""
        if quantity < 1:
            self.remove_from_cart(product_id)
            return
        self._commit(set_quantity(self._items, product_id, quantity))

    def remove_from_cart(self, product_id: int) -> None:
        self._commit(remove_items(self._items, product_id))

    def clear_cart(self) -> None:
        self._commit(())

    def get_cart_total(self) -> float:
        return cart_total(self._items)

    def get_cart_count(self) -> int:
        return cart_count(self._items)

    def summary(self) -> dict:
        return cart_summary(self._items, self.free_shipping_threshold, self.shipping_fee)
