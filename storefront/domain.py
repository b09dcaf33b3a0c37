import math
from dataclasses import dataclass, field, fields, replace
from enum import IntEnum
from typing import Any, Dict, Optional, Tuple


def round_half_up(value: float) -> int:
    """Округление как в витрине: 0.5 всегда вверх (round() в Python банковский)"""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    brand: str
    category: str
    price: float  # рупии
    discounted_price: Optional[float] = None
    sizes: Tuple[str, ...] = ()
    colors: Tuple[str, ...] = ()
    images: Tuple[str, ...] = ()
    description: str = ""
    in_stock: bool = True
    rating: Optional[float] = None
    reviews: Optional[int] = None

    def __post_init__(self):
        if self.price < 0:
            raise ValueError(f"Product {self.id}: price must be >= 0")
        if self.discounted_price is not None and self.discounted_price >= self.price:
            raise ValueError(
                f"Product {self.id}: discountedPrice must be lower than price"
            )

    @property
    def has_discount(self) -> bool:
        return self.discounted_price is not None

    @property
    def effective_price(self) -> float:
        """Цена со скидкой, если она есть, иначе обычная"""
        return self.discounted_price if self.has_discount else self.price

    @property
    def discount_percent(self) -> int:
        """round((price - discountedPrice) / price * 100), 0 без скидки"""
        if not self.has_discount or self.price == 0:
            return 0
        return round_half_up((self.price - self.discounted_price) / self.price * 100)


# Имена полей в JSON каталога и в localStorage
_PRODUCT_JSON_KEYS = {
    "id": "Id",
    "discounted_price": "discountedPrice",
    "in_stock": "inStock",
}


def product_from_dict(data: Dict[str, Any]) -> Product:
    """Собирает Product из JSON-словаря каталога (ключи Id, discountedPrice, ...)"""
    kwargs = {}
    for f in fields(Product):
        key = _PRODUCT_JSON_KEYS.get(f.name, f.name)
        if key in data:
            kwargs[f.name] = data[key]

    for name in ("sizes", "colors", "images"):
        kwargs[name] = tuple(kwargs.get(name) or ())

    kwargs["id"] = int(kwargs["id"])
    kwargs["price"] = float(kwargs["price"])
    if kwargs.get("discounted_price") is not None:
        kwargs["discounted_price"] = float(kwargs["discounted_price"])
    return Product(**kwargs)


def product_to_dict(product: Product) -> Dict[str, Any]:
    """Обратное преобразование: Product -> JSON-словарь того же вида"""
    out = {}
    for f in fields(Product):
        value = getattr(product, f.name)
        if f.name in ("rating", "reviews") and value is None:
            continue
        if isinstance(value, tuple):
            value = list(value)
        out[_PRODUCT_JSON_KEYS.get(f.name, f.name)] = value
    return out


@dataclass(frozen=True)
class CartLineItem:
    product_id: int
    quantity: int
    size: str
    color: str
    price: float  # цена за единицу на момент добавления
    product: Optional[Product] = field(default=None, compare=False)

    @property
    def key(self) -> Tuple[int, str, str]:
        return (self.product_id, self.size, self.color)

    @property
    def line_total(self) -> float:
        return self.price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        # product в хранилище не пишем: он восстанавливается из каталога
        return {
            "productId": self.product_id,
            "quantity": self.quantity,
            "size": self.size,
            "color": self.color,
            "price": self.price,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "CartLineItem":
        quantity = int(data["quantity"])
        if quantity < 1:
            raise ValueError(f"Cart item quantity must be >= 1, got {quantity}")
        return CartLineItem(
            product_id=int(data["productId"]),
            quantity=quantity,
            size=str(data.get("size", "")),
            color=str(data.get("color", "")),
            price=float(data["price"]),
        )


FILTER_KEYS = ("categories", "brands", "sizes", "colors", "discounts")


@dataclass(frozen=True)
class ActiveFilters:
    categories: Tuple[str, ...] = ()
    brands: Tuple[str, ...] = ()
    sizes: Tuple[str, ...] = ()
    colors: Tuple[str, ...] = ()
    discounts: Tuple[str, ...] = ()
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    @staticmethod
    def from_mapping(data: Dict[str, Any]) -> "ActiveFilters":
        """
        Принимает словарь из UI: categories, brands, sizes, colors, discounts,
        minPrice, maxPrice. Пустые строки и None означают "без границы".
        """

        def bound(value) -> Optional[float]:
            if value is None or (isinstance(value, str) and not value.strip()):
                return None
            return float(value)

        values = {key: tuple(data.get(key) or ()) for key in FILTER_KEYS}
        return ActiveFilters(
            **values,
            min_price=bound(data.get("minPrice")),
            max_price=bound(data.get("maxPrice")),
        )

    def toggle(self, key: str, value: str) -> "ActiveFilters":
        """Добавляет значение в критерий или убирает его, если оно уже выбрано"""
        if key not in FILTER_KEYS:
            raise ValueError(f"Unknown filter key: {key}")
        current = getattr(self, key)
        if value in current:
            updated = tuple(v for v in current if v != value)
        else:
            updated = current + (value,)
        return replace(self, **{key: updated})

    def with_price_range(
        self, min_price: Optional[float], max_price: Optional[float]
    ) -> "ActiveFilters":
        return replace(self, min_price=min_price, max_price=max_price)

    def cleared(self) -> "ActiveFilters":
        return ActiveFilters()

    @property
    def is_empty(self) -> bool:
        return self == ActiveFilters()

    def chips(self) -> Tuple[Tuple[str, str], ...]:
        """Плоский список (ключ, значение) для полоски активных фильтров"""
        return tuple((key, v) for key in FILTER_KEYS for v in getattr(self, key))


@dataclass(frozen=True)
class FilterOptions:
    categories: Tuple[str, ...] = ()
    brands: Tuple[str, ...] = ()
    sizes: Tuple[str, ...] = ()
    colors: Tuple[str, ...] = ()
    discounts: Tuple[str, ...] = ()


SHIPPING_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "address",
    "city",
    "state",
    "pincode",
)
PAYMENT_FIELDS = (
    "card_number",
    "expiry_month",
    "expiry_year",
    "cvv",
    "cardholder_name",
)


@dataclass
class CheckoutForm:
    """Изменяемая анкета оформления заказа: доставка + оплата"""

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    card_number: str = ""
    expiry_month: str = ""
    expiry_year: str = ""
    cvv: str = ""
    cardholder_name: str = ""


class CheckoutStep(IntEnum):
    SHIPPING = 1
    PAYMENT = 2
    REVIEW = 3
    PLACED = 4


@dataclass(frozen=True)
class OrderConfirmation:
    id: str
    items: Tuple[CartLineItem, ...]
    subtotal: float
    shipping_fee: float
    total: float
    item_count: int
    placed_at: str
    ship_to: str
