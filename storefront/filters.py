from enum import Enum
from typing import Callable, Iterable, Optional, Sequence, Tuple, Union

from .domain import ActiveFilters, Product

Predicate = Callable[[Product], bool]


class SortKey(str, Enum):
    POPULARITY = "popularity"
    PRICE_LOW_HIGH = "price-low-high"
    PRICE_HIGH_LOW = "price-high-low"
    NEWEST = "newest"
    DISCOUNT = "discount"

    @classmethod
    def parse(cls, value: Union[str, "SortKey", None]) -> "SortKey":
        """Неизвестный ключ -> popularity (порядок каталога)"""
        try:
            return cls(value)
        except ValueError:
            return cls.POPULARITY


SORT_OPTIONS = (
    (SortKey.POPULARITY, "Popularity"),
    (SortKey.PRICE_LOW_HIGH, "Price: Low to High"),
    (SortKey.PRICE_HIGH_LOW, "Price: High to Low"),
    (SortKey.NEWEST, "Newest First"),
    (SortKey.DISCOUNT, "Better Discount"),
)


# ============ Замыкания-фильтры ============


def by_categories(selected: Iterable[str]) -> Predicate:
    chosen = frozenset(selected)
    return lambda p: p.category in chosen


def by_brands(selected: Iterable[str]) -> Predicate:
    chosen = frozenset(selected)
    return lambda p: p.brand in chosen


def by_sizes(selected: Iterable[str]) -> Predicate:
    """Хотя бы один размер товара выбран"""
    chosen = frozenset(selected)
    return lambda p: any(size in chosen for size in p.sizes)


def by_colors(selected: Iterable[str]) -> Predicate:
    chosen = frozenset(selected)
    return lambda p: any(color in chosen for color in p.colors)


def by_price_range(
    min_price: Optional[float] = None, max_price: Optional[float] = None
) -> Predicate:
    """Границы включительные, сравниваем с эффективной ценой"""

    def check(p: Product) -> bool:
        price = p.effective_price
        if min_price is not None and price < min_price:
            return False
        if max_price is not None and price > max_price:
            return False
        return True

    return check


def parse_discount_threshold(option: Union[str, int]) -> int:
    """'10% and above' -> 10"""
    if isinstance(option, int):
        return option
    return int(str(option).split("%")[0].strip())


def by_discounts(selected: Iterable[Union[str, int]]) -> Predicate:
    """Скидка есть и не меньше хотя бы одного из выбранных порогов"""
    thresholds = tuple(parse_discount_threshold(d) for d in selected)

    def check(p: Product) -> bool:
        if not p.has_discount:
            return False
        return any(p.discount_percent >= t for t in thresholds)

    return check


def build_predicates(filters: ActiveFilters) -> Tuple[Predicate, ...]:
    """Только активные критерии: пустой набор на оси = ось не фильтруется"""
    predicates = []
    if filters.categories:
        predicates.append(by_categories(filters.categories))
    if filters.brands:
        predicates.append(by_brands(filters.brands))
    if filters.min_price is not None or filters.max_price is not None:
        predicates.append(by_price_range(filters.min_price, filters.max_price))
    if filters.sizes:
        predicates.append(by_sizes(filters.sizes))
    if filters.colors:
        predicates.append(by_colors(filters.colors))
    if filters.discounts:
        predicates.append(by_discounts(filters.discounts))
    return tuple(predicates)


# ============ Фильтрация и сортировка ============


def filter_products(
    products: Iterable[Product], filters: ActiveFilters
) -> Tuple[Product, ...]:
    predicates = build_predicates(filters)
    return tuple(filter(lambda p: all(f(p) for f in predicates), products))


_SORTS = {
    SortKey.PRICE_LOW_HIGH: (lambda p: p.effective_price, False),
    SortKey.PRICE_HIGH_LOW: (lambda p: p.effective_price, True),
    SortKey.DISCOUNT: (lambda p: p.discount_percent, True),
    SortKey.NEWEST: (lambda p: p.id, True),
}


def sort_products(
    products: Iterable[Product], sort_key: Union[SortKey, str] = SortKey.POPULARITY
) -> Tuple[Product, ...]:
    """
    Стабильная сортировка (sorted сохраняет порядок равных и при reverse=True).
    popularity - порядок каталога без изменений.
    """
    key = SortKey.parse(sort_key)
    if key not in _SORTS:
        return tuple(products)
    key_fn, descending = _SORTS[key]
    return tuple(sorted(products, key=key_fn, reverse=descending))


def apply(
    products: Iterable[Product],
    filters: ActiveFilters,
    sort_key: Union[SortKey, str] = SortKey.POPULARITY,
) -> Tuple[Product, ...]:
    """Фильтры (AND между осями, OR внутри оси), затем сортировка"""
    return sort_products(filter_products(products, filters), sort_key)


# ============ Поиск и страницы категорий ============


def search_products(products: Iterable[Product], query: str) -> Tuple[Product, ...]:
    """Подстрока без учёта регистра в name/brand/category/description"""
    term = (query or "").strip().lower()
    if not term:
        return ()

    def matches(p: Product) -> bool:
        return any(
            term in text.lower()
            for text in (p.name, p.brand, p.category, p.description)
        )

    return tuple(filter(matches, products))


def products_in_category(
    products: Sequence[Product], slug: str
) -> Tuple[Product, ...]:
    """'all' -> всё; 'home-living' -> категория 'home living' (регистр не важен)"""
    if slug == "all":
        return tuple(products)
    wanted = slug.replace("-", " ", 1)
    return tuple(p for p in products if p.category.lower() == wanted)


def featured_products(
    products: Sequence[Product], limit: int = 8
) -> Tuple[Product, ...]:
    return tuple(products[:limit])
