import json
import pytest
from storefront.cart import (
    CartStore,
    add_item,
    cart_summary,
    cart_total,
    remove_items,
    set_quantity,
    shipping_fee,
)
from storefront.catalog import ProductService
from storefront.config import CART_STORAGE_KEY
from storefront.domain import CartLineItem
from storefront.errors import LookupFailure, OperationCancelled
from storefront.storage import MemoryStorage
from storefront.tasks import CancelToken


class BrokenCatalog:
    """Каталог, который всегда недоступен"""

    async def get_by_id(self, product_id):
        raise ConnectionError("catalog unreachable")

    async def get_all(self):
        raise ConnectionError("catalog unreachable")


@pytest.fixture
def cart(storage, product_service):
    return CartStore(storage, product_service)


def persisted(storage):
    return json.loads(storage.get_item(CART_STORAGE_KEY))


# Чистые функции


def test_add_item_merges_same_key_and_appends_new():
    a = CartLineItem(1, 2, "M", "Red", 800)
    items = add_item((), a)
    items = add_item(items, CartLineItem(1, 1, "M", "Red", 800))
    items = add_item(items, CartLineItem(1, 1, "L", "Red", 800))
    assert [(i.key, i.quantity) for i in items] == [
        ((1, "M", "Red"), 3),
        ((1, "L", "Red"), 1),
    ]


def test_set_quantity_and_remove_affect_all_variants():
    items = (
        CartLineItem(1, 2, "M", "Red", 800),
        CartLineItem(1, 1, "L", "Blue", 800),
        CartLineItem(2, 1, "S", "Red", 500),
    )
    assert [i.quantity for i in set_quantity(items, 1, 5)] == [5, 5, 1]
    assert [i.product_id for i in remove_items(items, 1)] == [2]


def test_shipping_fee_threshold():
    assert shipping_fee(998) == 99
    assert shipping_fee(999) == 0


def test_cart_summary_includes_shipping_and_savings(products):
    items = (CartLineItem(1, 2, "M", "Red", 800, product=products[0]),)
    summary = cart_summary(items)
    assert summary["subtotal"] == 1600
    assert summary["shipping_fee"] == 0
    assert summary["total"] == 1600
    assert summary["savings"] == 400


def test_cart_summary_empty_has_no_shipping():
    assert cart_summary(())["total"] == 0


# CartStore


@pytest.mark.asyncio
async def test_add_twice_same_key_scenario(cart, storage):
    await cart.add_to_cart(1, 2, "M", "Red", 800)
    await cart.add_to_cart(1, 1, "M", "Red", 800)

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 3
    assert cart.get_cart_total() == 2400
    assert cart.get_cart_count() == 3
    assert persisted(storage) == [
        {"productId": 1, "quantity": 3, "size": "M", "color": "Red", "price": 800}
    ]


@pytest.mark.asyncio
async def test_add_attaches_product_snapshot(cart, products):
    result = await cart.add_to_cart(3, 1, "S", "Pink", 1000)
    assert result.is_right
    assert cart.items[0].product == products[2]


@pytest.mark.asyncio
async def test_price_snapshot_ignores_later_catalog_changes(cart, product_service):
    await cart.add_to_cart(2, 1, "30", "Red", 500)
    await product_service.update(2, {"price": 900.0})
    assert cart.get_cart_total() == 500


@pytest.mark.asyncio
async def test_add_unknown_product_adds_nothing(cart, storage):
    result = await cart.add_to_cart(999, 1, "M", "Red", 100)
    assert result.is_left
    assert isinstance(result.value, LookupFailure)
    assert cart.items == ()
    assert storage.get_item(CART_STORAGE_KEY) is None


@pytest.mark.asyncio
async def test_add_with_unreachable_catalog_logs_and_skips(storage, caplog):
    cart = CartStore(storage, BrokenCatalog())
    result = await cart.add_to_cart(1, 1, "M", "Red", 100)
    assert result.is_left
    assert cart.is_empty
    assert "Failed to add item to cart" in caplog.text


@pytest.mark.asyncio
async def test_add_rejects_non_positive_quantity(cart):
    with pytest.raises(ValueError):
        await cart.add_to_cart(1, 0, "M", "Red", 800)


@pytest.mark.asyncio
async def test_cancelled_add_does_not_mutate(cart):
    token = CancelToken()
    token.cancel()
    with pytest.raises(OperationCancelled):
        await cart.add_to_cart(1, 1, "M", "Red", 800, token=token)
    assert cart.is_empty


@pytest.mark.asyncio
async def test_update_quantity_keys_by_product_only(cart):
    await cart.add_to_cart(1, 1, "M", "Red", 800)
    await cart.add_to_cart(1, 2, "L", "Blue", 800)
    await cart.add_to_cart(2, 1, "30", "Red", 500)

    cart.update_quantity(1, 4)
    assert [i.quantity for i in cart.items] == [4, 4, 1]
    assert cart.get_cart_total() == 800 * 8 + 500


@pytest.mark.asyncio
async def test_update_quantity_zero_removes(cart):
    await cart.add_to_cart(1, 1, "M", "Red", 800)
    cart.update_quantity(1, 0)
    assert cart.is_empty


@pytest.mark.asyncio
async def test_remove_leaves_no_items_of_product(cart, storage):
    await cart.add_to_cart(1, 1, "M", "Red", 800)
    await cart.add_to_cart(1, 1, "S", "Blue", 800)
    await cart.add_to_cart(2, 1, "30", "Red", 500)

    cart.remove_from_cart(1)
    assert all(i.product_id != 1 for i in cart.items)
    assert [e["productId"] for e in persisted(storage)] == [2]


@pytest.mark.asyncio
async def test_total_matches_sum_after_mixed_operations(cart):
    await cart.add_to_cart(1, 2, "M", "Red", 800)
    await cart.add_to_cart(2, 3, "30", "Red", 500)
    await cart.add_to_cart(4, 1, "XS", "Red", 1350)
    cart.update_quantity(2, 1)
    cart.remove_from_cart(4)

    expected = sum(i.price * i.quantity for i in cart.items)
    assert cart.get_cart_total() == expected == 2100


@pytest.mark.asyncio
async def test_clear_cart_persists_empty_list(cart, storage):
    await cart.add_to_cart(1, 1, "M", "Red", 800)
    cart.clear_cart()
    assert cart.is_empty
    assert persisted(storage) == []


# Гидрация


@pytest.mark.asyncio
async def test_hydrate_restores_items_with_products(product_service, products):
    storage = MemoryStorage(
        {
            CART_STORAGE_KEY: json.dumps(
                [{"productId": 1, "quantity": 2, "size": "M", "color": "Red", "price": 800}]
            )
        }
    )
    cart = CartStore(storage, product_service)
    await cart.hydrate()
    assert cart.get_cart_total() == 1600
    assert cart.items[0].product == products[0]


@pytest.mark.asyncio
async def test_hydrate_corrupt_storage_starts_empty(product_service, caplog):
    storage = MemoryStorage({CART_STORAGE_KEY: "{not json"})
    cart = CartStore(storage, product_service)
    await cart.hydrate()
    assert cart.is_empty
    assert "Failed to parse cart" in caplog.text


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [0, -3])
async def test_hydrate_rejects_non_positive_quantity(product_service, caplog, quantity):
    entries = [
        {"productId": 1, "quantity": 2, "size": "M", "color": "Red", "price": 800},
        {"productId": 2, "quantity": quantity, "size": "30", "color": "Red", "price": 500},
    ]
    storage = MemoryStorage({CART_STORAGE_KEY: json.dumps(entries)})
    cart = CartStore(storage, product_service)
    await cart.hydrate()
    assert cart.is_empty
    assert cart.get_cart_total() == 0
    assert "Failed to parse cart" in caplog.text


@pytest.mark.asyncio
async def test_hydrate_without_catalog_keeps_items():
    storage = MemoryStorage(
        {
            CART_STORAGE_KEY: json.dumps(
                [{"productId": 7, "quantity": 1, "size": "M", "color": "Red", "price": 10}]
            )
        }
    )
    cart = CartStore(storage, BrokenCatalog())
    await cart.hydrate()
    assert cart.get_cart_count() == 1
    assert cart.items[0].product is None


@pytest.mark.asyncio
async def test_hydrate_merges_duplicate_keys():
    entry = {"productId": 1, "quantity": 1, "size": "M", "color": "Red", "price": 800}
    storage = MemoryStorage({CART_STORAGE_KEY: json.dumps([entry, entry])})
    cart = CartStore(storage, ProductService((), delay=0))
    await cart.hydrate()
    assert len(cart.items) == 1
    assert cart.items[0].quantity == 2
