import asyncio
import pytest
from storefront.cart import CartStore
from storefront.checkout import (
    CheckoutOrchestrator,
    validate_payment,
    validate_shipping,
)
from storefront.domain import CheckoutForm, CheckoutStep
from storefront.errors import (
    EmptyCartError,
    InvalidTransition,
    ProcessingFailure,
    ValidationFailure,
)

SHIPPING = dict(
    first_name="Asha",
    last_name="Rao",
    email="asha@example.com",
    phone="9876543210",
    address="12 MG Road",
    city="Bengaluru",
    state="Karnataka",
    pincode="560001",
)
PAYMENT = dict(
    cardholder_name="Asha Rao",
    card_number="4111 1111 1111 1111",
    expiry_month="04",
    expiry_year="2030",
    cvv="123",
)


async def instant_payment(form, amount):
    return None


async def declined_payment(form, amount):
    raise RuntimeError("card declined")


async def filled_cart(storage, product_service):
    cart = CartStore(storage, product_service)
    await cart.add_to_cart(1, 2, "M", "Red", 800)
    return cart


def at_review(cart, processor=instant_payment) -> CheckoutOrchestrator:
    checkout = CheckoutOrchestrator(cart, payment_processor=processor)
    checkout.update(**SHIPPING)
    assert checkout.next_step().is_right
    checkout.update(**PAYMENT)
    assert checkout.next_step().is_right
    assert checkout.step == CheckoutStep.REVIEW
    return checkout


# Валидация


def test_valid_forms_pass():
    form = CheckoutForm(**SHIPPING, **PAYMENT)
    assert validate_shipping(form).is_right
    assert validate_payment(form).is_right


@pytest.mark.parametrize(
    "field,value",
    [
        ("first_name", "  "),
        ("email", "asha.example.com"),
        ("phone", "98765"),
        ("phone", "98765432101"),
        ("pincode", "56000A"),
        ("phone", "٩" * 10),
        ("pincode", "०" * 6),
    ],
)
def test_shipping_field_failures(field, value):
    form = CheckoutForm(**{**SHIPPING, field: value})
    result = validate_shipping(form)
    assert result.is_left
    assert isinstance(result.value, ValidationFailure)
    assert result.value.field == field


@pytest.mark.parametrize(
    "field,value",
    [
        ("cardholder_name", ""),
        ("card_number", "4111 1111 1111"),
        ("cvv", "12"),
        ("cvv", "12345"),
        ("cvv", "١٢٣"),
        ("card_number", "٤" * 16),
        ("expiry_month", ""),
    ],
)
def test_payment_field_failures(field, value):
    form = CheckoutForm(**{**PAYMENT, field: value})
    result = validate_payment(form)
    assert result.is_left
    assert result.value.field == field


def test_four_digit_cvv_allowed():
    assert validate_payment(CheckoutForm(**{**PAYMENT, "cvv": "1234"})).is_right


# Переходы


def test_refuses_empty_cart(storage, product_service):
    with pytest.raises(EmptyCartError):
        CheckoutOrchestrator(CartStore(storage, product_service))


@pytest.mark.asyncio
async def test_operations_refused_after_cart_emptied(storage, product_service):
    cart = await filled_cart(storage, product_service)
    checkout = CheckoutOrchestrator(cart)
    cart.clear_cart()
    with pytest.raises(EmptyCartError):
        checkout.next_step()


@pytest.mark.asyncio
async def test_invalid_shipping_stays_on_step(storage, product_service):
    checkout = CheckoutOrchestrator(await filled_cart(storage, product_service))
    checkout.update(**{**SHIPPING, "phone": "123"})
    result = checkout.next_step()
    assert result.is_left
    assert result.value.field == "phone"
    assert checkout.step == CheckoutStep.SHIPPING


@pytest.mark.asyncio
async def test_back_and_forth(storage, product_service):
    checkout = at_review(await filled_cart(storage, product_service))
    assert checkout.next_step().get_or_else(None) == CheckoutStep.REVIEW
    assert checkout.previous_step() == CheckoutStep.PAYMENT
    assert checkout.previous_step() == CheckoutStep.SHIPPING
    assert checkout.previous_step() == CheckoutStep.SHIPPING


@pytest.mark.asyncio
async def test_unknown_field_rejected(storage, product_service):
    checkout = CheckoutOrchestrator(await filled_cart(storage, product_service))
    with pytest.raises(ValueError):
        checkout.update(coupon="SALE")


# Оформление


@pytest.mark.asyncio
async def test_place_order_clears_cart(storage, product_service):
    cart = await filled_cart(storage, product_service)
    checkout = at_review(cart)

    result = await checkout.place_order()

    assert result.is_right
    confirmation = result.value
    assert confirmation.subtotal == 1600
    assert confirmation.shipping_fee == 0
    assert confirmation.item_count == 2
    assert checkout.step == CheckoutStep.PLACED
    assert cart.is_empty


@pytest.mark.asyncio
async def test_place_order_adds_shipping_below_threshold(storage, product_service):
    cart = CartStore(storage, product_service)
    await cart.add_to_cart(2, 1, "30", "Red", 500)
    result = await at_review(cart).place_order()
    assert result.value.total == 599


@pytest.mark.asyncio
async def test_payment_failure_is_retryable(storage, product_service):
    cart = await filled_cart(storage, product_service)
    checkout = at_review(cart, processor=declined_payment)

    result = await checkout.place_order()
    assert result.is_left
    assert isinstance(result.value, ProcessingFailure)
    assert checkout.step == CheckoutStep.REVIEW
    assert not cart.is_empty
    assert not checkout.processing

    checkout.payment_processor = instant_payment
    assert (await checkout.place_order()).is_right


@pytest.mark.asyncio
async def test_double_submit_charges_once(storage, product_service):
    charged = []

    async def counting_payment(form, amount):
        charged.append(amount)
        await asyncio.sleep(0)

    checkout = at_review(
        await filled_cart(storage, product_service), processor=counting_payment
    )
    first, second = await asyncio.gather(checkout.place_order(), checkout.place_order())

    assert charged == [1600]
    assert first.is_right
    assert second.is_left
    assert isinstance(second.value, InvalidTransition)
    assert checkout.step == CheckoutStep.PLACED


@pytest.mark.asyncio
async def test_place_order_only_from_review(storage, product_service):
    checkout = CheckoutOrchestrator(
        await filled_cart(storage, product_service), payment_processor=instant_payment
    )
    result = await checkout.place_order()
    assert result.is_left
    assert isinstance(result.value, InvalidTransition)


@pytest.mark.asyncio
async def test_cannot_place_with_field_broken_at_review(storage, product_service):
    cart = await filled_cart(storage, product_service)
    checkout = at_review(cart)
    checkout.update(email="broken")

    result = await checkout.place_order()
    assert result.is_left
    assert result.value.field == "email"
    assert checkout.step != CheckoutStep.PLACED
    assert not cart.is_empty


@pytest.mark.asyncio
async def test_placed_is_terminal(storage, product_service):
    checkout = at_review(await filled_cart(storage, product_service))
    await checkout.place_order()
    with pytest.raises(InvalidTransition):
        await checkout.place_order()
    with pytest.raises(InvalidTransition):
        checkout.previous_step()


@pytest.mark.asyncio
async def test_simulated_payment_default(storage, product_service):
    from storefront.checkout import simulated_payment

    checkout = at_review(
        await filled_cart(storage, product_service), processor=simulated_payment(0)
    )
    assert (await checkout.place_order()).is_right
