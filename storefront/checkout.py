import asyncio
import re
import uuid
from datetime import datetime
from typing import Awaitable, Callable, Optional, Tuple

from .domain import (
    PAYMENT_FIELDS,
    SHIPPING_FIELDS,
    CheckoutForm,
    CheckoutStep,
    OrderConfirmation,
)
from .errors import (
    EmptyCartError,
    InvalidTransition,
    ProcessingFailure,
    StorefrontError,
    ValidationFailure,
)
from .ftypes import Either
from .logger import get_logger
from .tasks import CancelToken, check

logger = get_logger(__name__)

PaymentProcessor = Callable[[CheckoutForm, float], Awaitable[None]]

EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
PHONE_RE = re.compile(r"\d{10}", re.ASCII)
PINCODE_RE = re.compile(r"\d{6}", re.ASCII)
CARD_RE = re.compile(r"\d{16}", re.ASCII)
CVV_RE = re.compile(r"\d{3,4}", re.ASCII)

FIELD_LABELS = {
    "first_name": "имя",
    "last_name": "фамилию",
    "email": "email",
    "phone": "телефон",
    "address": "адрес",
    "city": "город",
    "state": "штат",
    "pincode": "пинкод",
    "card_number": "номер карты",
    "expiry_month": "месяц окончания действия",
    "expiry_year": "год окончания действия",
    "cvv": "CVV",
    "cardholder_name": "имя держателя карты",
}


# ============ Валидация шагов (Either) ============


def _require(
    form: CheckoutForm, names: Tuple[str, ...]
) -> Either[ValidationFailure, CheckoutForm]:
    for name in names:
        if not getattr(form, name).strip():
            return Either.left(
                ValidationFailure(name, f"Заполните поле: {FIELD_LABELS[name]}")
            )
    return Either.right(form)


def validate_shipping(form: CheckoutForm) -> Either[ValidationFailure, CheckoutForm]:
    """Все поля доставки, email, телефон из 10 цифр, пинкод из 6 цифр"""

    def check_formats(f: CheckoutForm) -> Either[ValidationFailure, CheckoutForm]:
        if not EMAIL_RE.search(f.email):
            return Either.left(ValidationFailure("email", "Введите корректный email"))
        if not PHONE_RE.fullmatch(f.phone):
            return Either.left(
                ValidationFailure("phone", "Введите телефон из 10 цифр")
            )
        if not PINCODE_RE.fullmatch(f.pincode):
            return Either.left(
                ValidationFailure("pincode", "Введите пинкод из 6 цифр")
            )
        return Either.right(f)

    return _require(form, SHIPPING_FIELDS).bind(check_formats)


def validate_payment(form: CheckoutForm) -> Either[ValidationFailure, CheckoutForm]:
    """Все поля оплаты, 16 цифр карты (пробелы не считаются), CVV 3-4 цифры"""

    def check_formats(f: CheckoutForm) -> Either[ValidationFailure, CheckoutForm]:
        if not CARD_RE.fullmatch(re.sub(r"\s", "", f.card_number)):
            return Either.left(
                ValidationFailure("card_number", "Введите номер карты из 16 цифр")
            )
        if not CVV_RE.fullmatch(f.cvv):
            return Either.left(ValidationFailure("cvv", "Введите корректный CVV"))
        return Either.right(f)

    return _require(form, PAYMENT_FIELDS).bind(check_formats)


def simulated_payment(delay: float = 2.0) -> PaymentProcessor:
    """Имитация платёжного шлюза: просто ждём delay секунд"""

    async def process(form: CheckoutForm, amount: float) -> None:
        await asyncio.sleep(delay)

    return process


# ============ Оркестратор оформления ============


class CheckoutOrchestrator:
    """
    Доставка(1) <-> Оплата(2) <-> Проверка(3) -> Заказ оформлен.
    С пустой корзиной не создаётся и не работает: UI должен показать
    экран "корзина пуста".
    """

    def __init__(
        self,
        cart,
        payment_processor: Optional[PaymentProcessor] = None,
        form: Optional[CheckoutForm] = None,
    ):
        if cart.is_empty:
            raise EmptyCartError()
        self.cart = cart
        self.payment_processor = payment_processor or simulated_payment()
        self.form = form or CheckoutForm()
        self.step = CheckoutStep.SHIPPING
        self.processing = False
        self.confirmation: Optional[OrderConfirmation] = None

    @property
    def placed(self) -> bool:
        return self.step == CheckoutStep.PLACED

    def _guard(self) -> None:
        if self.placed:
            raise InvalidTransition("Order has already been placed")
        if self.cart.is_empty:
            raise EmptyCartError()

    def update(self, **fields) -> CheckoutForm:
        self._guard()
        for name, value in fields.items():
            if name not in SHIPPING_FIELDS + PAYMENT_FIELDS:
                raise ValueError(f"Unknown checkout field: {name}")
            setattr(self.form, name, str(value))
        return self.form

    def next_step(self) -> Either[ValidationFailure, CheckoutStep]:
        """Вперёд только если текущий шаг прошёл валидацию; дальше Review не идём"""
        self._guard()
        if self.step == CheckoutStep.SHIPPING:
            result = validate_shipping(self.form)
        elif self.step == CheckoutStep.PAYMENT:
            result = validate_payment(self.form)
        else:
            return Either.right(self.step)

        if result.is_left:
            logger.info("Checkout step %s refused: %r", self.step.name, result.value)
            return result
        self.step = CheckoutStep(self.step + 1)
        return Either.right(self.step)

    def previous_step(self) -> CheckoutStep:
        self._guard()
        self.step = CheckoutStep(max(self.step - 1, CheckoutStep.SHIPPING))
        return self.step

    def summary(self) -> dict:
        return self.cart.summary()

    async def place_order(
        self, token: Optional[CancelToken] = None
    ) -> Either[StorefrontError, OrderConfirmation]:
        """
        Только с шага Review. Успех: корзина очищается, шаг PLACED.
        Отказ оплаты: Left(ProcessingFailure), остаёмся на Review и можно
        нажать "Оформить" ещё раз. Пока оплата идёт, повторный вызов -
        Left(InvalidTransition).
        """
        self._guard()
        if self.processing:
            return Either.left(InvalidTransition("Payment already in progress"))
        if self.step != CheckoutStep.REVIEW:
            return Either.left(
                InvalidTransition("Order can only be placed from the review step")
            )

        valid = validate_shipping(self.form).bind(validate_payment)
        if valid.is_left:
            return valid
        check(token)

        summary = self.summary()
        items = self.cart.items
        self.processing = True
        try:
            await self.payment_processor(self.form, summary["total"])
        except Exception as e:
            logger.error("Payment processing failed: %s", e)
            return Either.left(
                ProcessingFailure("Failed to process payment. Please try again.")
            )
        finally:
            self.processing = False

        self.confirmation = OrderConfirmation(
            id=str(uuid.uuid4()),
            items=items,
            subtotal=summary["subtotal"],
            shipping_fee=summary["shipping_fee"],
            total=summary["total"],
            item_count=summary["count"],
            placed_at=datetime.now().isoformat(),
            ship_to=(
                f"{self.form.first_name} {self.form.last_name}, {self.form.address}, "
                f"{self.form.city}, {self.form.state} {self.form.pincode}"
            ),
        )
        self.cart.clear_cart()
        self.step = CheckoutStep.PLACED
        logger.info(
            "Order %s placed: %d items, total %.2f",
            self.confirmation.id,
            self.confirmation.item_count,
            self.confirmation.total,
        )
        return Either.right(self.confirmation)
