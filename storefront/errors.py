from typing import Optional


class StorefrontError(Exception):
    """Базовая ошибка витрины. message - текст для пользователя"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ProductNotFound(StorefrontError):
    def __init__(self, product_id: int):
        super().__init__(f"Product not found: {product_id}")
        self.product_id = product_id


class LookupFailure(StorefrontError):
    """Каталог недоступен (товар не добавлен в корзину, список не загружен)"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ValidationFailure(StorefrontError):
    """Ошибка конкретного поля формы оформления заказа"""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def __repr__(self) -> str:
        return f"ValidationFailure(field={self.field!r}, message={self.message!r})"


class PersistenceParseFailure(StorefrontError):
    """Испорченные данные в локальном хранилище: начинаем с пустого состояния"""

    def __init__(self, key: str, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to parse persisted state under '{key}'")
        self.key = key
        self.cause = cause


class ProcessingFailure(StorefrontError):
    """Оплата не прошла; заказ можно отправить повторно"""


class InvalidTransition(StorefrontError):
    """Шаг оформления заказа, недопустимый из текущего состояния"""


class EmptyCartError(StorefrontError):
    def __init__(self):
        super().__init__("Your cart is empty")


class OperationCancelled(StorefrontError):
    """Вызывающая сторона отменила запрос до того, как он завершился"""

    def __init__(self):
        super().__init__("Operation cancelled")
