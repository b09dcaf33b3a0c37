import os
from dataclasses import dataclass

# Ключи localStorage, под которыми живёт состояние витрины
CART_STORAGE_KEY = "stylehub-cart"
WISHLIST_STORAGE_KEY = "stylehub-wishlist"

_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


@dataclass(frozen=True)
class Settings:
    data_dir: str
    storage_dir: str
    fetch_delay: float  # секунды, имитация сети каталога
    filters_delay: float
    payment_delay: float  # секунды, имитация обработки платежа
    free_shipping_threshold: float
    shipping_fee: float

    @property
    def products_path(self) -> str:
        return os.path.join(self.data_dir, "products.json")

    @property
    def filters_path(self) -> str:
        return os.path.join(self.data_dir, "filters.json")


def load_settings() -> Settings:
    """Настройки из переменных окружения, с дефолтами для локального запуска"""
    return Settings(
        data_dir=os.getenv("STYLEHUB_DATA_DIR", os.path.join(_ROOT, "data")),
        storage_dir=os.getenv("STYLEHUB_STORAGE_DIR", os.path.join(_ROOT, ".storage")),
        fetch_delay=float(os.getenv("STYLEHUB_FETCH_DELAY", "0.3")),
        filters_delay=float(os.getenv("STYLEHUB_FILTERS_DELAY", "0.2")),
        payment_delay=float(os.getenv("STYLEHUB_PAYMENT_DELAY", "2.0")),
        free_shipping_threshold=float(
            os.getenv("STYLEHUB_FREE_SHIPPING_THRESHOLD", "999")
        ),
        shipping_fee=float(os.getenv("STYLEHUB_SHIPPING_FEE", "99")),
    )
