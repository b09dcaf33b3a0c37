# storefront/storage.py
# Локальное key-value хранилище (аналог localStorage браузера).
import json
import os
from typing import Any, Dict, Optional, Protocol

from .errors import PersistenceParseFailure
from .logger import get_logger

logger = get_logger(__name__)


class Storage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Хранилище в памяти: тесты и временные сессии"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class FileStorage:
    """Один файл <key>.json на ключ в каталоге storage_dir"""

    def __init__(self, storage_dir: str):
        self.storage_dir = storage_dir

    def _path(self, key: str) -> str:
        return os.path.join(self.storage_dir, f"{key}.json")

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def set_item(self, key: str, value: str) -> None:
        os.makedirs(self.storage_dir, exist_ok=True)
        # пишем во временный файл и подменяем, чтобы не оставить половину JSON
        tmp = self._path(key) + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(value)
        os.replace(tmp, self._path(key))

    def remove_item(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass


def save_json(storage: Storage, key: str, payload: Any) -> None:
    storage.set_item(key, json.dumps(payload, ensure_ascii=False))


def load_json_list(storage: Storage, key: str) -> list:
    """
    Читает JSON-массив из хранилища.
    Нет ключа -> []. Не JSON или не массив -> PersistenceParseFailure.
    """
    raw = storage.get_item(key)
    if raw is None:
        return []
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise PersistenceParseFailure(key, e) from e
    if not isinstance(data, list):
        raise PersistenceParseFailure(key)
    logger.debug("Loaded %d entries from '%s'", len(data), key)
    return data
