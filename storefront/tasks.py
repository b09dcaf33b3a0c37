from .errors import OperationCancelled


class CancelToken:
    """
    Токен отмены для цепочек "запрос -> обновление состояния".
    Если вызывающий ушёл (страница закрыта, сессия сброшена) до ответа
    каталога, результат отбрасывается и стор не трогается.
    """

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelled()


def check(token: "CancelToken | None") -> None:
    if token is not None:
        token.raise_if_cancelled()
