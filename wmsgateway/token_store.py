"""Хранилища токенов безопасности.

Хранилище создаётся один раз на клиента и передаётся по ссылке
в конвейер запросов и в recovery. Глобального состояния нет.
"""

import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class TokenStore(Protocol):
    """Ноль или один активный токен."""

    def get(self) -> str | None: ...

    def set(self, token: str) -> None: ...

    def invalidate(self) -> None: ...


class MemoryTokenStore:
    """Токен только в памяти процесса (CSRF токен сессионной модели)."""

    def __init__(self) -> None:
        self._token: str | None = None
        self._version = 0

    @property
    def version(self) -> int:
        """Счётчик установок токена."""
        return self._version

    def get(self) -> str | None:
        return self._token

    def set(self, token: str) -> None:
        self._token = token
        self._version += 1

    def invalidate(self) -> None:
        self._token = None


class FileTokenStore:
    """Персистентный bearer токен в текстовом файле.

    Токен кэшируется в памяти, файл перечитывается только при смене
    mtime. Токен, записанный другим процессом (например, после логина),
    подхватывается на следующем запросе.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()
        self._token: str | None = None
        self._mtime_ns: int | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> str | None:
        try:
            mtime_ns = self._path.stat().st_mtime_ns
            if mtime_ns != self._mtime_ns:
                self._token = self._path.read_text(encoding="utf-8").strip() or None
                self._mtime_ns = mtime_ns
        except FileNotFoundError:
            self._token = None
            self._mtime_ns = None
        return self._token

    def set(self, token: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(token, encoding="utf-8")
        self._token = token.strip() or None
        self._mtime_ns = self._path.stat().st_mtime_ns
        logger.debug("Bearer токен сохранён в %s", self._path)

    def invalidate(self) -> None:
        self._path.unlink(missing_ok=True)
        self._token = None
        self._mtime_ns = None
        logger.debug("Bearer токен удалён из %s", self._path)
