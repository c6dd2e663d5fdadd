"""Хранилище байтов результатов.

Ядро не знает о файловой системе: оно получает реализацию `BlobStorage`
через конструктор. Имена файлов генерируются как
``<prefix>-<epoch ms>-<случайное 0..999999>.<ext>``.
"""
from __future__ import annotations

import logging
import random
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Union

from resizer.errors import NotFoundError

logger = logging.getLogger(__name__)


def generate_filename(prefix: str, extension: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{random.randint(0, 999_999)}.{extension}"


class BlobStorage(ABC):
    """Интерфейс хранилища байтов, адресуемых по имени файла."""

    def put(self, data: bytes, prefix: str, extension: str) -> str:
        """Сохраняет байты под новым уникальным именем и возвращает это имя."""
        filename = generate_filename(prefix, extension)
        while self.exists(filename):
            filename = generate_filename(prefix, extension)
        self._write(filename, data)
        logger.debug("Stored %d bytes as %s", len(data), filename)
        return filename

    @abstractmethod
    def get(self, filename: str) -> bytes:
        """Байты по имени; NotFoundError, если их нет."""

    @abstractmethod
    def exists(self, filename: str) -> bool:
        pass

    @abstractmethod
    def delete(self, filename: str) -> None:
        """Удаляет байты; отсутствующее имя не считается ошибкой."""

    @abstractmethod
    def _write(self, filename: str, data: bytes) -> None:
        pass


class InMemoryBlobStorage(BlobStorage):
    def __init__(self) -> None:
        self._blobs: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, filename: str) -> bytes:
        with self._lock:
            try:
                return self._blobs[filename]
            except KeyError:
                raise NotFoundError(f"Файл не найден: {filename}") from None

    def exists(self, filename: str) -> bool:
        with self._lock:
            return filename in self._blobs

    def delete(self, filename: str) -> None:
        with self._lock:
            self._blobs.pop(filename, None)

    def _write(self, filename: str, data: bytes) -> None:
        with self._lock:
            self._blobs[filename] = bytes(data)


class DirectoryBlobStorage(BlobStorage):
    """Файлы в одном каталоге; имена с путями отклоняются."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, filename: str) -> Path:
        if not filename or Path(filename).name != filename or filename in (".", ".."):
            raise NotFoundError(f"Недопустимое имя файла: {filename!r}")
        return self.root / filename

    def get(self, filename: str) -> bytes:
        path = self.path_for(filename)
        if not path.is_file():
            raise NotFoundError(f"Файл не найден: {filename}")
        return path.read_bytes()

    def exists(self, filename: str) -> bool:
        try:
            return self.path_for(filename).is_file()
        except NotFoundError:
            return False

    def delete(self, filename: str) -> None:
        path = self.path_for(filename)
        if path.is_file():
            path.unlink()

    def _write(self, filename: str, data: bytes) -> None:
        # атомарная замена через .part
        path = self.path_for(filename)
        tmp_path = path.with_name(path.name + ".part")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
