"""Упаковка нескольких результатов в zip-архив."""
from __future__ import annotations

import io
import logging
import zipfile
from typing import BinaryIO, Iterable, List

from resizer.errors import NotFoundError
from resizer.services.storage_service import BlobStorage

logger = logging.getLogger(__name__)


class ArchiveService:
    def __init__(self, storage: BlobStorage, compress_level: int = 9) -> None:
        self._storage = storage
        self._compress_level = compress_level

    def write_zip(self, filenames: Iterable[str], fileobj: BinaryIO) -> List[str]:
        """Пишет zip с существующими файлами в `fileobj`.

        Отсутствующие имена молча пропускаются, повторы добавляются один раз.

        Returns:
            Имена, которые попали в архив.
        """
        added: List[str] = []
        with zipfile.ZipFile(
            fileobj, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=self._compress_level
        ) as archive:
            for filename in filenames:
                if filename in added:
                    continue
                try:
                    data = self._storage.get(filename)
                except NotFoundError:
                    logger.debug("Skipping missing file %s", filename)
                    continue
                archive.writestr(filename, data)
                added.append(filename)
        logger.info("Archived %d file(s)", len(added))
        return added

    def build_zip(self, filenames: Iterable[str]) -> bytes:
        buffer = io.BytesIO()
        self.write_zip(filenames, buffer)
        return buffer.getvalue()
