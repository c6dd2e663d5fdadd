"""Хранилища записей о сохранённых изображениях.

`save` назначает идентификатор, `list` отдаёт записи от новых к старым.
Запись сериализуется собственной блокировкой хранилища.
"""
from __future__ import annotations

import json
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Union

from resizer.errors import NotFoundError
from resizer.models.record_model import ImageRecord

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Интерфейс хранилища метаданных."""

    @abstractmethod
    def save(self, record: ImageRecord) -> str:
        pass

    @abstractmethod
    def find(self, record_id: str) -> ImageRecord:
        """Запись по идентификатору; NotFoundError, если её нет."""

    @abstractmethod
    def list(self) -> List[ImageRecord]:
        pass

    @abstractmethod
    def delete(self, record_id: str) -> None:
        """Удаляет запись; NotFoundError, если её нет."""


class InMemoryRecordStore(RecordStore):
    def __init__(self) -> None:
        self._records: Dict[str, ImageRecord] = {}
        self._lock = threading.Lock()

    def save(self, record: ImageRecord) -> str:
        record_id = uuid.uuid4().hex
        with self._lock:
            records = dict(self._records)
            records[record_id] = replace(record, id=record_id)
            self._commit(records)
        return record_id

    def find(self, record_id: str) -> ImageRecord:
        with self._lock:
            record = self._records.get(record_id)
        if record is None:
            raise NotFoundError(f"Изображение не найдено: {record_id}")
        return record

    def list(self) -> List[ImageRecord]:
        with self._lock:
            # при равных датах новые раньше
            records = list(reversed(list(self._records.values())))
        return sorted(records, key=lambda r: r.upload_date, reverse=True)

    def delete(self, record_id: str) -> None:
        with self._lock:
            if record_id not in self._records:
                raise NotFoundError(f"Изображение не найдено: {record_id}")
            records = dict(self._records)
            del records[record_id]
            self._commit(records)

    def _commit(self, records: Dict[str, ImageRecord]) -> None:
        """Делает `records` текущим состоянием; вызывается под блокировкой."""
        self._records = records


class JsonlRecordStore(InMemoryRecordStore):
    """Записи в памяти с манифестом ``records.jsonl`` на диске."""

    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._load_manifest()

    def _load_manifest(self) -> None:
        if not self.path.exists():
            return
        with open(self.path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = ImageRecord.from_dict(json.loads(line))
                except (json.JSONDecodeError, TypeError, ValueError) as e:
                    logger.warning("Skipping malformed record at %s:%d: %s", self.path, line_no, e)
                    continue
                if record.id:
                    self._records[record.id] = record

    def _commit(self, records: Dict[str, ImageRecord]) -> None:
        # состояние в памяти меняется только после записи манифеста
        tmp_path = self.path.with_name(self.path.name + ".part")
        with open(tmp_path, "w", encoding="utf-8") as f:
            for record in records.values():
                f.write(json.dumps(record.to_dict(), ensure_ascii=False) + "\n")
        tmp_path.replace(self.path)
        super()._commit(records)
