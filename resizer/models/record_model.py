"""Модели записей хранилища и элементов пакетной обработки."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

from resizer.models.encode_model import OutputArtifact


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FileUpload:
    """Входной файл пакета: байты, исходное имя и MIME-тип."""
    data: bytes = field(repr=False)
    original_name: str
    mime_type: str

    @property
    def is_image(self) -> bool:
        return (self.mime_type or "").lower().startswith("image/")


@dataclass(frozen=True)
class ImageRecord:
    """Метаданные сохранённого результата.

    Fields:
        id: Непрозрачный идентификатор (назначает хранилище записей).
        original_name: Имя исходного файла.
        filename: Имя файла результата в хранилище байтов.
        file_size: Размер результата, байт.
        format: Формат результата ("jpeg", "png", ...).
        original_width / original_height: Размеры входного изображения, px.
        resized_width / resized_height: Размеры результата, px.
        upload_date: Момент создания записи (UTC).
        quality: Качество кодирования для JPEG/WEBP.
        target_status: Итог подбора под целевой размер.
    """
    original_name: str
    filename: str
    file_size: int
    format: str
    original_width: int
    original_height: int
    resized_width: int
    resized_height: int
    upload_date: datetime = field(default_factory=_utcnow)
    quality: Optional[int] = None
    target_status: str = "none"
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["upload_date"] = self.upload_date.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ImageRecord":
        values = dict(data)
        raw_date = values.get("upload_date")
        if isinstance(raw_date, str):
            values["upload_date"] = datetime.fromisoformat(raw_date)
        return cls(**values)


@dataclass(frozen=True)
class StoredArtifact:
    """Успешный элемент: сохранённая запись и сам результат."""
    record: ImageRecord
    artifact: OutputArtifact

    ok = True


@dataclass(frozen=True)
class FileError:
    """Неуспешный элемент пакета: вид ошибки и сообщение."""
    original_name: str
    kind: str
    message: str

    ok = False


BatchItem = Union[StoredArtifact, FileError]


@dataclass(frozen=True)
class PreviewResult:
    """Ответ предпросмотра: размеры, размер в КБ (округлённый) и формат."""
    width: int
    height: int
    size_kb: int
    format: str
