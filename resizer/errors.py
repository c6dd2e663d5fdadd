"""Ошибки ядра обработки изображений.

Каждая ошибка несёт машинный `kind` и человекочитаемое сообщение, чтобы
внешний слой (CLI, HTTP) мог сопоставить её со своим статусом.
"""
from __future__ import annotations


class ImageProcessingError(Exception):
    """Базовая ошибка ядра."""

    kind = "processing_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DecodeError(ImageProcessingError):
    """Байты не удалось распознать как изображение."""

    kind = "decode_error"


class InvalidCropError(ImageProcessingError):
    """Прямоугольник обрезки выходит за границы изображения."""

    kind = "invalid_crop"


class NotFoundError(ImageProcessingError):
    """Запись или её файл отсутствуют в хранилище."""

    kind = "not_found"


class UnsupportedFormatError(ImageProcessingError):
    """Для запрошенного формата нет кодировщика."""

    kind = "unsupported_format"


class EncodeError(ImageProcessingError):
    """Сбой кодировщика."""

    kind = "encode_error"


class OperationCancelled(ImageProcessingError):
    """Операция прервана сигналом отмены."""

    kind = "cancelled"

    def __init__(self, message: str = "Операция отменена") -> None:
        super().__init__(message)
