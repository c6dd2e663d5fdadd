"""Параметры запросов и их разбор из строковых полей формы.

Поля формы приходят строками ("500", "true", "1.5MB"); здесь они
превращаются в типизированные параметры конвейера. Разбор снисходительный:
нераспознанное число даёт значение по умолчанию, нераспознанная строка
целевого размера означает «без целевого размера».
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from resizer.errors import InvalidCropError
from resizer.models.image_model import CropBox, ImageFormat

DEFAULT_WIDTH = 500
DEFAULT_HEIGHT = 500
DEFAULT_QUALITY = 90

_TARGET_SIZE_RE = re.compile(r"^([0-9]+(\.[0-9]+)?)\s*(KB|MB)?$", re.IGNORECASE)
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_TRUE_STRINGS = {"true", "1", "yes", "on"}


def parse_target_size(value: Any) -> Optional[float]:
    """Разбирает строку целевого размера в килобайты.

    "300" -> 300.0, "1.5MB" -> 1536.0, "300 kb" -> 300.0.
    Пустая или некорректная строка (а также нулевой размер) -> None.
    """
    if value is None:
        return None
    match = _TARGET_SIZE_RE.match(str(value).strip())
    if not match:
        return None
    size_kb = float(match.group(1))
    if (match.group(3) or "KB").upper() == "MB":
        size_kb *= 1024
    return size_kb if size_kb > 0 else None


def parse_int(value: Any, default: Optional[int]) -> Optional[int]:
    """Ведущее целое из строки ("640px" -> 640); 0 и мусор -> default."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return default
        number = int(value)
    else:
        match = _LEADING_INT_RE.match(str(value))
        if not match:
            return default
        number = int(match.group(1))
    return number if number != 0 else default


def parse_float(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    # NaN и бесконечности
    return number if math.isfinite(number) else default


def parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_STRINGS


def parse_quality(value: Any, default: int = DEFAULT_QUALITY) -> int:
    """Качество 1..100; 0, пустое и нечисловое -> default."""
    number = parse_float(value, 0.0)
    if not number:
        return default
    return max(1, min(100, int(round(number))))


def parse_format(value: Any) -> Optional[ImageFormat]:
    if value is None or not str(value).strip():
        return None
    return ImageFormat.parse(str(value))


def parse_crop(value: Any) -> Optional[CropBox]:
    """Прямоугольник из словаря {left, top, width, height}.

    Пустой словарь или нулевые ширина и высота означают «без обрезки».
    """
    if not value:
        return None
    if not isinstance(value, Mapping):
        raise InvalidCropError("Обрезка задаётся словарём left/top/width/height")
    width = parse_int(value.get("width"), 0) or 0
    height = parse_int(value.get("height"), 0) or 0
    if width == 0 and height == 0:
        return None
    return CropBox(
        left=parse_int(value.get("left"), 0) or 0,
        top=parse_int(value.get("top"), 0) or 0,
        width=width,
        height=height,
    )


def _positive(value: Optional[int], default: Optional[int]) -> Optional[int]:
    return value if value is None or value > 0 else default


@dataclass(frozen=True)
class ResizeParams:
    """Параметры пакетного изменения размера."""
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    lock_aspect: bool = False
    format: Optional[ImageFormat] = None
    quality: int = DEFAULT_QUALITY
    target_size_kb: Optional[float] = None

    @classmethod
    def from_form(
        cls,
        form: Mapping[str, Any],
        default_width: int = DEFAULT_WIDTH,
        default_height: int = DEFAULT_HEIGHT,
        default_quality: int = DEFAULT_QUALITY,
    ) -> "ResizeParams":
        return cls(
            width=_positive(parse_int(form.get("width"), default_width), default_width),
            height=_positive(parse_int(form.get("height"), default_height), default_height),
            lock_aspect=parse_flag(form.get("lockAspect", form.get("lock_aspect"))),
            format=parse_format(form.get("format")),
            quality=parse_quality(form.get("quality"), default_quality),
            target_size_kb=parse_target_size(form.get("targetSize", form.get("target_size"))),
        )


@dataclass(frozen=True)
class EditParams:
    """Параметры правки сохранённого изображения (без целевого размера)."""
    crop: Optional[CropBox] = None
    rotate: float = 0.0
    flip_horizontal: bool = False
    flip_vertical: bool = False
    format: Optional[ImageFormat] = None
    quality: int = DEFAULT_QUALITY

    @classmethod
    def from_form(cls, form: Mapping[str, Any], default_quality: int = DEFAULT_QUALITY) -> "EditParams":
        return cls(
            crop=parse_crop(form.get("crop")),
            rotate=parse_float(form.get("rotate"), 0.0),
            flip_horizontal=parse_flag(form.get("flipH", form.get("flip_horizontal"))),
            flip_vertical=parse_flag(form.get("flipV", form.get("flip_vertical"))),
            format=parse_format(form.get("format")),
            quality=parse_quality(form.get("quality"), default_quality),
        )


@dataclass(frozen=True)
class PreviewParams:
    """Параметры предпросмотра; отсутствующие размеры берутся из источника."""
    width: Optional[int] = None
    height: Optional[int] = None
    lock_aspect: bool = False
    format: Optional[ImageFormat] = None
    quality: int = DEFAULT_QUALITY

    @classmethod
    def from_form(cls, form: Mapping[str, Any], default_quality: int = DEFAULT_QUALITY) -> "PreviewParams":
        return cls(
            width=_positive(parse_int(form.get("width"), None), None),
            height=_positive(parse_int(form.get("height"), None), None),
            lock_aspect=parse_flag(form.get("lockAspect", form.get("lock_aspect"))),
            format=parse_format(form.get("format")),
            quality=parse_quality(form.get("quality"), default_quality),
        )
