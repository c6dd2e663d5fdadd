"""Параметры кодирования и результат транскодирования.

Параметры кодирования заданы размеченным вариантом: у каждого семейства форматов
свой класс, поэтому «качество для PNG» или «уровень сжатия для JPEG»
нельзя даже сконструировать.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union

from resizer.models.image_model import ImageFormat

MIN_QUALITY = 1
MAX_QUALITY = 100


@dataclass(frozen=True)
class LossyEncodeSpec:
    """JPEG/WEBP с ручкой качества 1..100."""
    format: ImageFormat
    quality: int = 90

    def __post_init__(self) -> None:
        if not self.format.is_lossy:
            raise ValueError(f"{self.format.value} has no quality setting")
        if not MIN_QUALITY <= self.quality <= MAX_QUALITY:
            raise ValueError(f"quality must be {MIN_QUALITY}-{MAX_QUALITY}, got {self.quality}")

    def with_quality(self, quality: int) -> "LossyEncodeSpec":
        return replace(self, quality=quality)


@dataclass(frozen=True)
class PngEncodeSpec:
    """PNG: только уровень zlib-сжатия 0..9, результат детерминирован."""
    compress_level: int = 9

    def __post_init__(self) -> None:
        if not 0 <= self.compress_level <= 9:
            raise ValueError(f"compress_level must be 0-9, got {self.compress_level}")

    @property
    def format(self) -> ImageFormat:
        return ImageFormat.PNG


@dataclass(frozen=True)
class PlainEncodeSpec:
    """GIF/BMP/TIFF без настраиваемых параметров."""
    format: ImageFormat

    def __post_init__(self) -> None:
        if self.format.is_lossy or self.format is ImageFormat.PNG:
            raise ValueError(f"{self.format.value} needs a dedicated encode spec")


EncodeSpec = Union[LossyEncodeSpec, PngEncodeSpec, PlainEncodeSpec]


def encode_spec_for(image_format: ImageFormat, quality: int = 90, compress_level: int = 9) -> EncodeSpec:
    """Собирает вариант параметров под формат; лишние параметры отбрасываются."""
    if image_format.is_lossy:
        return LossyEncodeSpec(format=image_format, quality=quality)
    if image_format is ImageFormat.PNG:
        return PngEncodeSpec(compress_level=compress_level)
    return PlainEncodeSpec(format=image_format)


@dataclass(frozen=True)
class SizeTarget:
    """Желаемый размер результата в КБ и допуск (доля, по умолчанию ±5%)."""
    target_kb: float
    tolerance: float = 0.05

    def __post_init__(self) -> None:
        if self.target_kb <= 0:
            raise ValueError(f"target_kb must be positive, got {self.target_kb}")
        if not 0.0 <= self.tolerance < 1.0:
            raise ValueError(f"tolerance must be in [0, 1), got {self.tolerance}")

    @property
    def lower_kb(self) -> float:
        return self.target_kb * (1.0 - self.tolerance)

    @property
    def upper_kb(self) -> float:
        return self.target_kb * (1.0 + self.tolerance)

    def accepts(self, size_kb: float) -> bool:
        """Попадает ли размер в полосу допуска (границы включительно)."""
        return self.lower_kb <= size_kb <= self.upper_kb


class TargetStatus(str, Enum):
    """Итог работы с целевым размером."""

    NONE = "none"
    CONVERGED = "converged"
    NOT_CONVERGED = "not_converged"
    NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class OutputArtifact:
    """Готовый результат одного транскодирования, не меняется после создания."""
    data: bytes = field(repr=False)
    width: int
    height: int
    format: ImageFormat
    quality: Optional[int] = None
    target_status: TargetStatus = TargetStatus.NONE
    iterations: int = 0

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def size_kb(self) -> float:
        return len(self.data) / 1024

    @property
    def converged(self) -> bool:
        return self.target_status is TargetStatus.CONVERGED
