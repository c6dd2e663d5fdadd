"""Модели изображения: формат, декодированные данные, обрезка и набор
геометрических шагов конвейера.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from PIL import Image

from resizer.errors import UnsupportedFormatError


class ImageFormat(str, Enum):
    """Поддерживаемые выходные форматы."""

    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"
    GIF = "gif"
    BMP = "bmp"
    TIFF = "tiff"

    @property
    def pil_name(self) -> str:
        """Имя формата для `Image.save(format=...)`."""
        return self.value.upper()

    @property
    def is_lossy(self) -> bool:
        """Есть ли у формата непрерывная ручка качества."""
        return self in (ImageFormat.JPEG, ImageFormat.WEBP)

    @property
    def extension(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> "ImageFormat":
        """Разбирает имя формата ("jpg", "JPEG", "tif"...).

        Raises:
            UnsupportedFormatError: если формат неизвестен.
        """
        name = (value or "").strip().lower()
        name = _ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError as exc:
            raise UnsupportedFormatError(f"Неподдерживаемый формат: {value!r}") from exc

    @classmethod
    def from_pil(cls, pil_format: Optional[str]) -> Optional["ImageFormat"]:
        """Формат по имени, которое вернул Pillow при декодировании, или None."""
        if not pil_format:
            return None
        try:
            return cls.parse(pil_format)
        except UnsupportedFormatError:
            return None


_ALIASES = {"jpg": "jpeg", "tif": "tiff"}


@dataclass(frozen=True)
class ImageData:
    """Неизменяемая модель декодированного изображения и его метаданные.

    Fields:
        pil_image: Декодированное изображение PIL.
        width: Ширина, px (> 0).
        height: Высота, px (> 0).
        format: Исходный формат, если распознан.
        mode: Режим PIL, например "RGBA".
        has_alpha: Есть ли реально используемый альфа-канал.
        size_bytes: Размер исходных байтов, если известен.
    """
    pil_image: Image.Image
    width: int
    height: int
    format: Optional[ImageFormat]
    mode: str
    has_alpha: bool
    size_bytes: Optional[int] = None

    def close(self) -> None:
        """Освобождает пиксельный буфер."""
        self.pil_image.close()


@dataclass(frozen=True)
class CropBox:
    """Прямоугольник обрезки в координатах исходного изображения."""
    left: int
    top: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    def as_box(self) -> tuple[int, int, int, int]:
        """Кортеж (left, top, right, bottom) для `Image.crop`."""
        return (self.left, self.top, self.right, self.bottom)


@dataclass(frozen=True)
class TransformSpec:
    """Параметры геометрического конвейера.

    Fields:
        crop: Прямоугольник обрезки или None.
        rotate: Угол поворота по часовой стрелке, градусы (0 без поворота).
        flip_horizontal: Отражение слева направо.
        flip_vertical: Отражение сверху вниз.
        width: Целевая ширина; None: ширина после обрезки.
        height: Целевая высота; None: высота после обрезки.
        lock_aspect: Высота вычисляется из ширины по пропорциям источника,
            переданная высота игнорируется.
    """
    crop: Optional[CropBox] = None
    rotate: float = 0.0
    flip_horizontal: bool = False
    flip_vertical: bool = False
    width: Optional[int] = None
    height: Optional[int] = None
    lock_aspect: bool = False

    def __post_init__(self) -> None:
        if self.width is not None and self.width <= 0:
            raise ValueError(f"width must be positive, got {self.width}")
        if self.height is not None and self.height <= 0:
            raise ValueError(f"height must be positive, got {self.height}")
