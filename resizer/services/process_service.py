"""Геометрический конвейер: обрезка, изменение размера, поворот, отражения.

Каждый шаг возвращает новое изображение и не мутирует входное; промежуточные
буферы закрываются сразу после следующего шага.
"""
from __future__ import annotations

import math
from dataclasses import replace
from typing import Optional, Tuple

from PIL import Image

from resizer.errors import InvalidCropError
from resizer.models.image_model import CropBox, ImageData, TransformSpec


def round_half_up(value: float) -> int:
    """Округление 0.5 вверх (как `Math.round`), а не банковское."""
    return int(math.floor(value + 0.5))


class ProcessService:
    def target_size(
        self,
        source_width: int,
        source_height: int,
        width: Optional[int],
        height: Optional[int],
        lock_aspect: bool,
    ) -> Tuple[int, int]:
        """
        Итоговые размеры после изменения размера.
        Отсутствующая сторона берётся из источника; при `lock_aspect`
        высота = round(width * source_height / source_width), переданная высота игнорируется.
        """
        target_w = width or source_width
        target_h = height or source_height
        if lock_aspect:
            target_h = max(1, round_half_up(target_w * source_height / source_width))
        return target_w, target_h

    def apply(self, image: ImageData, spec: TransformSpec) -> ImageData:
        """
        Применяет шаги в фиксированном порядке:
        обрезка -> размер -> поворот -> отражение по горизонтали -> по вертикали.
        Шаги с «пустыми» параметрами пропускаются.
        """
        current = image.pil_image
        rotated_free = False

        def advance(result: Image.Image) -> None:
            nonlocal current
            if current is not image.pil_image and current is not result:
                current.close()
            current = result

        try:
            if spec.crop is not None:
                advance(self.crop(current, spec.crop))

            src_w, src_h = current.size
            target = self.target_size(src_w, src_h, spec.width, spec.height, spec.lock_aspect)
            if target != current.size:
                advance(self.resize(current, target))

            degrees = spec.rotate % 360
            if degrees:
                rotated_free = degrees % 90 != 0
                advance(self.rotate(current, degrees))

            if spec.flip_horizontal:
                advance(self.flip_horizontal(current))
            if spec.flip_vertical:
                advance(self.flip_vertical(current))
        except Exception:
            if current is not image.pil_image:
                current.close()
            raise

        if current is image.pil_image:
            current = current.copy()

        width, height = current.size
        return replace(
            image,
            pil_image=current,
            width=width,
            height=height,
            mode=current.mode,
            has_alpha=image.has_alpha or (rotated_free and current.mode in ("RGBA", "LA")),
            size_bytes=None,
        )

    # ---------- Шаги конвейера ----------
    def crop(self, image: Image.Image, box: CropBox) -> Image.Image:
        """
        Вырезает прямоугольник. Выход за границы не подрезается, а отклоняется.
        """
        width, height = image.size
        if box.width <= 0 or box.height <= 0:
            raise InvalidCropError(
                f"Размер обрезки должен быть положительным: {box.width}x{box.height}"
            )
        if box.left < 0 or box.top < 0 or box.right > width or box.bottom > height:
            raise InvalidCropError(
                f"Обрезка {box.as_box()} выходит за границы изображения {width}x{height}"
            )
        return image.crop(box.as_box())

    def resize(self, image: Image.Image, size: Tuple[int, int]) -> Image.Image:
        return image.resize(size, Image.Resampling.LANCZOS)

    def rotate(self, image: Image.Image, degrees: float) -> Image.Image:
        """
        Поворот по часовой стрелке. Кратные 90° выполняются без интерполяции,
        прочие углы расширяют холст под повёрнутые границы.
        """
        degrees = degrees % 360
        if degrees == 90:
            return image.transpose(Image.Transpose.ROTATE_270)
        if degrees == 180:
            return image.transpose(Image.Transpose.ROTATE_180)
        if degrees == 270:
            return image.transpose(Image.Transpose.ROTATE_90)
        # PIL вращает против часовой стрелки
        return image.rotate(-degrees, resample=Image.Resampling.BICUBIC, expand=True)

    def flip_horizontal(self, image: Image.Image) -> Image.Image:
        return image.transpose(Image.Transpose.FLIP_LEFT_RIGHT)

    def flip_vertical(self, image: Image.Image) -> Image.Image:
        return image.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
