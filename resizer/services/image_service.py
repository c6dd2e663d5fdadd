"""Кодек: байты в `ImageData` и обратно через Pillow.

При декодировании режим приводится к RGB/RGBA/L/LA и проверяется, есть ли
реально прозрачные пиксели. При кодировании режим подгоняется под формат:
JPEG не хранит альфу, поэтому прозрачность заливается фоном.
"""
from __future__ import annotations

import io
import logging
from typing import Any, Dict, Tuple, Union

import numpy as np
from PIL import Image

from resizer.errors import DecodeError, EncodeError, UnsupportedFormatError
from resizer.models.encode_model import EncodeSpec, LossyEncodeSpec, PngEncodeSpec
from resizer.models.image_model import ImageData, ImageFormat

logger = logging.getLogger(__name__)

_KEEP_MODES = ("RGB", "RGBA", "L", "LA")
_DECODE_ERRORS = (OSError, ValueError, EOFError, SyntaxError, Image.DecompressionBombError)


class ImageService:
    def __init__(self, background: Tuple[int, int, int] = (255, 255, 255)) -> None:
        self._background = tuple(background)

    def decode(self, data: bytes) -> ImageData:
        """Декодирует байты и возвращает изображение вместе с метаданными.

        Для анимированных форматов берётся первый кадр. Палитровые и прочие
        режимы приводятся к RGB/RGBA/L/LA.

        Args:
            data: Сжатые байты изображения.

        Returns:
            `ImageData` с `PIL.Image.Image`, размерами, форматом и признаком альфы.

        Raises:
            DecodeError: если байты повреждены или формат не распознан.
        """
        if not data:
            raise DecodeError("Пустые данные изображения")
        try:
            with Image.open(io.BytesIO(data)) as opened:
                opened.load()
                pil_format = opened.format
                pil_image = self._normalize_mode(opened)
        except _DECODE_ERRORS as exc:
            raise DecodeError(f"Данные не являются изображением: {exc}") from exc

        width, height = pil_image.size
        logger.debug("Decoded %s image %dx%d (%s)", pil_format, width, height, pil_image.mode)
        return ImageData(
            pil_image=pil_image,
            width=width,
            height=height,
            format=ImageFormat.from_pil(pil_format),
            mode=pil_image.mode,
            has_alpha=self._has_alpha(pil_image),
            size_bytes=len(data),
        )

    def encode(self, image: Union[ImageData, Image.Image], spec: EncodeSpec) -> bytes:
        """Кодирует изображение в формат из `spec`.

        Качество учитывается только для JPEG/WEBP, уровень сжатия только для PNG.
        При одинаковых входных данных PNG кодируется в одинаковые байты.

        Raises:
            UnsupportedFormatError: если в сборке Pillow нет кодировщика формата.
            EncodeError: если кодировщик завершился ошибкой.
        """
        pil_image = image.pil_image if isinstance(image, ImageData) else image
        image_format = spec.format
        self.ensure_encoder(image_format)

        opaque = isinstance(image, ImageData) and not image.has_alpha
        prepared = self._prepare_for(pil_image, image_format, opaque)
        buffer = io.BytesIO()
        try:
            prepared.save(buffer, format=image_format.pil_name, **self._save_options(spec))
        except (OSError, ValueError, MemoryError) as exc:
            raise EncodeError(f"Не удалось закодировать {image_format.value}: {exc}") from exc
        finally:
            if prepared is not pil_image:
                prepared.close()
        return buffer.getvalue()

    def ensure_encoder(self, image_format: ImageFormat) -> None:
        Image.init()
        if image_format.pil_name not in Image.SAVE:
            raise UnsupportedFormatError(f"Нет кодировщика для формата {image_format.value}")

    # ---------- Вспомогательные функции ----------
    def _normalize_mode(self, image: Image.Image) -> Image.Image:
        """Возвращает новую копию изображения в одном из режимов RGB/RGBA/L/LA."""
        mode = image.mode
        if mode in _KEEP_MODES:
            return image.copy()
        if mode == "1":
            return image.convert("L")
        if mode in ("I", "F") or mode.startswith("I;"):
            return image.convert("L")
        if mode in ("P", "PA") and ("transparency" in image.info or mode == "PA"):
            return image.convert("RGBA")
        return image.convert("RGB")

    def _has_alpha(self, image: Image.Image) -> bool:
        """Есть ли хотя бы один не полностью непрозрачный пиксель."""
        if image.mode not in ("RGBA", "LA"):
            return False
        alpha = np.asarray(image.getchannel("A"))
        return bool((alpha < 255).any())

    def _flatten(self, image: Image.Image) -> Image.Image:
        """Накладывает изображение с альфой на фон и возвращает RGB."""
        rgba = image.convert("RGBA")
        canvas = Image.new("RGB", rgba.size, self._background)
        canvas.paste(rgba, mask=rgba.getchannel("A"))
        rgba.close()
        return canvas

    def _prepare_for(self, image: Image.Image, image_format: ImageFormat, opaque: bool = False) -> Image.Image:
        """Приводит режим к тому, что принимает кодировщик формата.

        `opaque` означает, что альфа-канал есть, но прозрачных пикселей нет:
        тогда для JPEG канал просто отбрасывается без наложения на фон.
        """
        mode = image.mode
        if image_format is ImageFormat.JPEG:
            if opaque and mode in ("RGBA", "LA"):
                return image.convert("RGB" if mode == "RGBA" else "L")
            if mode in ("RGBA", "LA", "PA") or (mode == "P" and "transparency" in image.info):
                return self._flatten(image)
            if mode not in ("RGB", "L", "CMYK"):
                return image.convert("RGB")
        elif image_format is ImageFormat.WEBP:
            if mode in ("LA", "PA") or (mode == "P" and "transparency" in image.info):
                return image.convert("RGBA")
            if mode not in ("RGB", "RGBA"):
                return image.convert("RGB")
        elif image_format is ImageFormat.BMP:
            if mode in ("LA", "PA"):
                return image.convert("RGBA")
            if mode not in ("1", "L", "P", "RGB", "RGBA"):
                return image.convert("RGB")
        return image

    def _save_options(self, spec: EncodeSpec) -> Dict[str, Any]:
        if isinstance(spec, LossyEncodeSpec):
            if spec.format is ImageFormat.JPEG:
                return {"quality": spec.quality, "optimize": True}
            return {"quality": spec.quality, "method": 4}
        if isinstance(spec, PngEncodeSpec):
            return {"compress_level": spec.compress_level}
        return {}
