"""Подбор качества JPEG/WEBP под целевой размер файла.

Ограниченный двоичный поиск по целому качеству в [min_quality, max_quality]:
каждая итерация перекодирует изображение целиком, поэтому число итераций
ограничено сверху. Возвращается последний закодированный вариант, даже если
он не попал в полосу допуска.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

from resizer.config import SearchConfig
from resizer.errors import OperationCancelled
from resizer.models.encode_model import (
    EncodeSpec,
    LossyEncodeSpec,
    OutputArtifact,
    SizeTarget,
    TargetStatus,
)
from resizer.models.image_model import ImageData
from resizer.services.image_service import ImageService

logger = logging.getLogger(__name__)


def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelled()


class SearchService:
    def __init__(self, image_service: ImageService, config: Optional[SearchConfig] = None) -> None:
        self._image_service = image_service
        self._config = config or SearchConfig()

    @property
    def config(self) -> SearchConfig:
        return self._config

    def size_target(self, target_kb: float) -> SizeTarget:
        """Целевой размер с допуском из конфигурации."""
        return SizeTarget(target_kb=target_kb, tolerance=self._config.tolerance)

    def encode_direct(
        self,
        image: ImageData,
        spec: EncodeSpec,
        target_status: TargetStatus = TargetStatus.NONE,
    ) -> OutputArtifact:
        """Один проход кодировщика без подбора."""
        data = self._image_service.encode(image, spec)
        quality = spec.quality if isinstance(spec, LossyEncodeSpec) else None
        return OutputArtifact(
            data=data,
            width=image.width,
            height=image.height,
            format=spec.format,
            quality=quality,
            target_status=target_status,
            iterations=0,
        )

    def search(
        self,
        image: ImageData,
        base_spec: EncodeSpec,
        target: SizeTarget,
        cancel_event: Optional[threading.Event] = None,
    ) -> OutputArtifact:
        """Подбирает качество так, чтобы размер попал в `target`.

        Для форматов без ручки качества выполняется одно прямое кодирование,
        результат помечается как `not_applicable`.

        Raises:
            OperationCancelled: если сигнал отмены выставлен между итерациями.
        """
        if not isinstance(base_spec, LossyEncodeSpec):
            logger.debug("Size target not applicable to %s, encoding directly", base_spec.format.value)
            check_cancelled(cancel_event)
            return self.encode_direct(image, base_spec, TargetStatus.NOT_APPLICABLE)

        cfg = self._config
        low, high = cfg.min_quality, cfg.max_quality
        current = max(low, min(high, base_spec.quality))

        data = b""
        used_quality = current
        status = TargetStatus.NOT_CONVERGED
        iterations = 0

        while iterations < cfg.max_iterations:
            check_cancelled(cancel_event)
            data = self._image_service.encode(image, base_spec.with_quality(current))
            used_quality = current
            iterations += 1
            size_kb = len(data) / 1024
            logger.debug(
                "Search iteration %d: quality=%d size=%.1fKB target=%.1fKB",
                iterations, current, size_kb, target.target_kb,
            )

            if target.accepts(size_kb):
                status = TargetStatus.CONVERGED
                break

            if size_kb > target.target_kb:
                high = current - 1
            else:
                low = current + 1
            if low > high:
                # следующая проба вышла бы за [min_quality, max_quality]
                break
            current = (low + high) // 2

        if status is not TargetStatus.CONVERGED:
            logger.info(
                "Target %.1fKB not reached after %d iterations, last size %.1fKB at quality %d",
                target.target_kb, iterations, len(data) / 1024, used_quality,
            )

        return OutputArtifact(
            data=data,
            width=image.width,
            height=image.height,
            format=base_spec.format,
            quality=used_quality,
            target_status=status,
            iterations=iterations,
        )
