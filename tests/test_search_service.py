"""
Тесты подбора качества под целевой размер.

Сходимость, границы качества, ограничение числа итераций,
неприменимость к форматам без качества и отмена.
"""

import threading

import pytest

from resizer.config import SearchConfig
from resizer.errors import OperationCancelled
from resizer.models.encode_model import (
    LossyEncodeSpec,
    PngEncodeSpec,
    SizeTarget,
    TargetStatus,
)
from resizer.models.image_model import ImageFormat
from resizer.services.image_service import ImageService
from resizer.services.search_service import SearchService


class CountingImageService(ImageService):
    """Кодек, который считает вызовы encode и может выставить отмену."""

    def __init__(self, cancel_after=None, cancel_event=None):
        super().__init__()
        self.calls = []
        self._cancel_after = cancel_after
        self._cancel_event = cancel_event

    def encode(self, image, spec):
        self.calls.append(spec)
        if self._cancel_after is not None and len(self.calls) >= self._cancel_after:
            self._cancel_event.set()
        return super().encode(image, spec)


def jpeg_kb(image_service, image, quality):
    return len(image_service.encode(image, LossyEncodeSpec(ImageFormat.JPEG, quality))) / 1024


@pytest.fixture
def counting_service():
    return CountingImageService()


@pytest.fixture
def search(counting_service):
    return SearchService(counting_service)


class TestSearchConvergence:
    """Сходимость в пределах допуска."""

    def test_exact_hit_on_second_probe(self, search, counting_service, noisy_image):
        """Цель, равная размеру при качестве 49, достигается второй пробой (90 -> 49)."""
        target_kb = jpeg_kb(ImageService(), noisy_image, 49)

        artifact = search.search(noisy_image, LossyEncodeSpec(ImageFormat.JPEG, 90), SizeTarget(target_kb))

        assert artifact.target_status is TargetStatus.CONVERGED
        assert artifact.quality == 49
        assert artifact.iterations == 2
        assert [spec.quality for spec in counting_service.calls] == [90, 49]

    @pytest.mark.parametrize("reference_quality", [30, 70])
    def test_converges_within_tolerance(self, search, noisy_image, reference_quality):
        """Достижимая цель: не больше 10 итераций, размер в ±5%, качество в [10, 100]."""
        target = SizeTarget(jpeg_kb(ImageService(), noisy_image, reference_quality))

        artifact = search.search(noisy_image, LossyEncodeSpec(ImageFormat.JPEG, 90), target)

        assert artifact.converged
        assert artifact.iterations <= 10
        assert 10 <= artifact.quality <= 100
        assert target.accepts(artifact.size_kb)

    def test_first_probe_accepted(self, search, noisy_image):
        """Если начальное качество уже попадает в допуск, итерация одна."""
        target = SizeTarget(jpeg_kb(ImageService(), noisy_image, 90))

        artifact = search.search(noisy_image, LossyEncodeSpec(ImageFormat.JPEG, 90), target)

        assert artifact.converged
        assert artifact.iterations == 1
        assert artifact.quality == 90

    def test_artifact_metadata(self, search, noisy_image):
        """Результат несёт размеры, формат и сами байты."""
        target = SizeTarget(jpeg_kb(ImageService(), noisy_image, 49))

        artifact = search.search(noisy_image, LossyEncodeSpec(ImageFormat.JPEG, 90), target)

        assert (artifact.width, artifact.height) == (noisy_image.width, noisy_image.height)
        assert artifact.format is ImageFormat.JPEG
        assert artifact.size_bytes == len(artifact.data)
        assert artifact.data[:2] == b"\xff\xd8"


class TestSearchBounds:
    """Поведение на границах диапазона качества."""

    def test_unreachable_small_target_stops_at_min_quality(self, search, counting_service, noisy_image):
        """Слишком маленькая цель: спуск до качества 10 и остановка без выхода ниже."""
        artifact = search.search(noisy_image, LossyEncodeSpec(ImageFormat.JPEG, 90), SizeTarget(0.01))

        assert artifact.target_status is TargetStatus.NOT_CONVERGED
        assert artifact.quality == 10
        assert [spec.quality for spec in counting_service.calls] == [90, 49, 29, 19, 14, 11, 10]
        assert artifact.iterations == 7

    def test_unreachable_large_target_stops_at_max_quality(self, search, counting_service, noisy_image):
        """Слишком большая цель: подъём до 100 и остановка."""
        artifact = search.search(noisy_image, LossyEncodeSpec(ImageFormat.JPEG, 90), SizeTarget(100_000))

        assert artifact.target_status is TargetStatus.NOT_CONVERGED
        assert artifact.quality == 100
        assert [spec.quality for spec in counting_service.calls] == [90, 95, 98, 99, 100]

    def test_iteration_cap(self, counting_service, noisy_image):
        """Число итераций ограничено max_iterations; возвращается последний вариант."""
        search = SearchService(counting_service, SearchConfig(max_iterations=3))

        artifact = search.search(noisy_image, LossyEncodeSpec(ImageFormat.JPEG, 90), SizeTarget(0.01))

        assert artifact.iterations == 3
        assert artifact.quality == 29
        assert artifact.target_status is TargetStatus.NOT_CONVERGED
        assert len(counting_service.calls) == 3

    def test_initial_quality_clamped(self, search, counting_service, noisy_image):
        """Начальное качество ниже 10 поднимается до нижней границы."""
        search.search(noisy_image, LossyEncodeSpec(ImageFormat.JPEG, 5), SizeTarget(100_000))
        assert counting_service.calls[0].quality == 10


class TestSearchNotApplicable:
    """Форматы без ручки качества."""

    def test_png_is_encoded_directly(self, search, counting_service, noisy_image):
        """PNG с целевым размером: одно прямое кодирование, цикл не запускается."""
        artifact = search.search(noisy_image, PngEncodeSpec(), SizeTarget(10))

        assert artifact.target_status is TargetStatus.NOT_APPLICABLE
        assert artifact.iterations == 0
        assert artifact.quality is None
        assert artifact.format is ImageFormat.PNG
        assert len(counting_service.calls) == 1


class TestSearchCancellation:
    """Отмена между итерациями."""

    def test_cancelled_before_start(self, search, counting_service, noisy_image):
        """Выставленный заранее сигнал не даёт кодировать вовсе."""
        event = threading.Event()
        event.set()

        with pytest.raises(OperationCancelled):
            search.search(noisy_image, LossyEncodeSpec(ImageFormat.JPEG, 90), SizeTarget(0.01), event)
        assert counting_service.calls == []

    def test_cancelled_between_iterations(self, noisy_image):
        """Отмена после второй пробы прерывает цикл перед третьей."""
        event = threading.Event()
        service = CountingImageService(cancel_after=2, cancel_event=event)
        search = SearchService(service)

        with pytest.raises(OperationCancelled):
            search.search(noisy_image, LossyEncodeSpec(ImageFormat.JPEG, 90), SizeTarget(0.01), event)
        assert len(service.calls) == 2
