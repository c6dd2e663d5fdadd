"""
Общие фикстуры и генераторы синтетических изображений для тестов.
"""

import io

import numpy as np
import pytest
from PIL import Image

from resizer.config import ResizerConfig
from resizer.controllers.app_controller import AppController
from resizer.models.record_model import FileUpload
from resizer.services.image_service import ImageService
from resizer.services.record_service import InMemoryRecordStore
from resizer.services.storage_service import InMemoryBlobStorage


def make_image(width=256, height=192, mode="RGB", seed=0):
    """Градиент с шумом: сжимается, но размер заметно зависит от качества."""
    rng = np.random.default_rng(seed)
    ys, xs = np.mgrid[0:height, 0:width]
    base = np.stack(
        [
            xs * 255.0 / max(1, width - 1),
            ys * 255.0 / max(1, height - 1),
            (xs + ys) * 127.0 / max(1, width + height - 2),
        ],
        axis=-1,
    )
    noisy = np.clip(base + rng.normal(0.0, 18.0, base.shape), 0, 255).astype(np.uint8)
    image = Image.fromarray(noisy)
    if mode == "RGBA":
        alpha = np.full((height, width), 255, dtype=np.uint8)
        alpha[: height // 2, : width // 2] = 0
        image.putalpha(Image.fromarray(alpha))
    elif mode != "RGB":
        image = image.convert(mode)
    return image


def encode_bytes(image, fmt="PNG", **options):
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **options)
    return buffer.getvalue()


def image_upload(name="photo.png", width=256, height=192, fmt="PNG", mime_type="image/png", seed=0):
    return FileUpload(
        data=encode_bytes(make_image(width, height, seed=seed), fmt),
        original_name=name,
        mime_type=mime_type,
    )


@pytest.fixture
def image_service():
    """Кодек с белым фоном для JPEG."""
    return ImageService()


@pytest.fixture
def noisy_image(image_service):
    """Декодированное синтетическое изображение 256x192."""
    decoded = image_service.decode(encode_bytes(make_image()))
    yield decoded
    decoded.close()


@pytest.fixture
def blob_storage():
    return InMemoryBlobStorage()


@pytest.fixture
def record_store():
    return InMemoryRecordStore()


@pytest.fixture
def controller(blob_storage, record_store):
    """Контроллер с хранилищами в памяти и конфигурацией по умолчанию."""
    return AppController(storage=blob_storage, records=record_store, config=ResizerConfig())
