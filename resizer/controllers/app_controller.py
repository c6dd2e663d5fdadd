"""Оркестрация: пакетное изменение размера, правка сохранённых изображений,
предпросмотр и работа с записями.

Хранилища байтов и записей передаются снаружи. Ошибка одного файла пакета
превращается в `FileError`; одиночные операции сохраняют байты только после
получения готового результата, а запись только после байтов.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable, List, Optional, Sequence

from resizer.config import ResizerConfig
from resizer.errors import ImageProcessingError, OperationCancelled
from resizer.models.encode_model import OutputArtifact, encode_spec_for
from resizer.models.image_model import ImageData, ImageFormat, TransformSpec
from resizer.models.params_model import EditParams, PreviewParams, ResizeParams
from resizer.models.record_model import (
    BatchItem,
    FileError,
    FileUpload,
    ImageRecord,
    PreviewResult,
    StoredArtifact,
)
from resizer.services.archive_service import ArchiveService
from resizer.services.image_service import ImageService
from resizer.services.process_service import ProcessService, round_half_up
from resizer.services.record_service import RecordStore
from resizer.services.search_service import SearchService, check_cancelled
from resizer.services.storage_service import BlobStorage

logger = logging.getLogger(__name__)


@dataclass
class AppController:
    """Точка входа ядра для внешнего слоя (CLI, HTTP-обработчики).

    Ответственности:
    - Пакетное изменение размера с подбором качества под целевой размер.
    - Неразрушающая правка сохранённого изображения.
    - Предпросмотр без сохранения.
    - Список, удаление, выдача файлов и zip-архивов.
    """
    storage: BlobStorage
    records: RecordStore
    config: ResizerConfig = field(default_factory=ResizerConfig)

    _image_service: ImageService = field(init=False, repr=False)
    _process_service: ProcessService = field(init=False, repr=False)
    _search_service: SearchService = field(init=False, repr=False)
    _archive_service: ArchiveService = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._image_service = ImageService(background=self.config.output_config.background)
        self._process_service = ProcessService()
        self._search_service = SearchService(self._image_service, self.config.search_config)
        self._archive_service = ArchiveService(self.storage)

    # ---- Params ----
    def resize_params(self, form) -> ResizeParams:
        out = self.config.output_config
        return ResizeParams.from_form(
            form,
            default_width=out.default_width,
            default_height=out.default_height,
            default_quality=out.default_quality,
        )

    def edit_params(self, form) -> EditParams:
        return EditParams.from_form(form, default_quality=self.config.output_config.default_quality)

    def preview_params(self, form) -> PreviewParams:
        return PreviewParams.from_form(form, default_quality=self.config.output_config.default_quality)

    # ---- Flow A: upload many, resize ----
    def resize_batch(
        self,
        files: Sequence[FileUpload],
        params: ResizeParams,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[BatchItem]:
        """Обрабатывает файлы по порядку и сохраняет каждый результат.

        Файлы с не-image MIME-типом пропускаются без записи в результат.
        Ошибка одного файла попадает в его `FileError` и не прерывает пакет;
        после отмены оставшиеся файлы возвращаются с видом `cancelled`.
        """
        limit = self.config.output_config.max_batch_files
        if len(files) > limit:
            raise ValueError(f"Слишком много файлов: {len(files)} (максимум {limit})")

        results: List[BatchItem] = []
        for upload in files:
            if not upload.is_image:
                logger.debug("Skipping %s: not an image (%s)", upload.original_name, upload.mime_type)
                continue
            if cancel_event is not None and cancel_event.is_set():
                exc = OperationCancelled()
                results.append(FileError(upload.original_name, exc.kind, exc.message))
                continue
            try:
                results.append(self._resize_one(upload, params, cancel_event))
            except ImageProcessingError as exc:
                logger.warning("Failed to process %s: %s", upload.original_name, exc.message)
                results.append(FileError(upload.original_name, exc.kind, exc.message))

        stored = sum(1 for item in results if item.ok)
        logger.info("Batch finished: %d stored, %d failed", stored, len(results) - stored)
        return results

    def transcode(
        self,
        image: ImageData,
        params: ResizeParams,
        cancel_event: Optional[threading.Event] = None,
    ) -> OutputArtifact:
        """Конвейер изменения размера и кодирование (прямое или с подбором)."""
        output_format = params.format or image.format or ImageFormat.PNG
        encode_spec = encode_spec_for(
            output_format, params.quality, self.config.output_config.png_compress_level
        )
        spec = TransformSpec(width=params.width, height=params.height, lock_aspect=params.lock_aspect)
        transformed = self._process_service.apply(image, spec)
        try:
            if params.target_size_kb is not None:
                target = self._search_service.size_target(params.target_size_kb)
                return self._search_service.search(transformed, encode_spec, target, cancel_event)
            check_cancelled(cancel_event)
            return self._search_service.encode_direct(transformed, encode_spec)
        finally:
            transformed.close()

    # ---- Flow B: edit one stored image ----
    def edit_existing(
        self,
        original_bytes: bytes,
        original_format: Optional[ImageFormat],
        params: EditParams,
        cancel_event: Optional[threading.Event] = None,
    ) -> OutputArtifact:
        """Обрезка/поворот/отражения/смена формата без сохранения."""
        check_cancelled(cancel_event)
        image = self._image_service.decode(original_bytes)
        try:
            output_format = params.format or original_format or image.format or ImageFormat.PNG
            spec = TransformSpec(
                crop=params.crop,
                rotate=params.rotate,
                flip_horizontal=params.flip_horizontal,
                flip_vertical=params.flip_vertical,
            )
            transformed = self._process_service.apply(image, spec)
        finally:
            image.close()
        try:
            check_cancelled(cancel_event)
            encode_spec = encode_spec_for(
                output_format, params.quality, self.config.output_config.png_compress_level
            )
            return self._search_service.encode_direct(transformed, encode_spec)
        finally:
            transformed.close()

    def edit_image(
        self,
        image_id: str,
        params: EditParams,
        cancel_event: Optional[threading.Event] = None,
    ) -> StoredArtifact:
        """Правит сохранённое изображение и сохраняет результат новой записью.

        Исходная запись и её файл не меняются.

        Raises:
            NotFoundError: если нет записи или её файла.
        """
        original = self.records.find(image_id)
        data = self.storage.get(original.filename)
        artifact = self.edit_existing(data, ImageFormat.from_pil(original.format), params, cancel_event)
        source_w, source_h = original.resized_width, original.resized_height
        return self._persist(artifact, original.original_name, source_w, source_h, prefix="edited")

    # ---- Preview ----
    def preview_resize(
        self,
        data: bytes,
        params: PreviewParams,
        cancel_event: Optional[threading.Event] = None,
    ) -> PreviewResult:
        check_cancelled(cancel_event)
        image = self._image_service.decode(data)
        try:
            resize = ResizeParams(
                width=params.width or image.width,
                height=params.height or image.height,
                lock_aspect=params.lock_aspect,
                format=params.format,
                quality=params.quality,
            )
            artifact = self.transcode(image, resize, cancel_event)
        finally:
            image.close()
        return PreviewResult(
            width=artifact.width,
            height=artifact.height,
            size_kb=round_half_up(artifact.size_kb),
            format=artifact.format.value,
        )

    # ---- Records and files ----
    def list_images(self) -> List[ImageRecord]:
        return self.records.list()

    def get_image(self, image_id: str) -> ImageRecord:
        return self.records.find(image_id)

    def delete_image(self, image_id: str) -> None:
        record = self.records.find(image_id)
        self.storage.delete(record.filename)
        self.records.delete(image_id)
        logger.info("Deleted image %s (%s)", image_id, record.filename)

    def download(self, filename: str) -> bytes:
        return self.storage.get(filename)

    def write_zip(self, filenames: Iterable[str], fileobj: BinaryIO) -> List[str]:
        return self._archive_service.write_zip(filenames, fileobj)

    def build_zip(self, filenames: Iterable[str]) -> bytes:
        return self._archive_service.build_zip(filenames)

    # ---- Helpers ----
    def _resize_one(
        self,
        upload: FileUpload,
        params: ResizeParams,
        cancel_event: Optional[threading.Event],
    ) -> StoredArtifact:
        image = self._image_service.decode(upload.data)
        try:
            artifact = self.transcode(image, params, cancel_event)
        finally:
            image.close()
        return self._persist(artifact, upload.original_name, image.width, image.height, prefix="resized")

    def _persist(
        self,
        artifact: OutputArtifact,
        original_name: str,
        source_width: int,
        source_height: int,
        prefix: str,
    ) -> StoredArtifact:
        """Сохраняет байты, затем запись; при сбое записи байты удаляются."""
        filename = self.storage.put(artifact.data, prefix, artifact.format.extension)
        record = ImageRecord(
            original_name=original_name,
            filename=filename,
            file_size=artifact.size_bytes,
            format=artifact.format.value,
            original_width=source_width,
            original_height=source_height,
            resized_width=artifact.width,
            resized_height=artifact.height,
            quality=artifact.quality,
            target_status=artifact.target_status.value,
        )
        try:
            record_id = self.records.save(record)
        except Exception:
            self.storage.delete(filename)
            raise
        logger.info("Stored %s as %s (%d bytes)", original_name, filename, artifact.size_bytes)
        return StoredArtifact(record=self.records.find(record_id), artifact=artifact)
