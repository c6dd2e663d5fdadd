"""
Тесты разбора параметров запросов.

Строка целевого размера, числовые поля формы, флаги и обрезка.
"""

import pytest

from resizer.errors import InvalidCropError, UnsupportedFormatError
from resizer.models.image_model import CropBox, ImageFormat
from resizer.models.params_model import (
    EditParams,
    PreviewParams,
    ResizeParams,
    parse_crop,
    parse_flag,
    parse_float,
    parse_int,
    parse_quality,
    parse_target_size,
)


class TestParseTargetSize:
    """Грамматика целевого размера: число и необязательная единица KB/MB."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("300", 300.0),
            ("300KB", 300.0),
            ("300 kb", 300.0),
            ("300Kb", 300.0),
            ("1.5MB", 1536.0),
            ("2 mb", 2048.0),
            ("0.5", 0.5),
            ("  512  ", 512.0),
        ],
    )
    def test_valid_strings(self, value, expected):
        """Корректные строки переводятся в килобайты."""
        assert parse_target_size(value) == expected

    @pytest.mark.parametrize("value", ["abc", "", "1.5GB", "-5", ".5", "5.", "KB", "1,5MB", None])
    def test_invalid_strings_mean_no_target(self, value):
        """Некорректная строка не ошибка, а отсутствие целевого размера."""
        assert parse_target_size(value) is None

    def test_zero_means_no_target(self):
        """Нулевой размер недостижим и трактуется как отсутствие цели."""
        assert parse_target_size("0") is None


class TestScalarParsing:
    """Числа, качество и флаги из строковых полей."""

    def test_parse_int_leading_digits(self):
        """Берётся ведущее целое, как у parseInt."""
        assert parse_int("640px", 500) == 640
        assert parse_int(" 42 ", 500) == 42

    def test_parse_int_falls_back_on_zero_and_garbage(self):
        """Ноль, пустая строка и мусор дают значение по умолчанию."""
        assert parse_int("0", 500) == 500
        assert parse_int("", 500) == 500
        assert parse_int("abc", 500) == 500
        assert parse_int(None, 500) == 500

    def test_parse_quality_clamps(self):
        """Качество ограничивается диапазоном 1..100."""
        assert parse_quality("150") == 100
        assert parse_quality("75.4") == 75
        assert parse_quality("-3") == 1

    def test_parse_quality_default(self):
        """Пустое или нулевое качество -> 90."""
        assert parse_quality(None) == 90
        assert parse_quality("0") == 90
        assert parse_quality("high", default=95) == 95

    @pytest.mark.parametrize("value", ["inf", "-inf", "1e400", "nan", float("inf")])
    def test_non_finite_numbers_use_defaults(self, value):
        """Бесконечности и NaN трактуются как нераспознанное число."""
        assert parse_quality(value) == 90
        assert parse_float(value, 0.0) == 0.0

    def test_parse_int_non_finite_float(self):
        """Бесконечность из числового поля даёт значение по умолчанию."""
        assert parse_int(float("inf"), 500) == 500
        assert parse_int(float("nan"), 500) == 500

    @pytest.mark.parametrize("value", ["inf", "-inf", "1e400"])
    def test_non_finite_form_fields(self, value):
        """Качество и угол поворота из формы не падают на бесконечностях."""
        edit = EditParams.from_form({"rotate": value, "quality": value})
        resize = ResizeParams.from_form({"quality": value})

        assert edit.rotate == 0.0
        assert edit.quality == 90
        assert resize.quality == 90

    @pytest.mark.parametrize("value, expected", [("true", True), ("TRUE", True), (True, True), ("false", False), ("", False), (None, False)])
    def test_parse_flag(self, value, expected):
        """Флаг истинен только для явных значений."""
        assert parse_flag(value) is expected


class TestParseCrop:
    """Прямоугольник обрезки из словаря."""

    def test_empty_crop_is_none(self):
        """Пустой словарь и нулевые размеры означают «без обрезки»."""
        assert parse_crop({}) is None
        assert parse_crop(None) is None
        assert parse_crop({"left": 5, "top": 5, "width": 0, "height": 0}) is None

    def test_crop_from_strings(self):
        """Строковые координаты приводятся к целым."""
        crop = parse_crop({"left": "10", "top": "20", "width": "30", "height": "40"})
        assert crop == CropBox(left=10, top=20, width=30, height=40)

    def test_crop_not_a_mapping(self):
        """Обрезка не словарём отклоняется."""
        with pytest.raises(InvalidCropError):
            parse_crop([1, 2, 3, 4])


class TestRequestParams:
    """Сборка параметров запросов целиком."""

    def test_resize_defaults(self):
        """Пустая форма: 500x500, качество 90, без цели и без блокировки пропорций."""
        params = ResizeParams.from_form({})

        assert params.width == 500
        assert params.height == 500
        assert params.quality == 90
        assert params.lock_aspect is False
        assert params.format is None
        assert params.target_size_kb is None

    def test_resize_from_form(self):
        """Поля формы в стиле клиента переводятся в типы."""
        params = ResizeParams.from_form(
            {
                "width": "800",
                "height": "600",
                "lockAspect": "true",
                "format": "jpg",
                "quality": "70",
                "targetSize": "1.5MB",
            }
        )

        assert (params.width, params.height) == (800, 600)
        assert params.lock_aspect is True
        assert params.format is ImageFormat.JPEG
        assert params.quality == 70
        assert params.target_size_kb == 1536.0

    def test_resize_negative_dimensions_use_defaults(self):
        """Отрицательные размеры заменяются значениями по умолчанию."""
        params = ResizeParams.from_form({"width": "-10", "height": "-1"}, default_width=320, default_height=240)
        assert (params.width, params.height) == (320, 240)

    def test_unknown_format_rejected(self):
        """Неизвестный формат даёт UnsupportedFormatError."""
        with pytest.raises(UnsupportedFormatError):
            ResizeParams.from_form({"format": "avif"})

    def test_edit_from_form(self):
        """Правка: поворот, отражения и обрезка."""
        params = EditParams.from_form(
            {
                "rotate": "90",
                "flipH": True,
                "flipV": "false",
                "crop": {"left": 0, "top": 0, "width": 10, "height": 10},
            }
        )

        assert params.rotate == 90.0
        assert params.flip_horizontal is True
        assert params.flip_vertical is False
        assert params.crop == CropBox(0, 0, 10, 10)
        assert params.quality == 90

    def test_preview_keeps_missing_dimensions(self):
        """В предпросмотре отсутствующие размеры остаются None."""
        params = PreviewParams.from_form({"width": "200"})
        assert params.width == 200
        assert params.height is None
