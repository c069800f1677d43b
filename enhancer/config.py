"""Константы приложения: идентичность, экспорт, диапазоны параметров.

Единственное место, где задаются «магические» числа конвейера.
Файла настроек нет: состояние живёт только в пределах одной сессии.
"""
from __future__ import annotations

from typing import Dict, Tuple

LOGGER_NAME = "enhancer"

# Экспорт
EXPORT_BASENAME = "enhanced-image"
DEFAULT_EXPORT_FORMAT = "PNG"
# Только форматы без потерь: скачанный файл обязан совпадать с превью.
LOSSLESS_FORMATS: Dict[str, str] = {
    "PNG": "png",
    "TIFF": "tiff",
}
FORMAT_ALIASES: Dict[str, str] = {
    "TIF": "TIFF",
}

# Параметры: имя -> (минимум, максимум, значение по умолчанию)
PARAM_RANGES: Dict[str, Tuple[float, float, float]] = {
    "brightness": (0.0, 200.0, 100.0),   # %
    "contrast": (0.0, 200.0, 100.0),     # %
    "saturation": (0.0, 200.0, 100.0),   # %
    "blur_radius": (0.0, 10.0, 0.0),     # px
    "sharpness": (0.0, 100.0, 0.0),
}
PARAM_ALIASES: Dict[str, str] = {
    "blurRadius": "blur_radius",
    "blur": "blur_radius",
}

# Алгоритмы
LUMA_WEIGHTS: Tuple[float, float, float] = (0.299, 0.587, 0.114)
CONTRAST_PIVOT = 128.0
GAUSSIAN_TRUNCATE = 3.0  # полуширина ядра = ceil(truncate * sigma)

# Logging
CONSOLE_LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
CONSOLE_DATE_FORMAT = "%H:%M:%S"
NOISY_LOGGERS = ("PIL", "PIL.PngImagePlugin", "PIL.TiffImagePlugin")


def export_filename(fmt: str = DEFAULT_EXPORT_FORMAT) -> str:
    """Имя файла для скачивания, например `enhanced-image.png`."""
    key = FORMAT_ALIASES.get(fmt.upper(), fmt.upper())
    ext = LOSSLESS_FORMATS.get(key, key.lower())
    return f"{EXPORT_BASENAME}.{ext}"
