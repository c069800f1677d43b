"""Конвейер фильтров и стадия резкости.

Порядок стадий фиксирован и описан декларативно в `FILTER_ORDER`:
яркость -> контраст -> насыщенность -> размытие. Порядок значим:
контраст после яркости и насыщенность после контраста дают иной результат,
чем любая перестановка.

Округление: все стадии считают во float64 и обрезают значения в [0, 255]
после каждой стадии; в uint8 результат переводится один раз в конце
(`np.rint`, round-half-to-even). Стадия резкости округляет так же.
"""
from __future__ import annotations

import logging
import math
import time
from typing import Callable, Dict, Sequence, Tuple

import numpy as np

from enhancer.config import CONTRAST_PIVOT, GAUSSIAN_TRUNCATE, LUMA_WEIGHTS
from enhancer.models.image_model import ImageBuffer
from enhancer.models.params_model import EnhancementParams

logger = logging.getLogger(__name__)

FILTER_ORDER: Tuple[str, ...] = ("brightness", "contrast", "saturation", "blur")

# Стадия -> (поле параметров, нейтральное значение)
_STAGE_PARAMS: Dict[str, Tuple[str, float]] = {
    "brightness": ("brightness", 100.0),
    "contrast": ("contrast", 100.0),
    "saturation": ("saturation", 100.0),
    "blur": ("blur_radius", 0.0),
}


def _clip(arr: np.ndarray) -> np.ndarray:
    return np.clip(arr, 0.0, 255.0)


def _to_uint8(arr: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(arr), 0, 255).astype(np.uint8)


def gaussian_kernel(sigma: float, truncate: float = GAUSSIAN_TRUNCATE) -> np.ndarray:
    """Нормированное одномерное ядро Гаусса длины 2*ceil(truncate*sigma)+1."""
    if sigma <= 0:
        return np.ones(1, dtype=np.float64)
    half = max(1, int(math.ceil(truncate * sigma)))
    x = np.arange(-half, half + 1, dtype=np.float64)
    kernel = np.exp(-(x * x) / (2.0 * sigma * sigma))
    return kernel / kernel.sum()


class ProcessService:
    # ---------- Попиксельные стадии (float64, RGBA) ----------
    def adjust_brightness(self, arr: np.ndarray, percent: float) -> np.ndarray:
        """RGB * percent/100, альфа не меняется."""
        out = arr.copy()
        out[..., :3] = _clip(arr[..., :3] * (percent / 100.0))
        return out

    def adjust_contrast(self, arr: np.ndarray, percent: float) -> np.ndarray:
        """(c - 128) * percent/100 + 128 для каждого канала RGB."""
        out = arr.copy()
        out[..., :3] = _clip((arr[..., :3] - CONTRAST_PIVOT) * (percent / 100.0) + CONTRAST_PIVOT)
        return out

    def adjust_saturation(self, arr: np.ndarray, percent: float) -> np.ndarray:
        """Смешивание с яркостью L = 0.299R + 0.587G + 0.114B."""
        wr, wg, wb = LUMA_WEIGHTS
        rgb = arr[..., :3]
        luma = (wr * rgb[..., 0] + wg * rgb[..., 1] + wb * rgb[..., 2])[..., np.newaxis]
        out = arr.copy()
        out[..., :3] = _clip(luma + (rgb - luma) * (percent / 100.0))
        return out

    # ---------- Окрестностная стадия ----------
    def gaussian_blur(self, arr: np.ndarray, radius: float) -> np.ndarray:
        """Гауссово размытие (sigma = radius) по всем четырём каналам.

        Разделимая свёртка: сначала по строкам, затем по столбцам, векторизованно
        через сдвиги. Края дополняются ближайшим пикселем (clamp-to-edge).
        Цвет размывается в предумноженном виде (RGB * alpha), поэтому цвет
        прозрачных пикселей не просачивается в видимые края.
        """
        if radius <= 0:
            return arr.copy()
        kernel = gaussian_kernel(radius)
        half = kernel.size // 2
        h, w = arr.shape[:2]

        coverage = arr[..., 3:4] / 255.0
        premultiplied = arr.copy()
        premultiplied[..., :3] = arr[..., :3] * coverage

        p = np.pad(premultiplied, ((0, 0), (half, half), (0, 0)), mode="edge")
        rows = np.zeros_like(arr, dtype=np.float64)
        for i, weight in enumerate(kernel):
            rows += weight * p[:, i:i + w]

        p = np.pad(rows, ((half, half), (0, 0), (0, 0)), mode="edge")
        out = np.zeros_like(arr, dtype=np.float64)
        for i, weight in enumerate(kernel):
            out += weight * p[i:i + h, :]

        blurred_coverage = out[..., 3:4] / 255.0
        rgb = np.zeros_like(out[..., :3])
        np.divide(out[..., :3], blurred_coverage, out=rgb, where=blurred_coverage > 0)
        out[..., :3] = rgb
        return _clip(out)

    # ---------- Конвейер ----------
    def _stage(self, name: str) -> Callable[[np.ndarray, float], np.ndarray]:
        stages: Dict[str, Callable[[np.ndarray, float], np.ndarray]] = {
            "brightness": self.adjust_brightness,
            "contrast": self.adjust_contrast,
            "saturation": self.adjust_saturation,
            "blur": self.gaussian_blur,
        }
        try:
            return stages[name]
        except KeyError:
            raise ValueError(f"Неизвестная стадия фильтра: {name!r}") from None

    def apply_filters(
        self,
        buffer: ImageBuffer,
        params: EnhancementParams,
        order: Sequence[str] = FILTER_ORDER,
    ) -> ImageBuffer:
        """Применяет стадии в порядке `order` и возвращает новый буфер.

        Стадия с нейтральным значением параметра пропускается целиком
        (в частности, при blur_radius == 0 ядро не строится вовсе).
        `order` отличается от `FILTER_ORDER` только в тестовых сценариях.
        """
        arr = buffer.pixels.astype(np.float64)
        applied = []
        for name in order:
            stage = self._stage(name)
            field_name, neutral = _STAGE_PARAMS[name]
            value = getattr(params, field_name)
            if value == neutral:
                continue
            arr = stage(arr, value)
            applied.append(name)
        if not applied:
            return ImageBuffer.from_array(buffer.pixels)
        logger.debug("Applied filters %s to %dx%d", applied, buffer.width, buffer.height)
        return ImageBuffer.from_array(_to_uint8(arr))

    # ---------- Резкость ----------
    def composite_over(self, dst: np.ndarray, src: np.ndarray, alpha: float) -> np.ndarray:
        """Накладывает слой `src` на `dst` с коэффициентом `alpha` (RGB).

        Закон смешивания: out = src*alpha + dst*(1 - alpha). Вклад каждого слоя
        сохраняется в 8-битном диапазоне до суммирования, как на поверхности
        рисования: при alpha > 1 вклад `dst` отрицателен и обнуляется, а вклад
        `src` насыщается на 255. Альфа-канал берётся из `dst`.
        """
        src_term = _clip(src[..., :3].astype(np.float64) * alpha)
        dst_term = _clip(dst[..., :3].astype(np.float64) * (1.0 - alpha))
        out = dst.astype(np.float64)
        out[..., :3] = _clip(src_term + dst_term)
        return _to_uint8(out)

    def sharpen(self, buffer: ImageBuffer, amount: float) -> ImageBuffer:
        """Резкость: буфер накладывается сам на себя с alpha = 1 + amount/100.

        Это не маска нерезкости: видимый эффект целиком даёт насыщение
        вклада слоя при alpha > 1. При amount == 0 возвращается копия буфера.
        """
        if amount <= 0:
            return ImageBuffer.from_array(buffer.pixels)
        alpha = 1.0 + amount / 100.0
        layer = buffer.copy_pixels()  # второй слой с теми же пикселями
        return ImageBuffer.from_array(self.composite_over(buffer.pixels, layer, alpha))

    def render(self, buffer: ImageBuffer, params: EnhancementParams) -> ImageBuffer:
        """Полный проход: фильтры, затем (если sharpness > 0) резкость."""
        started = time.perf_counter()
        filtered = self.apply_filters(buffer, params)
        result = self.sharpen(filtered, params.sharpness) if params.sharpness > 0 else filtered
        logger.debug(
            "Rendered %dx%d with %s in %.1f ms",
            buffer.width, buffer.height, params.as_dict(), (time.perf_counter() - started) * 1000,
        )
        return result
