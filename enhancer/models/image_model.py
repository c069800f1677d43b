"""Модели данных для изображений.

Принципы:
- SRP: только структура данных, без логики обработки.
- Чистый код: неизменяемость (`frozen=True`, read-only массив) для предсказуемости.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np
from PIL import Image

from enhancer.models.params_model import EnhancementParams

RGBA = Tuple[int, int, int, int]


@dataclass(frozen=True, eq=False)
class ImageBuffer:
    """Неизменяемая сетка RGBA-пикселей одного изображения.

    Fields:
        width: Ширина, px.
        height: Высота, px.
        pixels: Массив `uint8` формы (height, width, 4), только для чтения.
    """
    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Размеры должны быть положительными: {self.width}x{self.height}")
        arr = self.pixels
        if not isinstance(arr, np.ndarray) or arr.dtype != np.uint8:
            raise ValueError("Пиксели должны быть массивом numpy.uint8")
        if arr.shape != (self.height, self.width, 4):
            raise ValueError(
                f"Ожидалась форма {(self.height, self.width, 4)}, получено {arr.shape}"
            )
        # Свой непрерывный read-only экземпляр: никто снаружи не изменит буфер.
        own = np.ascontiguousarray(arr).copy()
        own.setflags(write=False)
        object.__setattr__(self, "pixels", own)

    # ---- Constructors ----
    @classmethod
    def from_array(cls, array: np.ndarray) -> "ImageBuffer":
        """Создаёт буфер из массива (H, W, 4); float-значения обрезаются и округляются."""
        arr = np.asarray(array)
        if arr.ndim != 3 or arr.shape[2] != 4:
            raise ValueError(f"Ожидался массив (H, W, 4), получено {arr.shape}")
        if arr.dtype != np.uint8:
            arr = np.clip(np.rint(arr), 0, 255).astype(np.uint8)
        height, width = arr.shape[:2]
        return cls(width=width, height=height, pixels=arr)

    @classmethod
    def from_pixels(cls, width: int, height: int, pixels: Iterable[RGBA]) -> "ImageBuffer":
        """Создаёт буфер из плоского списка RGBA-кортежей (построчно)."""
        flat = np.array(list(pixels), dtype=np.int64)
        if flat.shape != (width * height, 4):
            raise ValueError(f"Нужно {width * height} пикселей RGBA, получено {flat.shape}")
        if flat.min() < 0 or flat.max() > 255:
            raise ValueError("Значения каналов должны лежать в [0, 255]")
        return cls(width=width, height=height, pixels=flat.astype(np.uint8).reshape(height, width, 4))

    @classmethod
    def from_pil(cls, image: Image.Image) -> "ImageBuffer":
        rgba = image if image.mode == "RGBA" else image.convert("RGBA")
        return cls.from_array(np.asarray(rgba, dtype=np.uint8))

    # ---- Access ----
    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def pixel(self, x: int, y: int) -> RGBA:
        """Возвращает RGBA пикселя (x, y)."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Пиксель ({x}, {y}) вне {self.width}x{self.height}")
        r, g, b, a = (int(v) for v in self.pixels[y, x])
        return r, g, b, a

    def copy_pixels(self) -> np.ndarray:
        """Изменяемая копия пикселей для вызывающего кода."""
        return self.pixels.copy()

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels)

    def same_pixels(self, other: "ImageBuffer") -> bool:
        return self.size == other.size and np.array_equal(self.pixels, other.pixels)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImageBuffer):
            return NotImplemented
        return self.same_pixels(other)

    __hash__ = None

    def __repr__(self) -> str:
        return f"ImageBuffer({self.width}x{self.height})"


@dataclass
class RenderResult:
    """Результат одного прохода рендеринга.

    Fields:
        buffer: Итоговый буфер.
        params: Параметры, с которыми он посчитан.
        generation: Порядковый номер рендера (для last-write-wins).
        encoded: Закодированные байты экспорта; заполняются при первом экспорте.
        export_format: Формат, в котором закодированы `encoded`.
    """
    buffer: ImageBuffer
    params: EnhancementParams
    generation: int
    encoded: Optional[bytes] = None
    export_format: Optional[str] = None
