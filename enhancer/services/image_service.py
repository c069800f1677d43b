"""Декодирование и кодирование изображений в `ImageBuffer`.

Принципы:
- SRP: класс отвечает только за преобразование байтов <-> буфер.
- OCP: новые источники (файл, поток) добавляются отдельными методами поверх `decode`.
- Декодирование «всё или ничего»: частично прочитанный файл не даёт буфера.
"""
from __future__ import annotations

import logging
import time
from io import BytesIO
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from enhancer.config import DEFAULT_EXPORT_FORMAT, FORMAT_ALIASES
from enhancer.models.errors import DecodeError, EncodeError
from enhancer.models.image_model import ImageBuffer

logger = logging.getLogger(__name__)


def normalize_format(fmt: str) -> str:
    key = fmt.lstrip(".").upper()
    if key == "JPG":
        key = "JPEG"
    return FORMAT_ALIASES.get(key, key)


def _to_rgba(pil_image: Image.Image) -> Image.Image:
    """Приводит изображение к RGBA; 16-битные оттенки серого масштабируются в 8 бит.

    Pillow при `convert` обрезает значения I;16/I до 255 вместо масштабирования.
    """
    if pil_image.mode == "I" or pil_image.mode.startswith("I;16"):
        wide = np.asarray(pil_image).astype(np.int64)
        narrow = (np.clip(wide, 0, 65535) >> 8).astype(np.uint8)
        return Image.fromarray(narrow).convert("RGBA")
    return pil_image.convert("RGBA")


class ImageService:
    def decode(self, data: bytes) -> ImageBuffer:
        """Декодирует байты изображения в RGBA-буфер естественного размера.

        Args:
            data: Содержимое файла (PNG, JPEG, BMP, GIF, TIFF, WEBP...).

        Returns:
            `ImageBuffer` тех же размеров, что и исходник (без поворота по EXIF).

        Raises:
            DecodeError: если байты пусты, не распознаны или обрезаны.
        """
        if not data:
            raise DecodeError("Пустые данные изображения")

        started = time.perf_counter()
        try:
            with Image.open(BytesIO(data)) as pil_image:
                # load() читает файл целиком: ошибки обрезанных данных всплывают здесь
                pil_image.load()
                rgba = _to_rgba(pil_image)
        except UnidentifiedImageError as exc:
            raise DecodeError("Данные не являются изображением") from exc
        except Image.DecompressionBombError as exc:
            raise DecodeError(f"Изображение слишком велико: {exc}") from exc
        except (OSError, ValueError, SyntaxError, EOFError) as exc:
            raise DecodeError(f"Не удалось декодировать изображение: {exc}") from exc

        buffer = ImageBuffer.from_pil(rgba)
        logger.debug(
            "Decoded %dx%d image (%d bytes) in %.1f ms",
            buffer.width, buffer.height, len(data), (time.perf_counter() - started) * 1000,
        )
        return buffer

    def load_image(self, file_path: str | Path) -> ImageBuffer:
        """Загружает изображение с диска.

        Raises:
            FileNotFoundError: если путь не существует или не указывает на файл.
            DecodeError: если файл не распознан как изображение.
        """
        path = Path(file_path)
        if not path.exists() or not path.is_file():
            raise FileNotFoundError(f"Файл не найден: {path}")
        return self.decode(path.read_bytes())

    def encode(self, buffer: ImageBuffer, fmt: str = DEFAULT_EXPORT_FORMAT, **save_kwargs) -> bytes:
        """Кодирует буфер средствами Pillow.

        Raises:
            EncodeError: если формат неизвестен или кодировщик завершился с ошибкой.
        """
        pil_fmt = normalize_format(fmt)
        image = buffer.to_pil()
        if pil_fmt == "JPEG":
            # JPEG не хранит альфа-канал
            image = image.convert("RGB")
        out = BytesIO()
        try:
            image.save(out, format=pil_fmt, **save_kwargs)
        except KeyError as exc:
            raise EncodeError(f"Неизвестный формат: {fmt}") from exc
        except (OSError, ValueError) as exc:
            raise EncodeError(f"Не удалось закодировать изображение в {pil_fmt}: {exc}") from exc
        return out.getvalue()
