"""Экспорт итогового буфера в файл без потерь.

Принципы:
- SRP: только сериализация и запись результата.
- Скачанный файл обязан побайтно совпадать с последним отрендеренным результатом,
  поэтому допускаются лишь форматы без потерь.
"""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from enhancer.config import DEFAULT_EXPORT_FORMAT, LOSSLESS_FORMATS, export_filename
from enhancer.models.errors import EncodeError
from enhancer.models.image_model import ImageBuffer
from enhancer.services.image_service import ImageService, normalize_format

logger = logging.getLogger(__name__)


class ExportService:
    def __init__(self, image_service: Optional[ImageService] = None) -> None:
        self._image_service = image_service or ImageService()

    def check_format(self, fmt: str) -> str:
        """Возвращает имя формата Pillow или бросает `EncodeError` для форматов с потерями."""
        pil_fmt = normalize_format(fmt)
        if pil_fmt not in LOSSLESS_FORMATS:
            raise EncodeError(
                f"Формат {fmt} не поддерживается для экспорта; доступны: {', '.join(LOSSLESS_FORMATS)}"
            )
        return pil_fmt

    def export(self, buffer: ImageBuffer, fmt: str = DEFAULT_EXPORT_FORMAT) -> bytes:
        """Сериализует буфер в PNG (по умолчанию) или несжатый TIFF."""
        pil_fmt = self.check_format(fmt)
        save_kwargs = {"optimize": False} if pil_fmt == "PNG" else {"compression": "raw"}
        data = self._image_service.encode(buffer, pil_fmt, **save_kwargs)
        logger.debug("Exported %dx%d as %s (%d bytes)", buffer.width, buffer.height, pil_fmt, len(data))
        return data

    def filename(self, fmt: str = DEFAULT_EXPORT_FORMAT) -> str:
        return export_filename(self.check_format(fmt))

    def save(self, buffer: ImageBuffer, path: str | Path, fmt: str = DEFAULT_EXPORT_FORMAT) -> Path:
        """Пишет экспорт на диск атомарно: временный файл, затем `os.replace`.

        Raises:
            EncodeError: если кодирование или запись не удались; частичного файла не остаётся.
        """
        target = Path(path)
        data = self.export(buffer, fmt)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=".export-", dir=target.parent)
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, target)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise EncodeError(f"Не удалось записать {target}: {exc}") from exc
        logger.info("Saved enhanced image to %s", target)
        return target
