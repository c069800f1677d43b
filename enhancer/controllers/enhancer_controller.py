"""Контроллер конвейера: состояние одного загруженного изображения и рендеринг.

SOLID:
- SRP: класс хранит состояние сессии (исходник, параметры, результат) и
  оркестрирует сервисы; арифметики над пикселями здесь нет.
- DIP: сервисы передаются снаружи; по умолчанию создаются стандартные.
Clean Code:
- Перерисовка по «грязному» флагу: `render()` идемпотентен.
- UI подписывается на события через `subscribe`, а не читает поля напрямую.

Состояния: NO_IMAGE -> LOADED -> RENDERING -> RENDERED; любое изменение
параметров снова ведёт в RENDERING, сброс возвращает в LOADED.
"""
from __future__ import annotations

import enum
import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from enhancer.config import DEFAULT_EXPORT_FORMAT
from enhancer.models.errors import EncodeError
from enhancer.models.image_model import ImageBuffer, RenderResult
from enhancer.models.params_model import EnhancementParams
from enhancer.services.export_service import ExportService
from enhancer.services.image_service import ImageService
from enhancer.services.process_service import ProcessService

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]

EVENTS = ("image_loaded", "params_changed", "render_started", "rendered", "render_failed", "reset")


class PipelineState(enum.Enum):
    NO_IMAGE = "no_image"
    LOADED = "loaded"
    RENDERING = "rendering"
    RENDERED = "rendered"


@dataclass
class EnhancerController:
    """Связывает внешний UI с сервисами декодирования, обработки и экспорта.

    Ответственности:
    - Загрузка нового изображения (`load_image`) с полной заменой прежнего состояния.
    - Приём параметров (`set_param`, `set_params`, `reset_params`) и перерисовка.
    - Порядок публикации last-write-wins для рендеров в фоне (`render_async`).
    - Экспорт последнего результата (`export_image`).

    Если задан `executor`, автоматические перерисовки уходят в него.
    При `auto_render=False` перерисовка выполняется только явным `render()`.
    """
    image_service: ImageService = field(default_factory=ImageService)
    process_service: ProcessService = field(default_factory=ProcessService)
    export_service: ExportService = field(default_factory=ExportService)
    executor: Optional[Executor] = None
    auto_render: bool = True

    _source: Optional[ImageBuffer] = field(default=None, init=False, repr=False)
    _params: EnhancementParams = field(default_factory=EnhancementParams, init=False)
    _result: Optional[RenderResult] = field(default=None, init=False, repr=False)
    _state: PipelineState = field(default=PipelineState.NO_IMAGE, init=False)
    _dirty: bool = field(default=False, init=False)
    _generation: int = field(default=0, init=False)  # последний запрошенный рендер
    _published: int = field(default=0, init=False)   # последний показанный рендер
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)
    _listeners: Dict[str, List[Listener]] = field(
        default_factory=lambda: {name: [] for name in EVENTS}, init=False, repr=False
    )

    # ---- Observers ----
    def subscribe(self, event: str, callback: Listener) -> None:
        """Регистрирует обработчик события (см. `EVENTS`)."""
        self._check_event(event)
        self._listeners[event].append(callback)

    def unsubscribe(self, event: str, callback: Listener) -> None:
        self._check_event(event)
        if callback in self._listeners[event]:
            self._listeners[event].remove(callback)

    def _check_event(self, event: str) -> None:
        if event not in self._listeners:
            raise ValueError(f"Неизвестное событие: {event!r}")

    def _emit(self, event: str, payload: Any) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception:
                # Ошибка подписчика не должна ломать конвейер
                logger.exception("Listener for %r failed", event)

    # ---- State ----
    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def params(self) -> EnhancementParams:
        return self._params

    @property
    def source(self) -> Optional[ImageBuffer]:
        return self._source

    @property
    def result(self) -> Optional[RenderResult]:
        return self._result

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def export_filename(self) -> str:
        return self.export_service.filename(DEFAULT_EXPORT_FORMAT)

    # ---- Commands ----
    def load_image(self, data: bytes) -> Optional[RenderResult]:
        """Загружает новое изображение и сбрасывает параметры к значениям по умолчанию.

        При `DecodeError` прежнее изображение, параметры и результат не меняются.
        """
        buffer = self.image_service.decode(data)
        return self._install_source(buffer)

    def load_file(self, file_path: str | Path) -> Optional[RenderResult]:
        buffer = self.image_service.load_image(file_path)
        return self._install_source(buffer)

    def _install_source(self, buffer: ImageBuffer) -> Optional[RenderResult]:
        with self._lock:
            # Прежний буфер и результат отпускаются целиком
            self._source = buffer
            self._result = None
            self._params = EnhancementParams()
            self._state = PipelineState.LOADED
            self._dirty = True
            self._generation += 1
        logger.info("Loaded image %dx%d", buffer.width, buffer.height)
        self._emit("image_loaded", buffer)
        return self._request_render()

    def set_param(self, name: str, value: float) -> Optional[RenderResult]:
        """Меняет один параметр (с обрезкой в диапазон) и запускает перерисовку."""
        with self._lock:
            updated = self._params.with_value(name, value)
            changed = updated != self._params
            self._params = updated
            if changed and self._source is not None:
                self._dirty = True
        if changed:
            self._emit("params_changed", updated)
        return self._request_render()

    def set_params(self, **values: float) -> Optional[RenderResult]:
        """Пакетное изменение нескольких параметров с одной перерисовкой."""
        with self._lock:
            updated = self._params.with_values(**values)
            changed = updated != self._params
            self._params = updated
            if changed and self._source is not None:
                self._dirty = True
        if changed:
            self._emit("params_changed", updated)
        return self._request_render()

    def reset_params(self) -> Optional[RenderResult]:
        """Возвращает параметры к (100, 100, 100, 0, 0)."""
        with self._lock:
            self._params = EnhancementParams()
            if self._source is not None:
                self._state = PipelineState.LOADED
                self._dirty = True
        self._emit("reset", self._params)
        return self._request_render()

    def close(self) -> None:
        """Отпускает изображение и результат; контроллер возвращается в NO_IMAGE."""
        with self._lock:
            self._source = None
            self._result = None
            self._params = EnhancementParams()
            self._state = PipelineState.NO_IMAGE
            self._dirty = False
            self._generation += 1

    # ---- Rendering ----
    def _request_render(self) -> Optional[RenderResult]:
        if not self.auto_render:
            return self._result
        if self.executor is not None:
            self.render_async(self.executor)
            return self._result
        return self.render()

    def _begin_render(self) -> Optional[Tuple[int, ImageBuffer, EnhancementParams]]:
        with self._lock:
            if self._source is None or not self._dirty:
                return None
            self._generation += 1
            self._dirty = False
            self._state = PipelineState.RENDERING
            job = (self._generation, self._source, self._params)
        self._emit("render_started", job[2])
        return job

    def _run(self, generation: int, source: ImageBuffer, params: EnhancementParams) -> Optional[RenderResult]:
        try:
            buffer = self.process_service.render(source, params)
        except Exception as exc:
            with self._lock:
                if generation == self._generation:
                    self._dirty = True
                    self._state = PipelineState.LOADED
            logger.error("Render #%d failed: %s", generation, exc)
            self._emit("render_failed", exc)
            raise
        return self._publish(generation, source, params, buffer)

    def _publish(
        self, generation: int, source: ImageBuffer, params: EnhancementParams, buffer: ImageBuffer
    ) -> Optional[RenderResult]:
        with self._lock:
            stale = (
                source is not self._source
                or generation != self._generation
                or generation <= self._published
            )
            if stale:
                logger.debug(
                    "Discarding stale render #%d (latest requested #%d)", generation, self._generation
                )
                return None
            result = RenderResult(buffer=buffer, params=params, generation=generation)
            self._result = result
            self._published = generation
            self._state = PipelineState.RENDERED
        self._emit("rendered", result)
        return result

    def render(self) -> Optional[RenderResult]:
        """Синхронная перерисовка; без изменений возвращает закэшированный результат."""
        job = self._begin_render()
        if job is None:
            return self._result
        return self._run(*job)

    def render_async(self, executor: Executor) -> Future:
        """Ставит перерисовку в `executor`.

        Результат устаревшего рендера (если после него запрошен более новый)
        не публикуется, и future завершается значением `None`.
        """
        job = self._begin_render()
        if job is None:
            done: Future = Future()
            done.set_result(self._result)
            return done
        try:
            return executor.submit(self._run, *job)
        except Exception as exc:
            # Задача не поставлена: возвращаем «грязное» состояние, чтобы следующий render() её повторил
            with self._lock:
                if job[0] == self._generation:
                    self._dirty = True
                    self._state = PipelineState.RENDERED if self._result is not None else PipelineState.LOADED
            logger.error("Render #%d could not be scheduled: %s", job[0], exc)
            self._emit("render_failed", exc)
            raise

    # ---- Export ----
    def export_image(self, fmt: str = DEFAULT_EXPORT_FORMAT) -> bytes:
        """Возвращает байты последнего результата в формате без потерь.

        Raises:
            EncodeError: если изображение не загружено или кодирование не удалось.
        """
        with self._lock:
            if self._source is None:
                raise EncodeError("Нет загруженного изображения для экспорта")
            result = self._result if not self._dirty else None
        if result is None:
            # Фоновый рендер ещё не готов: считаем синхронно, он вытеснит фоновый
            with self._lock:
                self._dirty = True
            result = self.render()
        if result is None:
            raise EncodeError("Нет готового результата для экспорта")

        pil_fmt = self.export_service.check_format(fmt)
        with self._lock:
            if result.encoded is not None and result.export_format == pil_fmt:
                return result.encoded
        data = self.export_service.export(result.buffer, pil_fmt)
        with self._lock:
            result.encoded = data
            result.export_format = pil_fmt
        return data
