"""Набор параметров улучшения (яркость, контраст, насыщенность, размытие, резкость).

Принципы:
- SRP: хранит и нормализует значения, ничего не знает об алгоритмах.
- Значения вне диапазона не отвергаются, а обрезаются (как у слайдеров UI).
"""
from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, fields, replace
from numbers import Real
from typing import Dict

from enhancer.config import PARAM_ALIASES, PARAM_RANGES
from enhancer.models.errors import UnknownParameterError

logger = logging.getLogger(__name__)


def _clamp_value(name: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise TypeError(f"Параметр {name} должен быть числом, получено {type(value).__name__}")
    number = float(value)
    if math.isnan(number):
        raise ValueError(f"Параметр {name} не может быть NaN")
    low, high, _default = PARAM_RANGES[name]
    clamped = min(max(number, low), high)
    if clamped != number:
        logger.debug("Параметр %s=%s обрезан до %s", name, number, clamped)
    return clamped


def resolve_name(name: str) -> str:
    """Приводит имя (в т.ч. camelCase-алиас) к имени поля."""
    canonical = PARAM_ALIASES.get(name, name)
    if canonical not in PARAM_RANGES:
        raise UnknownParameterError(name)
    return canonical


@dataclass(frozen=True)
class EnhancementParams:
    """Пять независимых параметров конвейера; создаются уже обрезанными.

    Fields:
        brightness: Яркость, % (100 = без изменений), [0, 200].
        contrast: Контраст, % (100 = без изменений), [0, 200].
        saturation: Насыщенность, % (100 = без изменений), [0, 200].
        blur_radius: Радиус гауссова размытия, px (0 = выкл.), [0, 10].
        sharpness: Интенсивность резкости (0 = выкл.), [0, 100].
    """
    brightness: float = PARAM_RANGES["brightness"][2]
    contrast: float = PARAM_RANGES["contrast"][2]
    saturation: float = PARAM_RANGES["saturation"][2]
    blur_radius: float = PARAM_RANGES["blur_radius"][2]
    sharpness: float = PARAM_RANGES["sharpness"][2]

    def __post_init__(self) -> None:
        for f in fields(self):
            object.__setattr__(self, f.name, _clamp_value(f.name, getattr(self, f.name)))

    @classmethod
    def from_dict(cls, values: Dict[str, object]) -> "EnhancementParams":
        return cls().with_values(**values)

    def with_value(self, name: str, value: object) -> "EnhancementParams":
        """Копия с одним изменённым (и обрезанным) параметром."""
        return replace(self, **{resolve_name(name): value})

    def with_values(self, **values: object) -> "EnhancementParams":
        resolved = {resolve_name(name): value for name, value in values.items()}
        return replace(self, **resolved)

    @property
    def is_identity(self) -> bool:
        return self == EnhancementParams()

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)
