"""Исключения библиотеки.

Каждая ошибка наследует и `EnhancerError`, и ближайшее встроенное
исключение, чтобы вызывающий код мог ловить их привычным способом.
"""
from __future__ import annotations


class EnhancerError(Exception):
    """Базовая ошибка конвейера улучшения изображений."""


class DecodeError(EnhancerError, ValueError):
    """Входные байты не являются корректным изображением."""


class EncodeError(EnhancerError, RuntimeError):
    """Не удалось сериализовать буфер (формат, запись, отсутствие изображения)."""


class UnknownParameterError(EnhancerError, ValueError):
    """Имя параметра не входит в набор EnhancementParams."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Неизвестный параметр: {name!r}")
        self.name = name
