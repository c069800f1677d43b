"""Настройка логирования для приложений, встраивающих библиотеку.

Сама библиотека при импорте обработчики не добавляет: каждый модуль пишет
в `logging.getLogger(__name__)`, а хост-приложение вызывает `setup_logging`.
"""
from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

from enhancer.config import CONSOLE_DATE_FORMAT, CONSOLE_LOG_FORMAT, LOGGER_NAME, NOISY_LOGGERS


def setup_logging(level: int = logging.INFO, stream: Optional[TextIO] = None) -> logging.Logger:
    """Настраивает консольный вывод логгера пакета `enhancer`.

    Повторный вызов заменяет прежний обработчик, а не добавляет второй.
    Логгеры плагинов Pillow приглушаются до WARNING.

    Args:
        level: Минимальный уровень сообщений пакета.
        stream: Поток вывода (по умолчанию `sys.stdout`).

    Returns:
        Настроенный логгер пакета.
    """
    # Pillow пишет DEBUG на каждый чанк PNG
    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_LOG_FORMAT, datefmt=CONSOLE_DATE_FORMAT))
    logger.addHandler(console_handler)
    logger.propagate = False

    logger.debug("Logging initialized at level %s", logging.getLevelName(level))
    return logger
