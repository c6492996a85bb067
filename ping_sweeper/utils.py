"""
Вспомогательные утилиты
"""

import logging
import shutil
import sys

from .config import SweepConfig, PingProfile

logger = logging.getLogger(__name__)


def setup_logging(config: SweepConfig):
    """
    Настройка логирования

    Консольный обработчик пишет в stderr: stdout занят результатами.

    Args:
        config: Конфигурация сканирования
    """
    # Уровень логирования
    log_level = getattr(logging, config.log_level.upper(), logging.WARNING)

    # Формат сообщений
    log_format = '%(asctime)s - %(levelname)s - %(message)s'
    date_format = '%Y-%m-%d %H:%M:%S'

    root_logger = logging.getLogger()

    # Удаляем обработчики, добавленные предыдущим вызовом
    for handler in list(root_logger.handlers):
        if getattr(handler, "_ping_sweeper", False):
            root_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(log_format, date_format)

    handlers = []

    # Консольный обработчик
    console_handler = logging.StreamHandler(sys.stderr)
    handlers.append(console_handler)

    # Файловый обработчик
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file, encoding='utf-8'))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        handler._ping_sweeper = True
        root_logger.addHandler(handler)

    root_logger.setLevel(log_level)

    # Отключаем логирование для некоторых библиотек
    logging.getLogger('asyncio').setLevel(logging.WARNING)


def validate_environment(profile: PingProfile) -> bool:
    """
    Проверка наличия команды ping

    Отсутствие ping не прерывает сканирование: каждая проверка
    вернет DOWN с описанием ошибки.

    Args:
        profile: Параметры ping для текущей ОС

    Returns:
        True если команда найдена
    """
    path = shutil.which(profile.binary)
    if path is None:
        logger.warning(f"Команда '{profile.binary}' не найдена, все хосты будут помечены как DOWN")
        return False

    logger.debug(f"ОС: {profile.name}, используется {path}")
    return True
