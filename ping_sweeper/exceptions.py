"""
Исключения сканера подсети
"""


class SweepError(Exception):
    """Базовая ошибка сканера"""


class ConfigError(SweepError, ValueError):
    """Некорректная конфигурация (обнаруживается до начала сканирования)"""


class InvalidRangeError(ConfigError):
    """Строка не является корректной записью CIDR"""


class UnsupportedFamilyError(ConfigError):
    """Сеть не относится к IPv4"""


class OutputFileError(SweepError):
    """Ошибка при работе с файлом для сохранения адресов"""

    def __init__(self, path: str, reason: Exception, action: str = "open"):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not {action} output file '{path}': {reason}")
