"""
Модуль конфигурации и моделей данных
"""

import logging
import math
import platform
from dataclasses import dataclass, field, asdict
from enum import Enum
from ipaddress import IPv4Address
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Any, Optional, List, Mapping

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)


class ConcurrencyMode(Enum):
    """Трактовка лимита параллельности"""
    # Не более N одновременно работающих ping
    BOUNDED = "bounded"
    # Все ping запускаются сразу, N - только размер очереди результатов
    BUFFERED = "buffered"


@dataclass(frozen=True)
class PingProfile:
    """Параметры системной команды ping для конкретной ОС"""
    name: str
    count_flag: str
    timeout_flag: str
    timeout_in_ms: bool
    binary: str = "ping"

    def timeout_value(self, timeout: float) -> str:
        """Значение таймаута в единицах, которые ожидает ping"""
        if self.timeout_in_ms:
            return str(int(timeout * 1000))
        return str(max(1, math.ceil(timeout)))

    def command(self, address: str, timeout: float) -> List[str]:
        """Команда для одной попытки ping"""
        return [
            self.binary,
            self.count_flag, "1",
            self.timeout_flag, self.timeout_value(timeout),
            address
        ]


PLATFORM_PROFILES: Mapping[str, PingProfile] = MappingProxyType({
    "windows": PingProfile("windows", "-n", "-w", timeout_in_ms=True),
    "linux": PingProfile("linux", "-c", "-W", timeout_in_ms=False),
    # BSD ping на macOS принимает -W в миллисекундах
    "darwin": PingProfile("darwin", "-c", "-W", timeout_in_ms=True),
})


def select_ping_profile(system: Optional[str] = None) -> PingProfile:
    """
    Выбор параметров ping по операционной системе

    Args:
        system: Имя ОС (по умолчанию platform.system())

    Returns:
        Профиль команды ping; для неизвестных ОС используется профиль linux
    """
    system = (system or platform.system()).lower()
    profile = PLATFORM_PROFILES.get(system)
    if profile is None:
        logger.debug(f"ОС '{system}' не описана, используются параметры ping для linux")
        profile = PLATFORM_PROFILES["linux"]
    return profile


@dataclass(frozen=True)
class SweepConfig:
    """Конфигурация сканирования с валидацией"""

    network: str = ""
    concurrency_limit: int = 10
    verbose: bool = False
    only_ips: bool = False
    output_file: Optional[str] = None

    # Параметры ping
    timeout: float = 1.0
    concurrency_mode: ConcurrencyMode = ConcurrencyMode.BOUNDED

    # Диагностика
    log_level: str = "WARNING"
    log_file: Optional[str] = None
    color: bool = True

    def __post_init__(self):
        """Валидация значений после инициализации"""
        self._validate_values()

    def _validate_values(self):
        """Проверка корректности значений"""
        if isinstance(self.concurrency_limit, bool) or not isinstance(self.concurrency_limit, int):
            raise ConfigError(f"concurrency limit must be an integer, got {self.concurrency_limit!r}")
        if self.concurrency_limit <= 0:
            raise ConfigError("concurrency limit must be a positive number")

        if isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float)):
            raise ConfigError(f"timeout must be a number, got {self.timeout!r}")
        if not math.isfinite(self.timeout) or self.timeout <= 0:
            raise ConfigError("timeout must be a positive finite number")

        for name in ("verbose", "only_ips", "color"):
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise ConfigError(f"{name} must be true or false, got {value!r}")

        if not isinstance(self.concurrency_mode, ConcurrencyMode):
            raise ConfigError(f"unknown concurrency mode: {self.concurrency_mode!r}")

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if str(self.log_level).upper() not in valid_log_levels:
            raise ConfigError(f"log level must be one of: {valid_log_levels}")

    @property
    def condensed(self) -> bool:
        """Режим вывода только адресов"""
        return self.only_ips

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь"""
        data = asdict(self)
        data["concurrency_mode"] = self.concurrency_mode.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SweepConfig":
        """Создание из словаря"""
        data = dict(data)
        mode = data.get("concurrency_mode")
        if isinstance(mode, str):
            try:
                data["concurrency_mode"] = ConcurrencyMode(mode.lower())
            except ValueError:
                raise ConfigError(
                    f"unknown concurrency mode '{mode}', "
                    f"expected one of: {[m.value for m in ConcurrencyMode]}"
                ) from None

        return cls(**data)


class ConfigLoader:
    """Загрузчик конфигурации"""

    CONFIG_FILES = [
        "ping_sweeper.yaml",
        "config/ping_sweeper.yaml"
    ]

    DEFAULT_CONFIG = {
        "network": "",
        "concurrency_limit": 10,
        "verbose": False,
        "only_ips": False,
        "output_file": None,
        "timeout": 1.0,
        "concurrency_mode": "bounded",
        "log_level": "WARNING",
        "log_file": None,
        "color": True
    }

    @classmethod
    def load(cls, config_path: Optional[str] = None,
             overrides: Optional[Dict[str, Any]] = None) -> SweepConfig:
        """
        Загрузка конфигурации

        Значения по умолчанию перекрываются YAML-файлом, а затем
        параметрами командной строки (None в overrides игнорируется).

        Args:
            config_path: Путь к файлу конфигурации (опционально)
            overrides: Значения из командной строки

        Returns:
            Объект конфигурации
        """
        config_dict = cls.DEFAULT_CONFIG.copy()

        found_config = cls._find_config_file(config_path)
        if found_config:
            config_dict.update(cls._load_config_file(found_config))
            logger.info(f"Загружена конфигурация из {found_config}")
        else:
            logger.debug("Конфигурационный файл не найден, используются значения по умолчанию")

        for key, value in (overrides or {}).items():
            if value is not None:
                config_dict[key] = value

        return SweepConfig.from_dict(config_dict)

    @classmethod
    def _find_config_file(cls, config_path: Optional[str] = None) -> Optional[Path]:
        """Поиск файла конфигурации"""
        if config_path:
            path = Path(config_path)
            if not path.is_file():
                raise ConfigError(f"config file not found: {config_path}")
            return path

        for config_file in cls.CONFIG_FILES:
            path = Path(config_file)
            if path.is_file():
                return path

        return None

    @classmethod
    def _load_config_file(cls, filepath: Path) -> Dict[str, Any]:
        """Загрузка конфигурации из YAML файла"""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot read config file {filepath}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"config file {filepath} must contain a mapping")

        known = {}
        for key, value in data.items():
            if key in cls.DEFAULT_CONFIG:
                known[key] = value
            else:
                logger.warning(f"Неизвестный параметр '{key}' в {filepath} пропущен")
        return known


@dataclass(frozen=True)
class ProbeResult:
    """Результат проверки одного адреса"""
    address: IPv4Address
    message: str = ""
    is_up: bool = False


@dataclass
class SweepSummary:
    """Сводка по сканированию"""
    network: str = ""
    dispatched: int = 0
    received: int = 0
    up_hosts: List[IPv4Address] = field(default_factory=list)
    down_count: int = 0
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    @property
    def found_up(self) -> bool:
        """Найден ли хотя бы один доступный хост"""
        return bool(self.up_hosts)

    @property
    def up_count(self) -> int:
        return len(self.up_hosts)

    @property
    def duration(self) -> float:
        """Длительность сканирования в секундах"""
        if self.start_time is None or self.end_time is None:
            return 0.0
        return self.end_time - self.start_time
