"""
Модуль для разбора CIDR и перечисления адресов подсети
"""

import ipaddress
import logging
import re
from typing import Iterator

from .exceptions import InvalidRangeError, UnsupportedFamilyError

logger = logging.getLogger(__name__)

# Диапазоны больше этого размера сканируются, но с предупреждением
LARGE_RANGE_THRESHOLD = 65536


class IPParser:
    """Парсер IPv4 подсетей"""

    @staticmethod
    def parse_network(text: str) -> ipaddress.IPv4Network:
        """
        Разбор строки в нотации CIDR

        Биты хоста допускаются (10.0.0.5/30 -> 10.0.0.4/30), маска
        может быть задана как префикс или в десятичном виде.

        Args:
            text: Строка вида 192.168.1.0/24

        Returns:
            IPv4 сеть

        Raises:
            InvalidRangeError: строка не является CIDR
            UnsupportedFamilyError: сеть не IPv4
        """
        if not isinstance(text, str):
            raise InvalidRangeError(f"invalid CIDR notation: {text!r}")

        # Удаляем возможные пробелы вокруг /
        line = re.sub(r'\s*/\s*', '/', text.strip())

        if line.count('/') != 1:
            raise InvalidRangeError(f"invalid CIDR notation: '{text}'")

        try:
            network = ipaddress.ip_network(line, strict=False)
        except ValueError as e:
            raise InvalidRangeError(f"invalid network address or CIDR notation '{text}': {e}") from e

        if not isinstance(network, ipaddress.IPv4Network):
            raise UnsupportedFamilyError(
                f"only IPv4 networks are supported for iteration, got '{text}'"
            )

        return network

    @staticmethod
    def count_hosts(network: ipaddress.IPv4Network) -> int:
        """Количество адресов без адреса сети и широковещательного"""
        return max(0, network.num_addresses - 2)

    @classmethod
    def iter_hosts(cls, network: ipaddress.IPv4Network) -> Iterator[ipaddress.IPv4Address]:
        """
        Адреса хостов подсети по возрастанию

        В отличие от network.hosts() для /31 и /32 ничего не возвращает.

        Args:
            network: IPv4 сеть

        Returns:
            Генератор адресов (однократный проход)
        """
        host_count = cls.count_hosts(network)
        if network.num_addresses > LARGE_RANGE_THRESHOLD:
            logger.warning(f"Большой диапазон {network} ({host_count} адресов), "
                           f"сканирование займет много времени")

        first = int(network.network_address) + 1
        for value in range(first, first + host_count):
            yield ipaddress.IPv4Address(value)
