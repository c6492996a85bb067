"""
Модуль для вывода результатов сканирования
"""

import logging
import sys
import time
from enum import Enum
from ipaddress import IPv4Address
from pathlib import Path
from typing import List, Optional, TextIO

import colorama
from colorama import Fore, Style

from .config import SweepConfig, ProbeResult, SweepSummary
from .exceptions import OutputFileError
from .scanner import ResultChannel

logger = logging.getLogger(__name__)


class ReporterState(Enum):
    """Состояние обработчика результатов"""
    IDLE = "idle"
    DRAINING = "draining"
    FINALIZING = "finalizing"
    DONE = "done"


class ConsoleSink:
    """Вывод в консоль"""

    def __init__(self, stream: Optional[TextIO] = None, color: bool = False):
        self.stream = stream if stream is not None else sys.stdout
        self.color = color
        if color:
            colorama.just_fix_windows_console()

    def emit(self, line: str = ""):
        print(line, file=self.stream, flush=True)

    def emit_colored(self, line: str, color: str):
        if self.color:
            line = f"{color}{line}{Style.RESET_ALL}"
        self.emit(line)


class AddressFileSink:
    """Файл со списком доступных адресов, по одному на строку"""

    def __init__(self, path: str):
        self.path = Path(path)
        self.written = 0
        try:
            # Файл создается или очищается сразу
            self._file = open(self.path, 'w', encoding='utf-8')
        except OSError as e:
            raise OutputFileError(str(path), e) from e

    def write(self, address: IPv4Address):
        try:
            self._file.write(f"{address}\n")
            self._file.flush()
        except OSError as e:
            raise OutputFileError(str(self.path), e, action="write to") from e
        self.written += 1

    def close(self):
        if not self._file.closed:
            self._file.close()
            logger.info(f"Сохранено адресов: {self.written} в файл {self.path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class SweepReporter:
    """Обработка потока результатов и вывод в консоль и файл"""

    RULE = "-" * 35

    def __init__(self, config: SweepConfig, console: ConsoleSink,
                 file_sink: Optional[AddressFileSink] = None):
        self.config = config
        self.console = console
        self.file_sink = file_sink
        self.state = ReporterState.IDLE
        self.summary = SweepSummary(network=config.network)

    @property
    def show_details(self) -> bool:
        """Баннеры и сообщения DOWN выводятся только вне режима -i"""
        return not self.config.only_ips

    def start_banner(self, network: str, concurrency_limit: int):
        if not self.show_details:
            return
        self.console.emit(f"Starting concurrent ping sweep for network: {network}")
        self.console.emit(f"Using up to {concurrency_limit} concurrent threads.")
        self.console.emit(self.RULE)

    def no_usable_hosts(self):
        if self.show_details:
            self.console.emit("No usable hosts in this subnet (e.g., /31 or /32).")

    def echo_command(self, address: IPv4Address, command: List[str]):
        """Печать команды ping в подробном режиме"""
        if self.config.verbose and self.show_details:
            self.console.emit(f"Pinging {address} with command: {' '.join(command)}")

    def finish_banner(self):
        if not self.show_details:
            return
        self.console.emit(self.RULE)
        self.console.emit("Concurrent ping sweep finished.")

    async def drain(self, channel: ResultChannel, dispatched: int = 0) -> SweepSummary:
        """
        Чтение канала результатов до его закрытия

        Args:
            channel: Канал результатов диспетчера
            dispatched: Количество запущенных проверок

        Returns:
            Сводка по сканированию
        """
        if self.state is not ReporterState.IDLE:
            raise RuntimeError(f"reporter cannot drain in state '{self.state.value}'")

        self.state = ReporterState.DRAINING
        self.summary.dispatched = dispatched
        self.summary.start_time = time.time()

        async for result in channel:
            self.handle(result)

        self.state = ReporterState.FINALIZING
        self._finalize()
        self.state = ReporterState.DONE
        return self.summary

    def handle(self, result: ProbeResult):
        """Обработка одного результата"""
        if self.state is not ReporterState.DRAINING:
            raise RuntimeError(f"reporter cannot accept results in state '{self.state.value}'")

        self.summary.received += 1

        if result.is_up:
            self.summary.up_hosts.append(result.address)

            if self.file_sink is not None:
                self.file_sink.write(result.address)

            if self.config.only_ips:
                self.console.emit(str(result.address))
            else:
                self.console.emit_colored(result.message, Fore.GREEN)
        else:
            self.summary.down_count += 1

            if result.message and self.config.verbose and self.show_details:
                self.console.emit_colored(result.message, Fore.RED)

    def _finalize(self):
        summary = self.summary
        summary.end_time = time.time()

        if summary.received != summary.dispatched:
            logger.error(f"Получено {summary.received} результатов "
                         f"из {summary.dispatched} запущенных проверок")

        if not summary.found_up and self.show_details:
            self.console.emit("No UP hosts found in the specified range.")
            if not self.config.verbose:
                self.console.emit("Run with -v or --verbose for more details on unreachable hosts.")

        logger.info(f"Сканирование {summary.network} завершено за {summary.duration:.1f} сек: "
                    f"{summary.up_count} доступно, {summary.down_count} недоступно")
