"""
Модуль асинхронного сканера
"""

import asyncio
import logging
from ipaddress import IPv4Address
from typing import Callable, Iterable, List, Optional

from .config import ConcurrencyMode, PingProfile, ProbeResult

logger = logging.getLogger(__name__)

CommandCallback = Callable[[IPv4Address, List[str]], None]

# Маркер закрытия канала результатов
_CLOSED = object()


class PingProbe:
    """Однократная проверка доступности адреса системной командой ping"""

    def __init__(self, profile: PingProfile, timeout: float = 1.0, verbose: bool = False,
                 on_command: Optional[CommandCallback] = None):
        self.profile = profile
        self.timeout = timeout
        self.verbose = verbose
        self.on_command = on_command

    def build_command(self, address: IPv4Address) -> List[str]:
        """Построение команды ping"""
        return self.profile.command(str(address), self.timeout)

    async def ping(self, address: IPv4Address) -> ProbeResult:
        """
        Выполнение ping для одного IP

        Ошибки отдельного ping не пробрасываются, а превращаются в
        результат DOWN.

        Returns:
            Результат проверки
        """
        cmd = self.build_command(address)
        if self.on_command is not None:
            self.on_command(address, cmd)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL
            )
            returncode = await process.wait()
        except OSError as e:
            logger.debug(f"Ошибка запуска ping для {address}: {e}")
            return self.failure(address, e)

        if returncode == 0:
            return ProbeResult(address, f"{address} is UP", True)

        if returncode > 0:
            logger.debug(f"{address}: ping завершился с кодом {returncode}")
            message = f"{address} is DOWN or unreachable (code {returncode})" if self.verbose else ""
            return ProbeResult(address, message, False)

        return self.failure(address, f"ping terminated by signal {-returncode}")

    def failure(self, address: IPv4Address, error) -> ProbeResult:
        """Результат DOWN для неожиданной ошибки"""
        message = ""
        if self.verbose:
            message = f"An unexpected error occurred while pinging {address}: {error}"
        return ProbeResult(address, message, False)


class ResultChannel:
    """Канал результатов: читается до закрытия диспетчером"""

    def __init__(self, queue: asyncio.Queue):
        self._queue = queue
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self):
        return self

    async def __anext__(self) -> ProbeResult:
        if self._closed:
            raise StopAsyncIteration

        item = await self._queue.get()
        if item is _CLOSED:
            self._closed = True
            raise StopAsyncIteration
        return item


class SweepDispatcher:
    """Запуск проверок с ограничением параллельности"""

    def __init__(self, probe: PingProbe, concurrency_limit: int = 10,
                 mode: ConcurrencyMode = ConcurrencyMode.BOUNDED):
        self.probe = probe
        self.concurrency_limit = concurrency_limit
        self.mode = mode
        self.dispatched = 0
        self.active = 0
        self.peak_active = 0

        self._queue: Optional[asyncio.Queue] = None
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._coordinator: Optional[asyncio.Task] = None

    def start(self, addresses: Iterable[IPv4Address]) -> ResultChannel:
        """
        Запуск задачи проверки для каждого адреса

        Должен вызываться внутри работающего event loop. Канал
        закрывается только после того, как все задачи отдали результат.

        Args:
            addresses: Адреса для проверки

        Returns:
            Канал результатов в порядке завершения
        """
        if self._coordinator is not None:
            raise RuntimeError("dispatcher has already been started")

        self._queue = asyncio.Queue(maxsize=self.concurrency_limit)
        if self.mode is ConcurrencyMode.BOUNDED:
            self._semaphore = asyncio.Semaphore(self.concurrency_limit)

        tasks = [asyncio.create_task(self._run_probe(address)) for address in addresses]
        self.dispatched = len(tasks)

        logger.info(f"Запущено {self.dispatched} проверок "
                    f"(лимит {self.concurrency_limit}, режим {self.mode.value})")

        self._coordinator = asyncio.create_task(self._close_when_done(tasks))
        return ResultChannel(self._queue)

    async def wait_closed(self):
        """Ожидание завершения координатора"""
        if self._coordinator is not None:
            await self._coordinator

    async def _run_probe(self, address: IPv4Address):
        try:
            if self._semaphore is not None:
                async with self._semaphore:
                    result = await self._invoke(address)
            else:
                result = await self._invoke(address)
        except Exception as e:
            logger.exception(f"Ошибка при проверке {address}")
            result = self.probe.failure(address, e)

        await self._queue.put(result)

    async def _invoke(self, address: IPv4Address) -> ProbeResult:
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            return await self.probe.ping(address)
        finally:
            self.active -= 1

    async def _close_when_done(self, tasks: List[asyncio.Task]):
        if tasks:
            await asyncio.gather(*tasks)
        await self._queue.put(_CLOSED)
        logger.debug(f"Все {len(tasks)} проверок завершены, канал закрыт")
