import asyncio
import logging
from ipaddress import IPv4Address
from types import SimpleNamespace

import pytest

from ping_sweeper.config import PLATFORM_PROFILES, ProbeResult
from ping_sweeper.scanner import PingProbe


class FakeProbe(PingProbe):
    """Проверка без запуска ping: доступны только адреса из up"""

    def __init__(self, up=(), verbose=False, delay=None, raise_for=()):
        super().__init__(PLATFORM_PROFILES["linux"], verbose=verbose)
        self.up = {IPv4Address(a) for a in up}
        self.raise_for = {IPv4Address(a) for a in raise_for}
        self.delay = delay
        self.calls = []
        self.active = 0
        self.peak = 0

    async def ping(self, address):
        self.calls.append(address)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            # Старшие адреса завершаются раньше младших
            delay = self.delay if self.delay is not None else (255 - address.packed[-1]) * 0.0005
            await asyncio.sleep(delay)
            if address in self.raise_for:
                raise RuntimeError("probe exploded")
            if address in self.up:
                return ProbeResult(address, f"{address} is UP", True)
            message = f"{address} is DOWN or unreachable (code 1)" if self.verbose else ""
            return ProbeResult(address, message, False)
        finally:
            self.active -= 1


class FakeProcess:
    def __init__(self, returncode):
        self.returncode = returncode

    async def wait(self):
        return self.returncode


@pytest.fixture
def fake_ping(monkeypatch):
    """
    Подмена asyncio.create_subprocess_exec

    codes: адрес -> код возврата или исключение; по умолчанию код 1.
    """
    state = SimpleNamespace(calls=[], codes={})

    async def fake_exec(*cmd, **kwargs):
        state.calls.append(list(cmd))
        code = state.codes.get(cmd[-1], 1)
        if isinstance(code, BaseException):
            raise code
        return FakeProcess(code)

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    return state


@pytest.fixture
def linux_platform(monkeypatch):
    monkeypatch.setattr("ping_sweeper.config.platform.system", lambda: "Linux")


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_ping_sweeper", False):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(logging.WARNING)
