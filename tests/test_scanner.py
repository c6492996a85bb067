import asyncio
from collections import Counter
from ipaddress import IPv4Address

import pytest

from conftest import FakeProbe
from ping_sweeper.config import ConcurrencyMode, PLATFORM_PROFILES
from ping_sweeper.ip_parser import IPParser
from ping_sweeper.scanner import PingProbe, SweepDispatcher

ADDRESS = IPv4Address("10.0.0.1")


def ping(probe, address=ADDRESS):
    return asyncio.run(probe.ping(address))


def sweep(probe, cidr, limit=10, mode=ConcurrencyMode.BOUNDED):
    async def run():
        dispatcher = SweepDispatcher(probe, limit, mode)
        channel = dispatcher.start(IPParser.iter_hosts(IPParser.parse_network(cidr)))
        results = [result async for result in channel]
        await dispatcher.wait_closed()
        return dispatcher, channel, results

    return asyncio.run(run())


class TestPingProbe:

    def test_exit_zero_is_up(self, fake_ping):
        fake_ping.codes["10.0.0.1"] = 0

        result = ping(PingProbe(PLATFORM_PROFILES["linux"]))

        assert result.is_up is True
        assert result.address == ADDRESS
        assert result.message == "10.0.0.1 is UP"
        assert fake_ping.calls == [["ping", "-c", "1", "-W", "1", "10.0.0.1"]]

    def test_windows_command(self, fake_ping):
        ping(PingProbe(PLATFORM_PROFILES["windows"], timeout=2))

        assert fake_ping.calls == [["ping", "-n", "1", "-w", "2000", "10.0.0.1"]]

    def test_exit_code_is_down_with_code_when_verbose(self, fake_ping):
        fake_ping.codes["10.0.0.1"] = 2

        result = ping(PingProbe(PLATFORM_PROFILES["linux"], verbose=True))

        assert result.is_up is False
        assert result.message == "10.0.0.1 is DOWN or unreachable (code 2)"

    def test_down_message_is_empty_when_quiet(self, fake_ping):
        result = ping(PingProbe(PLATFORM_PROFILES["linux"]))

        assert result.is_up is False
        assert result.message == ""

    def test_missing_binary_is_down(self, fake_ping):
        fake_ping.codes["10.0.0.1"] = FileNotFoundError(2, "No such file or directory", "ping")

        result = ping(PingProbe(PLATFORM_PROFILES["linux"], verbose=True))

        assert result.is_up is False
        assert result.message.startswith("An unexpected error occurred while pinging 10.0.0.1:")
        assert "No such file or directory" in result.message

    def test_permission_denied_is_quietly_down(self, fake_ping):
        fake_ping.codes["10.0.0.1"] = PermissionError("denied")

        result = ping(PingProbe(PLATFORM_PROFILES["linux"]))

        assert result.is_up is False
        assert result.message == ""

    def test_killed_by_signal_is_down(self, fake_ping):
        fake_ping.codes["10.0.0.1"] = -9

        result = ping(PingProbe(PLATFORM_PROFILES["linux"], verbose=True))

        assert result.is_up is False
        assert "terminated by signal 9" in result.message

    def test_command_callback(self, fake_ping):
        seen = []
        probe = PingProbe(PLATFORM_PROFILES["linux"], on_command=lambda a, c: seen.append((a, c)))

        ping(probe)

        assert seen == [(ADDRESS, ["ping", "-c", "1", "-W", "1", "10.0.0.1"])]


class TestSweepDispatcher:

    def test_every_address_yields_exactly_one_result(self):
        probe = FakeProbe(up=["10.0.0.7", "10.0.0.200"])

        dispatcher, channel, results = sweep(probe, "10.0.0.0/24")

        assert dispatcher.dispatched == 254
        assert len(results) == 254
        assert Counter(r.address for r in results) == Counter(IPParser.iter_hosts(
            IPParser.parse_network("10.0.0.0/24")))
        assert {r.address for r in results if r.is_up} == {
            IPv4Address("10.0.0.7"), IPv4Address("10.0.0.200")}
        assert channel.closed

    def test_results_arrive_in_completion_order(self):
        _, _, results = sweep(FakeProbe(), "10.0.0.0/29")

        addresses = [r.address for r in results]
        assert addresses == sorted(addresses, reverse=True)

    def test_slash_30_probes_each_host_once(self):
        probe = FakeProbe()

        _, _, results = sweep(probe, "10.0.0.0/30")

        assert sorted(probe.calls) == [IPv4Address("10.0.0.1"), IPv4Address("10.0.0.2")]
        assert len(results) == 2

    def test_bounded_mode_caps_running_probes(self):
        probe = FakeProbe(delay=0.01)

        dispatcher, _, results = sweep(probe, "10.0.0.0/26", limit=5)

        assert len(results) == 62
        assert probe.peak == 5
        assert dispatcher.peak_active == 5

    def test_buffered_mode_starts_everything_at_once(self):
        probe = FakeProbe(delay=0.01)

        dispatcher, _, results = sweep(probe, "10.0.0.0/26", limit=5, mode=ConcurrencyMode.BUFFERED)

        assert len(results) == 62
        assert probe.peak == 62
        assert dispatcher.dispatched == 62

    def test_empty_range_closes_channel(self):
        probe = FakeProbe()

        dispatcher, channel, results = sweep(probe, "10.0.0.0/31")

        assert dispatcher.dispatched == 0
        assert results == []
        assert probe.calls == []
        assert channel.closed

    def test_crashing_probe_still_reports_down(self):
        probe = FakeProbe(up=["10.0.0.1"], raise_for=["10.0.0.2"], verbose=True)

        _, _, results = sweep(probe, "10.0.0.0/30")

        by_address = {r.address: r for r in results}
        assert len(results) == 2
        assert by_address[IPv4Address("10.0.0.1")].is_up
        crashed = by_address[IPv4Address("10.0.0.2")]
        assert crashed.is_up is False
        assert "probe exploded" in crashed.message

    def test_cannot_start_twice(self):
        async def run():
            dispatcher = SweepDispatcher(FakeProbe(), 2)
            channel = dispatcher.start([])
            with pytest.raises(RuntimeError):
                dispatcher.start([])
            return [result async for result in channel]

        assert asyncio.run(run()) == []
