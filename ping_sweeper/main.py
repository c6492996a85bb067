"""
Главный модуль сканера подсети
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from .config import ConfigLoader, SweepConfig, SweepSummary, ConcurrencyMode, select_ping_profile
from .exceptions import ConfigError, SweepError
from .ip_parser import IPParser
from .reporter import ConsoleSink, AddressFileSink, SweepReporter
from .scanner import PingProbe, SweepDispatcher
from .utils import setup_logging, validate_environment

logger = logging.getLogger(__name__)


class SweepArgumentParser(argparse.ArgumentParser):
    """Парсер аргументов, завершающий работу с кодом 1 при ошибке"""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    """Парсинг аргументов командной строки"""
    parser = SweepArgumentParser(
        prog='ping-sweeper',
        description='This script performs a concurrent IP ping sweep on a specified network range.\n'
                    "It reports hosts that are found to be reachable ('UP').",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ping-sweeper -v -t 20 192.168.1.0/24
  ping-sweeper -o up_hosts.txt 192.168.1.0/24   (outputs to file AND stdout)
  ping-sweeper -i 192.168.1.0/24                (outputs ONLY IPs to stdout)
        """
    )

    parser.add_argument(
        'network',
        nargs='?',
        metavar='network_cidr',
        help='The network address in CIDR notation (e.g., "192.168.1.0/24")'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        default=None,
        help='Enable verbose output. Shows ping commands and return codes. '
             'This is suppressed if -i is used.'
    )

    parser.add_argument(
        '--threads', '-t',
        dest='concurrency_limit',
        type=int,
        help='The maximum number of concurrent ping operations to run (default: 10)'
    )

    parser.add_argument(
        '--only-ips', '-i',
        action='store_true',
        default=None,
        help="Output only the IP addresses of UP hosts to standard output, one per line. "
             "Suppresses banners and 'DOWN' messages."
    )

    parser.add_argument(
        '--output', '-o',
        dest='output_file',
        metavar='FILE',
        help='Save the IP addresses of UP hosts to FILE, one per line. '
             'Results are still printed to stdout.'
    )

    parser.add_argument(
        '--timeout',
        type=float,
        help='Single ping timeout in seconds (default: 1)'
    )

    parser.add_argument(
        '--mode',
        dest='concurrency_mode',
        choices=[mode.value for mode in ConcurrencyMode],
        help='bounded: at most N pings run at once (default); '
             'buffered: every ping starts immediately, N only sizes the result queue'
    )

    parser.add_argument(
        '--config', '-c',
        help='YAML configuration file'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Diagnostic log level, logs go to stderr (default: WARNING)'
    )

    parser.add_argument(
        '--log-file',
        help='Also write diagnostic logs to this file'
    )

    parser.add_argument(
        '--no-color',
        dest='color',
        action='store_false',
        default=None,
        help='Disable colored output'
    )

    return parser


async def run_sweep(config: SweepConfig, console: Optional[ConsoleSink] = None,
                    probe: Optional[PingProbe] = None) -> SweepSummary:
    """
    Сканирование подсети

    Args:
        config: Конфигурация сканирования
        console: Консольный вывод (по умолчанию stdout)
        probe: Проверка одного адреса (по умолчанию системный ping)

    Returns:
        Сводка по сканированию

    Raises:
        ConfigError: некорректная сеть
        OutputFileError: не удалось создать или дописать файл результатов
    """
    network = IPParser.parse_network(config.network)

    if console is None:
        console = ConsoleSink(color=config.color and not config.only_ips and sys.stdout.isatty())

    file_sink = AddressFileSink(config.output_file) if config.output_file else None

    try:
        reporter = SweepReporter(config, console, file_sink)

        if probe is None:
            probe = PingProbe(
                select_ping_profile(),
                timeout=config.timeout,
                verbose=config.verbose,
                on_command=reporter.echo_command
            )

        reporter.start_banner(config.network, config.concurrency_limit)

        if IPParser.count_hosts(network) == 0:
            reporter.no_usable_hosts()

        dispatcher = SweepDispatcher(probe, config.concurrency_limit, config.concurrency_mode)
        channel = dispatcher.start(IPParser.iter_hosts(network))
        summary = await reporter.drain(channel, dispatched=dispatcher.dispatched)
        await dispatcher.wait_closed()

        logger.debug(f"Максимум одновременных проверок: {dispatcher.peak_active}")

        reporter.finish_banner()
    finally:
        if file_sink is not None:
            file_sink.close()

    return summary


def main(argv: Optional[List[str]] = None) -> int:
    """Основная функция"""
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = {
        "network": args.network,
        "concurrency_limit": args.concurrency_limit,
        "verbose": args.verbose,
        "only_ips": args.only_ips,
        "output_file": args.output_file,
        "timeout": args.timeout,
        "concurrency_mode": args.concurrency_mode,
        "log_level": args.log_level,
        "log_file": args.log_file,
        "color": args.color,
    }

    try:
        config = ConfigLoader.load(args.config, overrides)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not config.network:
        print("Error: Missing network_cidr argument.", file=sys.stderr)
        parser.print_help(sys.stderr)
        return 1

    try:
        setup_logging(config)
    except OSError as e:
        print(f"Error: Could not open log file '{config.log_file}': {e}", file=sys.stderr)
        return 1

    validate_environment(select_ping_profile())

    try:
        asyncio.run(run_sweep(config))
    except SweepError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except BrokenPipeError:
        # Получатель stdout закрылся (например, | head)
        _silence_stdout()
        print("Error: standard output was closed", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nSweep interrupted by user", file=sys.stderr)
        return 130

    return 0


def _silence_stdout():
    """stdout перенаправляется в devnull, чтобы завершение интерпретатора не упало на flush"""
    try:
        fd = sys.stdout.fileno()
    except (AttributeError, ValueError, OSError):
        return
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, fd)


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
