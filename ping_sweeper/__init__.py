"""
Асинхронный сканер IPv4 подсети на основе системного ping
"""

__version__ = "1.0.0"
__author__ = "IP Scanner Team"

from .config import SweepConfig, ProbeResult, SweepSummary, ConcurrencyMode
from .exceptions import SweepError, ConfigError, InvalidRangeError, UnsupportedFamilyError, OutputFileError
from .ip_parser import IPParser
from .scanner import PingProbe, SweepDispatcher
from .reporter import SweepReporter
