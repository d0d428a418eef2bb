"""Reporting package — match list output."""

from .console import ConsoleReporter, NO_MATCHES_LINE
from .json_export import export_json

__all__ = [
    "ConsoleReporter",
    "NO_MATCHES_LINE",
    "export_json",
]
