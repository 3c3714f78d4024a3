"""Common runtime devkit for service infrastructure concerns."""

from devkit.clock import Clock, FixedClock, now_utc
from devkit.config import ServiceSettings, load_settings
from devkit.observability import configure_logging, configure_otel, configure_probe_access_log_filter

__all__ = [
    "Clock",
    "FixedClock",
    "ServiceSettings",
    "configure_logging",
    "configure_otel",
    "configure_probe_access_log_filter",
    "load_settings",
    "now_utc",
]
