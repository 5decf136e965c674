"""Result sinks notified after every probe round."""

from clashprobe.reporters.base import ProbeReporter
from clashprobe.reporters.influxdb import InfluxDbReporter

__all__ = ["InfluxDbReporter", "ProbeReporter"]
