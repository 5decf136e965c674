"""Configuration module: settings and target list loading."""

from clashprobe.config.settings import ProbeSettings, WorkMode
from clashprobe.config.targets import load_targets, parse_protocol, require_targets

__all__ = [
    "ProbeSettings",
    "WorkMode",
    "load_targets",
    "parse_protocol",
    "require_targets",
]
