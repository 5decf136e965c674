"""Pydantic Settings for clashprobe.

All environment variables use the CLASHPROBE_ prefix.
Example: CLASHPROBE_PORT=9090, CLASHPROBE_PROBE_INTERVAL_SECONDS=60,
CLASHPROBE_WORK_MODES='["web", "influxdb"]'
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class WorkMode(str, Enum):
    """Where probe results go. Several modes can be active at once."""

    WEB = "web"  # live status API and event stream
    INFLUXDB = "influxdb"  # time-series export after every round


class ProbeSettings(BaseSettings):
    """clashprobe configuration validated from environment variables."""

    # Service
    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)
    log_level: str = "INFO"
    verbose: bool = False  # DEBUG logging and error detail in CLI reports
    work_modes: list[WorkMode] = Field(default_factory=lambda: [WorkMode.WEB], min_length=1)

    # Targets
    targets_path: str = "targets.yaml"

    # Probing
    test_url: str = "http://www.gstatic.com/generate_204"
    probe_interval_seconds: float = Field(default=30, ge=1)
    probe_timeout_seconds: float = Field(default=5.0, gt=0)
    concurrency_limit: int = Field(default=10, ge=1)

    # Result store
    history_size: int = Field(default=30, ge=1)  # Ring capacity per target

    # Live updates
    subscriber_buffer_size: int = Field(default=8, ge=1)
    subscriber_max_overflow: int = Field(default=8, ge=0)
    sse_keepalive_seconds: float = Field(default=30, gt=0)

    # InfluxDB export (work mode "influxdb")
    influxdb_url: str = "http://localhost:8086"
    influxdb_org: str = "example-org"
    influxdb_token: str = ""
    influxdb_bucket: str = "example-bucket"
    influxdb_node_name: str = "default"  # "node" tag on every point

    model_config = {"env_prefix": "CLASHPROBE_"}

    @field_validator("work_modes", mode="before")
    @classmethod
    def _split_modes(cls, value: object) -> object:
        # Accept "web,influxdb" as well as a list, in any case
        if isinstance(value, str):
            value = [part for part in value.split(",") if part.strip()]
        if isinstance(value, (list, tuple, set)):
            return [v.strip().lower() if isinstance(v, str) else v for v in value]
        return value

    @property
    def effective_log_level(self) -> str:
        """Root log level: ``verbose`` forces DEBUG in every mode."""
        return "DEBUG" if self.verbose else self.log_level
