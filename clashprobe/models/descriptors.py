"""Proxy target descriptors.

A descriptor is the static identity of one probe target: a name used as the
stable key across rounds, a protocol tag, and whatever connection fields the
tester needs. The orchestration core never looks past ``name``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Protocol(str, Enum):
    """Proxy protocol tags understood by the tester layer."""

    SHADOWSOCKS = "shadowsocks"
    TROJAN = "trojan"
    VMESS = "vmess"
    VLESS = "vless"
    SOCKS5 = "socks5"
    DIRECT = "direct"
    REJECT = "reject"


# Clash ``type`` values that differ from the canonical tag
CLASH_TYPE_ALIASES: dict[str, Protocol] = {
    "ss": Protocol.SHADOWSOCKS,
    "socks": Protocol.SOCKS5,
}


class ProxyDescriptor(BaseModel):
    """Immutable description of a single proxy target."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    protocol: Protocol
    server: str | None = None
    port: int | None = Field(default=None, ge=1, le=65535)
    params: dict[str, Any] = Field(default_factory=dict)  # opaque, tester-specific

    @property
    def address(self) -> str:
        """``server:port`` for display, or ``-`` when not applicable."""
        if not self.server:
            return "-"
        return f"{self.server}:{self.port}" if self.port else self.server
