"""httpx-backed reference tester.

Handles the protocols plain HTTP tooling can reach: ``direct`` (no proxy)
and ``socks5`` (via ``httpx[socks]``). ``reject`` targets are dead by
definition. Tunnelled protocols (shadowsocks, trojan, vmess, vless) need a
dedicated tester and are reported as ``protocol_error`` here.
"""

from __future__ import annotations

import logging
import socket
import ssl
import time
from typing import Any
from urllib.parse import quote

import httpx

from clashprobe.models.descriptors import Protocol, ProxyDescriptor
from clashprobe.models.outcomes import ErrorCategory, ProbeOutcome

logger = logging.getLogger(__name__)

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "getaddrinfo",
    "no address associated",
)
_TLS_MARKERS = ("ssl", "certificate", "tls")
_AUTH_MARKERS = ("407", "auth", "credential")


def _chain(exc: BaseException) -> list[BaseException]:
    """*exc* followed by its causes/contexts."""
    seen: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None and current not in seen:
        seen.append(current)
        current = current.__cause__ or current.__context__
    return seen


def classify_error(exc: BaseException) -> ErrorCategory:
    """Map an httpx (or underlying socket) exception onto an error category."""
    if isinstance(exc, httpx.TimeoutException):
        return ErrorCategory.TIMEOUT

    chain = _chain(exc)
    text = " ".join(str(e) for e in chain).lower()

    if any(isinstance(e, socket.gaierror) for e in chain) or any(
        m in text for m in _DNS_MARKERS
    ):
        return ErrorCategory.DNS_FAILURE
    if any(isinstance(e, ssl.SSLError) for e in chain):
        return ErrorCategory.TLS_FAILURE

    if isinstance(exc, httpx.ProxyError):
        if any(m in text for m in _AUTH_MARKERS):
            return ErrorCategory.AUTH_FAILURE
        return ErrorCategory.CONNECT_FAILURE
    if isinstance(exc, httpx.ConnectError):
        if any(m in text for m in _TLS_MARKERS):
            return ErrorCategory.TLS_FAILURE
        return ErrorCategory.CONNECT_FAILURE
    if isinstance(exc, (httpx.ProtocolError, httpx.DecodingError)):
        return ErrorCategory.PROTOCOL_ERROR
    if isinstance(exc, (ConnectionError, OSError)):
        return ErrorCategory.CONNECT_FAILURE
    return ErrorCategory.UNKNOWN


def socks5_proxy_url(descriptor: ProxyDescriptor) -> str:
    """``socks5://[user:pass@]server:port`` for *descriptor*."""
    if not descriptor.server or not descriptor.port:
        raise ValueError(f"socks5 target {descriptor.name!r} needs server and port")

    userinfo = ""
    username = descriptor.params.get("username")
    if username:
        password = descriptor.params.get("password", "")
        userinfo = f"{quote(str(username), safe='')}:{quote(str(password), safe='')}@"
    return f"socks5://{userinfo}{descriptor.server}:{descriptor.port}"


class HttpProxyTester:
    """Probe targets with a GET through httpx.

    Parameters
    ----------
    transport:
        Optional httpx transport, used instead of a real network stack.
    """

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    async def test(
        self, descriptor: ProxyDescriptor, test_url: str, timeout: float
    ) -> ProbeOutcome:
        protocol = descriptor.protocol.value

        if descriptor.protocol is Protocol.REJECT:
            return ProbeOutcome.failure(
                descriptor.name,
                ErrorCategory.CONNECT_FAILURE,
                protocol=protocol,
                detail="reject target refuses every connection",
            )

        if descriptor.protocol not in (Protocol.DIRECT, Protocol.SOCKS5):
            return ProbeOutcome.failure(
                descriptor.name,
                ErrorCategory.PROTOCOL_ERROR,
                protocol=protocol,
                detail=f"{protocol} is not supported by the HTTP tester",
            )

        client_kwargs: dict[str, Any] = {"timeout": httpx.Timeout(timeout)}
        if self._transport is not None:
            client_kwargs["transport"] = self._transport
        elif descriptor.protocol is Protocol.SOCKS5:
            try:
                client_kwargs["proxy"] = socks5_proxy_url(descriptor)
            except ValueError as exc:
                return ProbeOutcome.failure(
                    descriptor.name,
                    ErrorCategory.PROTOCOL_ERROR,
                    protocol=protocol,
                    detail=str(exc),
                )

        start = time.monotonic()
        try:
            async with httpx.AsyncClient(**client_kwargs) as client:
                response = await client.get(test_url)
        except httpx.HTTPError as exc:
            category = classify_error(exc)
            logger.debug(
                "Probe failed for %s: %s",
                descriptor.name,
                exc,
                extra={"target": descriptor.name, "error_category": category.value},
            )
            return ProbeOutcome.failure(
                descriptor.name, category, protocol=protocol, detail=str(exc) or type(exc).__name__
            )
        latency_ms = round((time.monotonic() - start) * 1000, 2)

        if response.status_code >= 500:
            return ProbeOutcome.failure(
                descriptor.name,
                ErrorCategory.PROTOCOL_ERROR,
                protocol=protocol,
                detail=f"test URL answered HTTP {response.status_code}",
            )
        return ProbeOutcome.success(descriptor.name, latency_ms, protocol=protocol)
