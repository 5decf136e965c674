"""Tester package: the capability protocol and the httpx implementation."""

from clashprobe.tester.base import ProxyTester
from clashprobe.tester.httpx_tester import HttpProxyTester, classify_error

__all__ = ["HttpProxyTester", "ProxyTester", "classify_error"]
