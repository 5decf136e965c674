"""Unit tests for the targets YAML loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from clashprobe.config.targets import (
    descriptor_from_mapping,
    load_targets,
    parse_protocol,
    require_targets,
)
from clashprobe.middleware.error_handler import ConfigurationError
from clashprobe.models.descriptors import Protocol


def _write(tmp_path: Path, text: str) -> str:
    path = tmp_path / "targets.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestParseProtocol:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("ss", Protocol.SHADOWSOCKS),
            ("shadowsocks", Protocol.SHADOWSOCKS),
            ("trojan", Protocol.TROJAN),
            ("VMess", Protocol.VMESS),
            ("vless", Protocol.VLESS),
            ("socks5", Protocol.SOCKS5),
            ("direct", Protocol.DIRECT),
            ("reject", Protocol.REJECT),
        ],
    )
    def test_known_types(self, raw: str, expected: Protocol):
        assert parse_protocol(raw) is expected

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            parse_protocol("hysteria2")


class TestDescriptorFromMapping:
    def test_splits_known_fields_from_params(self):
        d = descriptor_from_mapping(
            {
                "name": "hk-01",
                "type": "ss",
                "server": "hk.example.net",
                "port": 8388,
                "cipher": "aes-256-gcm",
                "password": "pw",
            }
        )
        assert d.name == "hk-01"
        assert d.protocol is Protocol.SHADOWSOCKS
        assert d.server == "hk.example.net"
        assert d.port == 8388
        assert d.params == {"cipher": "aes-256-gcm", "password": "pw"}

    def test_requires_name_and_type(self):
        with pytest.raises(ValueError):
            descriptor_from_mapping({"name": "x"})
        with pytest.raises(ValueError):
            descriptor_from_mapping({"type": "direct"})

    def test_does_not_mutate_input(self):
        entry = {"name": "a", "type": "direct"}
        descriptor_from_mapping(entry)
        assert entry == {"name": "a", "type": "direct"}


class TestLoadTargets:
    def test_missing_file_returns_empty(self, tmp_path: Path):
        assert load_targets(str(tmp_path / "nope.yaml")) == []

    def test_invalid_yaml_returns_empty(self, tmp_path: Path):
        assert load_targets(_write(tmp_path, "proxies: [unclosed")) == []

    def test_missing_proxies_key_returns_empty(self, tmp_path: Path):
        assert load_targets(_write(tmp_path, "rules: []\n")) == []

    def test_loads_in_file_order(self, tmp_path: Path):
        path = _write(
            tmp_path,
            """
proxies:
  - {name: b, type: trojan, server: b.example.net, port: 443, password: x}
  - {name: a, type: direct}
  - {name: c, type: socks5, server: 10.0.0.1, port: 1080}
""",
        )
        targets = load_targets(path)
        assert [t.name for t in targets] == ["b", "a", "c"]
        assert [t.protocol for t in targets] == [
            Protocol.TROJAN,
            Protocol.DIRECT,
            Protocol.SOCKS5,
        ]

    def test_skips_bad_entries(self, tmp_path: Path):
        path = _write(
            tmp_path,
            """
proxies:
  - {name: ok, type: direct}
  - {name: weird, type: hysteria2}
  - just-a-string
  - {type: direct}
  - {name: badport, type: socks5, server: h, port: 99999}
""",
        )
        assert [t.name for t in load_targets(path)] == ["ok"]


class TestRequireTargets:
    def test_returns_descriptors(self, tmp_path: Path):
        path = _write(tmp_path, "proxies:\n  - {name: a, type: direct}\n")
        assert [d.name for d in require_targets(path)] == ["a"]

    def test_empty_list_is_configuration_error(self, tmp_path: Path):
        path = _write(tmp_path, "proxies: []\n")
        with pytest.raises(ConfigurationError) as info:
            require_targets(path)
        assert info.value.details == {"targets_path": path}
