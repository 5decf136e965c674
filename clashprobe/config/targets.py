"""Probe target list loader.

Reads a Clash-style YAML document and turns its ``proxies:`` list into
typed ``ProxyDescriptor`` objects::

    proxies:
      - name: hk-01
        type: ss
        server: hk.example.net
        port: 8388
        cipher: aes-256-gcm
        password: secret

``name`` and ``type`` are required, ``server``/``port`` are lifted onto the
descriptor, every other key is kept in ``params`` for the tester.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from clashprobe.middleware.error_handler import ConfigurationError
from clashprobe.models.descriptors import CLASH_TYPE_ALIASES, Protocol, ProxyDescriptor

logger = logging.getLogger(__name__)


def parse_protocol(raw_type: str) -> Protocol:
    """Map a Clash ``type`` value onto a ``Protocol``.

    Raises ``ValueError`` for types clashprobe does not know.
    """
    key = raw_type.strip().lower()
    if key in CLASH_TYPE_ALIASES:
        return CLASH_TYPE_ALIASES[key]
    return Protocol(key)


def descriptor_from_mapping(entry: dict[str, Any]) -> ProxyDescriptor:
    """Build a descriptor from one ``proxies:`` entry."""
    fields = dict(entry)
    name = fields.pop("name", None)
    raw_type = fields.pop("type", None)
    if not name or not raw_type:
        raise ValueError("proxy entry needs both 'name' and 'type'")

    return ProxyDescriptor(
        name=str(name),
        protocol=parse_protocol(str(raw_type)),
        server=fields.pop("server", None),
        port=fields.pop("port", None),
        params=fields,
    )


def load_targets(yaml_path: str) -> list[ProxyDescriptor]:
    """Parse a targets YAML file into descriptors.

    Args:
        yaml_path: Path to the YAML file.

    Returns:
        Descriptors in file order. A missing or unparsable file returns an
        empty list; individual bad entries are skipped.
    """
    path = Path(yaml_path)

    if not path.exists():
        logger.warning("Targets file not found at %s, nothing to probe", yaml_path)
        return []

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        logger.error("Failed to parse targets YAML at %s: %s", yaml_path, exc)
        return []

    if not isinstance(raw, dict) or not isinstance(raw.get("proxies"), list):
        logger.warning("Targets YAML at %s has no 'proxies' list", yaml_path)
        return []

    descriptors: list[ProxyDescriptor] = []
    for index, entry in enumerate(raw["proxies"]):
        if not isinstance(entry, dict):
            logger.error("Proxy entry #%d is not a mapping, skipping", index)
            continue
        try:
            descriptors.append(descriptor_from_mapping(entry))
        except (ValueError, ValidationError) as exc:
            logger.warning(
                "Invalid proxy entry #%d (%s): %s, skipping",
                index,
                entry.get("name", "?"),
                exc,
            )

    logger.info("Loaded %d probe targets from %s", len(descriptors), yaml_path)
    return descriptors


def require_targets(yaml_path: str) -> list[ProxyDescriptor]:
    """``load_targets`` for modes that cannot run without targets.

    Raises ``ConfigurationError`` when the file yields no descriptors.
    """
    descriptors = load_targets(yaml_path)
    if not descriptors:
        raise ConfigurationError(
            f"No valid proxies found in {yaml_path}", targets_path=yaml_path
        )
    return descriptors
