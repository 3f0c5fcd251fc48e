"""Client IP formatting according to ``LOG_IP_MODE``."""

from __future__ import annotations

import ipaddress
import os

IP_MODES = ("full", "anonymized", "off")
_PREFIXES = {4: 24, 6: 64}


def _resolve_mode(mode: str | None) -> str:
    value = (mode if mode is not None else os.getenv("LOG_IP_MODE") or "full").lower()
    return value if value in IP_MODES else "full"


def anonymize_ip(ip: str | None, mode: str | None = None) -> str | None:
    """Format ``ip`` for logging.

    ``full`` keeps the address, ``anonymized`` truncates it to its /24 (IPv4)
    or /64 (IPv6) network and ``off`` drops it. Unparseable input is logged
    as ``"unknown"``.
    """

    resolved = _resolve_mode(mode)
    if resolved == "off":
        return None
    try:
        parsed = ipaddress.ip_address(ip or "")
    except ValueError:
        return "unknown"
    if resolved == "full":
        return str(parsed)
    network = ipaddress.ip_network(f"{parsed}/{_PREFIXES[parsed.version]}", strict=False)
    return network.with_prefixlen
