"""
Handles parsing and expansion of target address lists.
"""
from __future__ import annotations
import ipaddress
import logging
from typing import Iterator, List, Union

from .models import Target
from .network import family_of

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class TargetParser:
    """Turns newline-separated address text into an ordered, deduplicated target list.

    Each line holds one address, a CIDR prefix ("192.0.2.0/28") or a dash range
    ("192.0.2.1-192.0.2.9", or "192.0.2.1-9" replacing the last octet).
    Invalid lines are skipped with a warning.
    """

    def __init__(self, max_expansion: int = 65536):
        self.max_expansion = max_expansion

    def parse(self, text: str) -> List[Target]:
        targets = []
        seen = set()
        for lineno, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line or line.startswith('#'):
                continue
            try:
                addresses = list(self._expand(line))
            except ValueError as e:
                logger.warning("Ignoring invalid line %d '%s': %s", lineno, line, e)
                continue

            for addr in addresses:
                if addr.version == 6 and addr.ipv4_mapped is not None:
                    addr = addr.ipv4_mapped
                canonical = str(addr)
                if canonical in seen:
                    logger.debug("Skipping duplicate address %s", canonical)
                    continue
                seen.add(canonical)
                targets.append(Target(address=canonical, family=family_of(canonical)))
        return targets

    def _expand(self, line: str) -> Iterator[IPAddress]:
        if '%' in line:
            # Replies carry no zone, so a scoped target could never match one.
            raise ValueError("scoped IPv6 addresses are not supported")
        if '/' in line:
            return self._expand_prefix(line)
        if '-' in line:
            return self._expand_range(line)
        return iter([ipaddress.ip_address(line)])

    def _expand_prefix(self, line: str) -> Iterator[IPAddress]:
        network = ipaddress.ip_network(line, strict=False)
        if network.num_addresses > self.max_expansion:
            raise ValueError(
                f"prefix expands to {network.num_addresses} addresses, limit is {self.max_expansion}"
            )
        if network.version == 4:
            # hosts() leaves out network and broadcast addresses, except for /31 and /32.
            return network.hosts()
        return iter(network)

    def _expand_range(self, line: str) -> Iterator[IPAddress]:
        start_str, _, end_str = line.partition('-')
        start = ipaddress.ip_address(start_str.strip())
        end_str = end_str.strip()
        if start.version == 4 and end_str.isdigit():
            octet = int(end_str)
            if octet > 255:
                raise ValueError(f"last octet {octet} out of range")
            end: IPAddress = ipaddress.IPv4Address((int(start) & ~0xff) | octet)
        else:
            end = ipaddress.ip_address(end_str)

        if end.version != start.version:
            raise ValueError("range mixes IPv4 and IPv6")
        if end < start:
            raise ValueError("range end is before range start")
        count = int(end) - int(start) + 1
        if count > self.max_expansion:
            raise ValueError(f"range expands to {count} addresses, limit is {self.max_expansion}")
        cls = type(start)
        return (cls(n) for n in range(int(start), int(end) + 1))
