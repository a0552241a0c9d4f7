"""
Checks whether the process may open unprivileged ICMP ("ping") sockets.
"""
import os
from typing import Optional, Tuple

PING_GROUP_RANGE_PATH = "/proc/sys/net/ipv4/ping_group_range"


def ping_group_range(path: str = PING_GROUP_RANGE_PATH) -> Optional[Tuple[int, int]]:
    """
    Reads the group id range allowed to create ping sockets.

    Returns:
        (low, high) or None if the file is missing or unreadable.
    """
    try:
        with open(path, 'r') as f:
            low, high = f.read().split()
        return int(low), int(high)
    except (OSError, ValueError):
        return None


def _group_ids() -> Tuple[int, ...]:
    if not hasattr(os, 'getgroups'):
        return ()
    return tuple(sorted({os.getgid(), *os.getgroups()}))  # type: ignore[attr-defined]


def ping_permission_hint(path: str = PING_GROUP_RANGE_PATH) -> str:
    """Builds the diagnostic shown when an ICMP socket cannot be opened."""
    rng = ping_group_range(path)
    if rng is None:
        return f"Check {path}"
    low, high = rng
    gids = _group_ids()
    if any(low <= gid <= high for gid in gids):
        return f"Check {path} (currently {low} {high})"
    return (
        f"Check {path}: allowed groups are {low}-{high}, "
        f"this process has {', '.join(map(str, gids)) or 'none'}"
    )
