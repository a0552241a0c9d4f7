"""
ICMP transport and reply listeners.
"""

from .icmp import ICMPPacket, ICMPTransport, TransportError, family_of
from .listener import ListenerFailure, reply_listener, start_listener

__all__ = [
    "ICMPPacket",
    "ICMPTransport",
    "TransportError",
    "family_of",
    "ListenerFailure",
    "reply_listener",
    "start_listener",
]
