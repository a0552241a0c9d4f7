"""
Unprivileged ICMP echo transport, one socket per address family.
"""
import ipaddress
import logging
import random
import socket
import struct
from dataclasses import dataclass
from typing import Optional

from ..privileges import ping_permission_hint

logger = logging.getLogger(__name__)

ICMP_ECHO_REQUEST = 8
ICMPV6_ECHO_REQUEST = 128

RECV_BUFFER_SIZE = 512


class TransportError(RuntimeError):
    """Raised when an ICMP socket cannot be opened or read."""


@dataclass
class ICMPPacket:
    type: int
    code: int
    checksum: int
    identifier: int
    sequence: int
    payload: bytes

    def pack(self) -> bytes:
        header = struct.pack('!BBHHH', self.type, self.code, 0, self.identifier, self.sequence)
        checksum = self._calculate_checksum(header + self.payload)
        header = struct.pack('!BBHHH', self.type, self.code, checksum, self.identifier, self.sequence)
        return header + self.payload

    @staticmethod
    def _calculate_checksum(data: bytes) -> int:
        if len(data) % 2:
            data += b'\x00'
        res = sum(struct.unpack('!%dH' % (len(data) // 2), data))
        res = (res >> 16) + (res & 0xffff)
        res += res >> 16
        return ~res & 0xffff


def family_of(address: str) -> int:
    """Returns AF_INET or AF_INET6 for an IP address literal."""
    if ipaddress.ip_address(address).version == 6:
        return socket.AF_INET6
    return socket.AF_INET


class ICMPTransport:
    """Sends echo requests and yields the source address of inbound replies.

    The socket is a datagram "ping socket", so no root privileges are needed
    as long as the process group is allowed by ping_group_range.
    """

    def __init__(self, sock: socket.socket, family: int, identifier: Optional[int] = None):
        self.sock = sock
        self.family = family
        self.identifier = random.randint(0, 0xffff) if identifier is None else identifier

    @classmethod
    def open(cls, family: int) -> "ICMPTransport":
        """Opens a ping socket for the family, bound to the wildcard address."""
        if family == socket.AF_INET6:
            proto, wildcard = socket.IPPROTO_ICMPV6, '::'
        else:
            proto, wildcard = socket.IPPROTO_ICMP, '0.0.0.0'
        try:
            sock = socket.socket(family, socket.SOCK_DGRAM, proto)
            sock.bind((wildcard, 0))
        except OSError as e:
            raise TransportError(f"Cannot open ICMP socket: {e}\n{ping_permission_hint()}") from e
        logger.debug("Opened ICMP socket for %s", "IPv6" if family == socket.AF_INET6 else "IPv4")
        return cls(sock, family)

    def echo_request(self) -> bytes:
        packet = ICMPPacket(
            type=ICMPV6_ECHO_REQUEST if self.family == socket.AF_INET6 else ICMP_ECHO_REQUEST,
            code=0,
            checksum=0,
            identifier=self.identifier,
            sequence=1,
            payload=b'',
        )
        return packet.pack()

    def send(self, dst: str) -> None:
        """Sends one echo request. Failures are ignored; the target simply times out."""
        try:
            self.sock.sendto(self.echo_request(), (dst, 0))
        except OSError as e:
            logger.debug("Send to %s failed: %s", dst, e)

    def receive(self) -> str:
        """Blocks until a packet arrives and returns the sender's address."""
        try:
            _, addr = self.sock.recvfrom(RECV_BUFFER_SIZE)
        except OSError as e:
            raise TransportError(f"ICMP receive failed: {e}") from e
        if not isinstance(addr, tuple) or not addr or not isinstance(addr[0], str):
            raise TransportError(f"Unexpected peer address: {addr!r}")
        # Link-local IPv6 sources carry a zone suffix.
        try:
            return str(ipaddress.ip_address(addr[0].split('%')[0]))
        except ValueError as e:
            raise TransportError(f"Unexpected peer address: {addr!r}") from e
