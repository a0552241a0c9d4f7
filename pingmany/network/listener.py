"""
Background loops that drain an ICMP transport into the reply channel.
"""
import logging
import queue
import threading
from dataclasses import dataclass

from .icmp import ICMPTransport, TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListenerFailure:
    """Put on the channel when a listener dies; the sweep re-raises the error."""
    error: TransportError


def reply_listener(transport: ICMPTransport, channel: queue.Queue):
    """Forwards the source address of every inbound packet until the transport fails."""
    while True:
        try:
            addr = transport.receive()
        except TransportError as e:
            logger.critical("Reply listener stopped: %s", e)
            channel.put(ListenerFailure(e))
            return
        # Blocks when the channel is full.
        channel.put(addr)


def start_listener(transport: ICMPTransport, channel: queue.Queue) -> threading.Thread:
    """Runs reply_listener on a daemon thread; it is never joined."""
    thread = threading.Thread(target=reply_listener, args=(transport, channel), daemon=True)
    thread.start()
    return thread
