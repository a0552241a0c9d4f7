import queue
import socket
import threading
import time

from pingmany.configuration import SweepSettings
from pingmany.models import Target


class FakeTransport:
    """Stands in for ICMPTransport; replies are scheduled by the owning FakeNetwork."""

    def __init__(self, network, family):
        self.network = network
        self.family = family
        self.inbox = queue.Queue()

    def send(self, dst):
        self.network.sent.append((dst, time.monotonic()))
        for source, latency in self.network.replies.get(dst, []):
            timer = threading.Timer(latency, self.inbox.put, args=(source,))
            timer.daemon = True
            timer.start()

    def receive(self):
        item = self.inbox.get()
        if isinstance(item, Exception):
            raise item
        return item


class FakeNetwork:
    """
    replies: dict destination -> list of (source address, latency in seconds)
    Destinations missing from the dict never reply.
    """

    def __init__(self, replies=None):
        self.replies = replies or {}
        self.sent = []
        self.transports = {}

    def factory(self, family):
        transport = FakeTransport(self, family)
        self.transports[family] = transport
        return transport



def v4(address):
    return Target(address=address, family=socket.AF_INET)


def v6(address):
    return Target(address=address, family=socket.AF_INET6)


def fast_settings(delay=0.05, timeout=0.2):
    return SweepSettings(delay=delay, timeout=timeout, reply_queue_size=5, debug=True)
