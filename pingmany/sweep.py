"""
Runs a sweep: dispatches one probe per tick and reconciles replies against
the in-flight table until the completion timeout after the last probe.

All sweep state lives on the thread calling run(). Listener threads only
put immutable address strings on the reply channel.
"""
from __future__ import annotations
import logging
import queue
import time
from collections import deque
from enum import Enum, auto
from typing import Callable, Deque, Dict, Iterable, Optional, Union

from .configuration import SweepSettings
from .models import SweepResult, Target
from .network import ICMPTransport, ListenerFailure, start_listener

logger = logging.getLogger(__name__)

TransportFactory = Callable[[int], ICMPTransport]


class SweepState(Enum):
    """Lifecycle of a sweep."""
    RUNNING = auto()
    DRAINING = auto()
    DONE = auto()


class _TimerFired:
    pass


_TIMER = _TimerFired()


class SweepEngine:
    """Probes every target exactly once and classifies it as reachable or not."""

    def __init__(
        self,
        targets: Iterable[Target],
        settings: SweepSettings,
        transport_factory: TransportFactory = ICMPTransport.open,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.targets = list(targets)
        self.settings = settings
        self.transport_factory = transport_factory
        self.clock = clock

        self.state = SweepState.RUNNING
        self.pending: Deque[Target] = deque(self.targets)
        # address -> time the probe was sent; only outstanding probes are kept.
        self.in_flight: Dict[str, float] = {}
        self.transports: Dict[int, ICMPTransport] = {}
        self.channel: queue.Queue[Union[str, ListenerFailure]] = queue.Queue(
            maxsize=settings.reply_queue_size
        )

        self._next_tick: Optional[float] = None
        self._deadline: Optional[float] = None

    def open_transports(self):
        """Opens one transport per address family in use and starts its listener."""
        for family in dict.fromkeys(t.family for t in self.targets):
            if family in self.transports:
                continue
            transport = self.transport_factory(family)
            self.transports[family] = transport
            start_listener(transport, self.channel)

    def run(self) -> SweepResult:
        """
        Runs the sweep to completion.

        Raises:
            TransportError: if a transport cannot be opened or a listener fails.
        """
        if not self.targets:
            self.state = SweepState.DONE
            return SweepResult(targets=[])

        self.open_transports()
        logger.info(
            "Sweeping %d targets (delay %.3fs, timeout %.3fs)",
            len(self.targets), self.settings.delay, self.settings.timeout,
        )
        # The first probe goes out right away.
        self._next_tick = self.clock()

        while self.state is not SweepState.DONE:
            event = self._next_event()
            if event is _TIMER:
                if self.state is SweepState.RUNNING:
                    self._on_tick(self.clock())
                else:
                    self._on_deadline()
            else:
                self._on_reply(event)

        logger.info("Sweep finished, %d of %d unreachable", len(self.in_flight), len(self.targets))
        return SweepResult(targets=self.targets, unreachable=set(self.in_flight))

    def _due(self) -> float:
        due = self._next_tick if self.state is SweepState.RUNNING else self._deadline
        if due is None:
            raise RuntimeError(f"No timer armed in state {self.state.name}")
        return due

    def _next_event(self) -> Union[str, ListenerFailure, _TimerFired]:
        """Waits for whichever is ready first: a reply or the armed timer."""
        remaining = self._due() - self.clock()
        if remaining <= 0:
            return _TIMER
        try:
            return self.channel.get(timeout=remaining)
        except queue.Empty:
            return _TIMER

    def _on_tick(self, now: float):
        if not self.pending:
            # Stray tick after the ticker was stopped.
            return
        target = self.pending.popleft()
        self.transports[target.family].send(target.address)
        self.in_flight[target.address] = now
        if self.settings.debug:
            logger.debug("Sent echo request to %s", target.address)

        if self.pending:
            # Ticks that fell behind are dropped rather than sent in a burst.
            self._next_tick = max(self._next_tick + self.settings.delay, now)
        else:
            self._next_tick = None
            self._deadline = now + self.settings.timeout
            self.state = SweepState.DRAINING
            logger.debug("Last probe sent, waiting %.3fs for replies", self.settings.timeout)

    def _on_reply(self, event: Union[str, ListenerFailure]):
        if isinstance(event, ListenerFailure):
            raise event.error
        sent = self.in_flight.get(event)
        if sent is None:
            # Duplicate, already resolved, or not part of this sweep.
            return
        elapsed = self.clock() - sent
        if elapsed <= self.settings.timeout:
            del self.in_flight[event]
            if self.settings.debug:
                logger.debug("Reply from %s after %.3fs", event, elapsed)
        elif self.settings.debug:
            logger.debug("Ignoring late reply from %s after %.3fs", event, elapsed)

    def _on_deadline(self):
        self.state = SweepState.DONE


def sweep(
    targets: Iterable[Target],
    settings: SweepSettings,
    transport_factory: TransportFactory = ICMPTransport.open,
) -> SweepResult:
    """Convenience wrapper running a single SweepEngine."""
    return SweepEngine(targets, settings, transport_factory=transport_factory).run()
