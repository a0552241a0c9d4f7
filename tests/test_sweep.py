import socket
import time

import pytest

from conftest import FakeNetwork, fast_settings, v4, v6
from pingmany.network import TransportError
from pingmany.sweep import SweepEngine, SweepState


def test_reachable_and_unreachable_targets():
    """A replies after 10ms, B never replies."""
    net = FakeNetwork({"192.0.2.1": [("192.0.2.1", 0.01)]})
    targets = [v4("192.0.2.1"), v4("192.0.2.2")]
    engine = SweepEngine(targets, fast_settings(delay=0.05, timeout=0.2), transport_factory=net.factory)

    result = engine.run()

    assert engine.state is SweepState.DONE
    assert [t.address for t in result.reachable()] == ["192.0.2.1"]
    assert [t.address for t in result.unreachable_targets()] == ["192.0.2.2"]
    assert result.unreachable == {"192.0.2.2"}


def test_every_target_classified_exactly_once():
    replies = {f"192.0.2.{i}": [(f"192.0.2.{i}", 0.005)] for i in range(1, 11, 2)}
    net = FakeNetwork(replies)
    targets = [v4(f"192.0.2.{i}") for i in range(1, 11)]

    result = SweepEngine(targets, fast_settings(delay=0.01, timeout=0.15), transport_factory=net.factory).run()

    reachable = {t.address for t in result.reachable()}
    unreachable = {t.address for t in result.unreachable_targets()}
    assert reachable.isdisjoint(unreachable)
    assert reachable | unreachable == {t.address for t in targets}
    assert reachable == set(replies)


def test_probes_sent_once_in_input_order():
    net = FakeNetwork()
    targets = [v4("198.51.100.3"), v4("198.51.100.1"), v4("198.51.100.2")]

    SweepEngine(targets, fast_settings(delay=0.01, timeout=0.05), transport_factory=net.factory).run()

    assert [dst for dst, _ in net.sent] == ["198.51.100.3", "198.51.100.1", "198.51.100.2"]


def test_single_target_without_reply_waits_for_timeout():
    net = FakeNetwork()
    start = time.monotonic()

    result = SweepEngine([v4("192.0.2.7")], fast_settings(timeout=0.1), transport_factory=net.factory).run()

    assert time.monotonic() - start >= 0.1
    assert result.unreachable == {"192.0.2.7"}


def test_first_probe_is_sent_without_waiting_for_delay():
    net = FakeNetwork()
    start = time.monotonic()

    SweepEngine([v4("192.0.2.7")], fast_settings(delay=10.0, timeout=0.05), transport_factory=net.factory).run()

    assert len(net.sent) == 1
    assert net.sent[0][1] - start < 1.0
    assert time.monotonic() - start < 1.0


def test_run_lasts_at_least_dispatch_time_plus_timeout():
    net = FakeNetwork()
    targets = [v4("192.0.2.1"), v4("192.0.2.2"), v4("192.0.2.3")]
    start = time.monotonic()

    SweepEngine(targets, fast_settings(delay=0.05, timeout=0.1), transport_factory=net.factory).run()

    assert time.monotonic() - start >= 2 * 0.05 + 0.1


def test_all_replies_do_not_end_run_early():
    net = FakeNetwork({"192.0.2.1": [("192.0.2.1", 0.001)]})
    start = time.monotonic()

    result = SweepEngine([v4("192.0.2.1")], fast_settings(timeout=0.15), transport_factory=net.factory).run()

    assert time.monotonic() - start >= 0.15
    assert result.unreachable == set()


def test_late_reply_leaves_target_unreachable():
    """The reply to A arrives while the sweep still runs, but after its timeout."""
    net = FakeNetwork({"192.0.2.1": [("192.0.2.1", 0.2)]})
    targets = [v4("192.0.2.1"), v4("192.0.2.2"), v4("192.0.2.3")]

    result = SweepEngine(targets, fast_settings(delay=0.15, timeout=0.1), transport_factory=net.factory).run()

    assert result.unreachable == {"192.0.2.1", "192.0.2.2", "192.0.2.3"}


def test_reply_from_unknown_address_is_ignored():
    net = FakeNetwork({"192.0.2.1": [("203.0.113.9", 0.01)]})

    result = SweepEngine([v4("192.0.2.1")], fast_settings(timeout=0.1), transport_factory=net.factory).run()

    assert result.unreachable == {"192.0.2.1"}


def test_duplicate_replies_are_ignored():
    net = FakeNetwork({"192.0.2.1": [("192.0.2.1", 0.01), ("192.0.2.1", 0.02), ("192.0.2.1", 0.03)]})
    targets = [v4("192.0.2.1"), v4("192.0.2.2")]

    result = SweepEngine(targets, fast_settings(delay=0.01, timeout=0.1), transport_factory=net.factory).run()

    assert result.unreachable == {"192.0.2.2"}


def test_one_transport_per_family_in_use():
    net = FakeNetwork({"2001:db8::1": [("2001:db8::1", 0.01)]})
    targets = [v4("192.0.2.1"), v6("2001:db8::1"), v4("192.0.2.2")]

    result = SweepEngine(targets, fast_settings(delay=0.01, timeout=0.1), transport_factory=net.factory).run()

    assert set(net.transports) == {socket.AF_INET, socket.AF_INET6}
    assert result.unreachable == {"192.0.2.1", "192.0.2.2"}


def test_ipv4_only_opens_no_ipv6_transport():
    net = FakeNetwork()

    SweepEngine([v4("192.0.2.1")], fast_settings(timeout=0.02), transport_factory=net.factory).run()

    assert list(net.transports) == [socket.AF_INET]


def test_empty_target_list_opens_nothing():
    net = FakeNetwork()
    engine = SweepEngine([], fast_settings(), transport_factory=net.factory)

    result = engine.run()

    assert result.targets == []
    assert net.transports == {}
    assert engine.state is SweepState.DONE


def test_transport_open_failure_propagates():
    def failing_factory(family):
        raise TransportError("Operation not permitted")

    with pytest.raises(TransportError):
        SweepEngine([v4("192.0.2.1")], fast_settings(), transport_factory=failing_factory).run()


def test_listener_failure_aborts_sweep():
    net = FakeNetwork()
    engine = SweepEngine([v4("192.0.2.1"), v4("192.0.2.2")], fast_settings(delay=0.05, timeout=1.0),
                         transport_factory=net.factory)
    engine.open_transports()
    net.transports[socket.AF_INET].inbox.put(TransportError("receive failed"))

    with pytest.raises(TransportError, match="receive failed"):
        engine.run()


def test_reply_within_timeout_removes_entry():
    now = [100.0]
    engine = SweepEngine([v4("192.0.2.1")], fast_settings(timeout=1.0), clock=lambda: now[0])
    engine.in_flight["192.0.2.1"] = 100.0

    now[0] = 101.0
    engine._on_reply("192.0.2.1")

    assert engine.in_flight == {}


def test_reply_after_timeout_keeps_entry():
    now = [100.0]
    engine = SweepEngine([v4("192.0.2.1")], fast_settings(timeout=1.0), clock=lambda: now[0])
    engine.in_flight["192.0.2.1"] = 100.0

    now[0] = 101.5
    engine._on_reply("192.0.2.1")

    assert engine.in_flight == {"192.0.2.1": 100.0}


def test_tick_after_queue_drained_is_noop():
    net = FakeNetwork()
    engine = SweepEngine([v4("192.0.2.1")], fast_settings(timeout=0.5), transport_factory=net.factory)
    engine.open_transports()

    engine._on_tick(1.0)
    assert engine.state is SweepState.DRAINING
    assert engine.in_flight == {"192.0.2.1": 1.0}

    engine._on_tick(2.0)
    assert len(net.sent) == 1
    assert engine.in_flight == {"192.0.2.1": 1.0}


def test_waiting_without_armed_timer_is_an_error():
    engine = SweepEngine([v4("192.0.2.1")], fast_settings())

    with pytest.raises(RuntimeError, match="No timer armed"):
        engine._next_event()
