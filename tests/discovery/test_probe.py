"""
Tests for discovery/probe.py - TCP liveness checks and readiness polling.
"""

import socket
import unittest
from unittest.mock import patch

from intrig.discovery.probe import (
    LivenessProber,
    is_daemon_running,
    is_port_in_use,
    poll_until,
    wait_for_daemon_ready,
)
from intrig.discovery.metadata import DiscoveryMetadata


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestIsPortInUse(unittest.TestCase):

    def test_listening_port_is_in_use(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
            listener.bind(("127.0.0.1", 0))
            listener.listen(1)
            port = listener.getsockname()[1]

            self.assertTrue(is_port_in_use(port))
            record = DiscoveryMetadata("p", f"http://localhost:{port}", port, 1, "t", "/p", "react")
            self.assertTrue(is_daemon_running(record))

    def test_closed_port_is_not_in_use(self):
        self.assertFalse(is_port_in_use(free_port()))

    def test_invalid_ports_never_raise(self):
        self.assertFalse(is_port_in_use(70000))
        self.assertFalse(is_port_in_use(-1))

    def test_underlying_errors_yield_false(self):
        for error in (
            ConnectionRefusedError(),
            socket.timeout(),
            socket.gaierror("dns"),
            PermissionError("denied"),
        ):
            with patch("intrig.discovery.probe.socket.create_connection", side_effect=error):
                self.assertFalse(is_port_in_use(5050))


class TestWaitForDaemonReady(unittest.TestCase):

    def test_returns_true_as_soon_as_port_is_live(self):
        clock = FakeClock()
        readings = iter([False, False, True])

        ready = wait_for_daemon_ready(
            5050,
            max_wait=10.0,
            poll_interval=0.5,
            probe=lambda port: next(readings),
            sleep=clock.sleep,
            clock=clock,
        )

        self.assertTrue(ready)
        self.assertEqual(clock.sleeps, [0.5, 0.5])
        self.assertEqual(clock.now, 1.0)

    def test_returns_false_only_after_full_budget(self):
        clock = FakeClock()
        probes = []

        ready = wait_for_daemon_ready(
            5050,
            max_wait=10.0,
            poll_interval=0.5,
            probe=lambda port: probes.append(port) or False,
            sleep=clock.sleep,
            clock=clock,
        )

        self.assertFalse(ready)
        self.assertGreaterEqual(clock.now, 10.0)
        self.assertEqual(len(probes), 20)
        self.assertTrue(all(s == 0.5 for s in clock.sleeps))

    def test_poll_until_returns_first_truthy_value(self):
        clock = FakeClock()
        values = iter([None, None, "record"])

        result = poll_until(lambda: next(values), max_wait=5.0, poll_interval=0.5,
                            sleep=clock.sleep, clock=clock)

        self.assertEqual(result, "record")
        self.assertEqual(clock.now, 1.0)
        self.assertIsNone(poll_until(lambda: None, max_wait=1.0, poll_interval=0.5,
                                     sleep=clock.sleep, clock=clock))

    def test_prober_object_uses_injected_clock(self):
        clock = FakeClock()
        prober = LivenessProber(sleep=clock.sleep, clock=clock)

        with patch("intrig.discovery.probe.is_port_in_use", return_value=False):
            self.assertFalse(prober.wait_for_daemon_ready(5050, max_wait=2.0, poll_interval=0.5))
        self.assertEqual(clock.now, 2.0)


if __name__ == "__main__":
    unittest.main()
