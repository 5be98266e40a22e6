"""
Unit tests for the raw TCP command exchange.
"""

import time
import unittest

from fake_instrument import CLOSE, FakeInstrument, Partial, unused_port

from scpi_daq_system.hardware.errors import ConnectivityError
from scpi_daq_system.hardware.scpi_transport import InstrumentAddress, exchange


class TestExchange(unittest.TestCase):
    """Tests against a live fake instrument on localhost."""

    def setUp(self):
        self.instrument = FakeInstrument({
            "*IDN?": "  TH2690,V1.0.22,R08C240109 \r",
            "BYE": CLOSE,
            "FETCH:ALL_S?": Partial("1.234,-0.001,0.0"),
            "*OPC?": Partial(" 1 ", close=True),
        }).start()
        self.address = InstrumentAddress(self.instrument.host, self.instrument.port)

    def tearDown(self):
        self.instrument.stop()

    def test_reply_is_trimmed(self):
        reply = exchange(self.address, "*IDN?", timeout=1.0)
        self.assertEqual(reply, "TH2690,V1.0.22,R08C240109")

    def test_command_sent_with_crlf(self):
        exchange(self.address, "*IDN?", timeout=1.0)
        self.assertEqual(self.instrument.commands, ["*IDN?"])

    def test_silent_command_returns_empty_string(self):
        """A zero-byte read timeout is success, not an error."""
        start = time.monotonic()
        reply = exchange(self.address, "FUNC:RUN", timeout=0.2)
        elapsed = time.monotonic() - start

        self.assertEqual(reply, "")
        self.assertGreaterEqual(elapsed, 0.15)
        self.assertLess(elapsed, 1.5)

    def test_close_without_reply_is_connectivity_error(self):
        with self.assertRaises(ConnectivityError) as ctx:
            exchange(self.address, "BYE", timeout=1.0)
        self.assertEqual(ctx.exception.address, self.address)

    def test_unterminated_reply_returned_at_deadline(self):
        start = time.monotonic()
        reply = exchange(self.address, "FETCH:ALL_S?", timeout=0.3)
        elapsed = time.monotonic() - start

        self.assertEqual(reply, "1.234,-0.001,0.0")
        self.assertGreaterEqual(elapsed, 0.25)
        self.assertLess(elapsed, 1.5)

    def test_data_then_close_returns_data(self):
        reply = exchange(self.address, "*OPC?", timeout=1.0)
        self.assertEqual(reply, "1")

    def test_each_exchange_uses_new_connection(self):
        exchange(self.address, "*IDN?", timeout=1.0)
        exchange(self.address, "*IDN?", timeout=1.0)
        self.assertEqual(self.instrument.count("*IDN?"), 2)


class TestExchangeFailures(unittest.TestCase):
    """Tests for unreachable instruments."""

    def test_connection_refused(self):
        address = InstrumentAddress("127.0.0.1", unused_port())
        with self.assertRaises(ConnectivityError) as ctx:
            exchange(address, "*IDN?", timeout=0.5)

        self.assertEqual(ctx.exception.address, address)
        self.assertIsInstance(ctx.exception.cause, str)
        self.assertIn(str(address), str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, OSError)


class TestInstrumentAddress(unittest.TestCase):

    def test_str(self):
        self.assertEqual(str(InstrumentAddress("10.0.0.5", 45454)), "10.0.0.5:45454")

    def test_immutable_and_hashable(self):
        address = InstrumentAddress("10.0.0.5", 45454)
        with self.assertRaises(Exception):
            address.port = 1
        self.assertEqual({address: 1}[InstrumentAddress("10.0.0.5", 45454)], 1)


if __name__ == '__main__':
    unittest.main()
