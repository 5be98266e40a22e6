"""
Unit tests for InstrumentRegistry and INSTRUMENTS parsing.
"""

import unittest

from fake_instrument import FakeInstrument, unused_port

from scpi_daq_system.control.instrument_registry import (
    InstrumentRegistry, UnknownInstrumentError, parse_instrument_list,
)
from scpi_daq_system.hardware.errors import ConnectivityError
from scpi_daq_system.hardware.scpi_transport import InstrumentAddress


class TestParseInstrumentList(unittest.TestCase):

    def test_named_entries(self):
        entries = parse_instrument_list("TH2690=192.168.1.150:45454, Bench2 = 10.0.0.5:45454")
        self.assertEqual(entries, [
            ("TH2690", "192.168.1.150", 45454),
            ("Bench2", "10.0.0.5", 45454),
        ])

    def test_unnamed_entries_use_address(self):
        entries = parse_instrument_list("192.168.1.150:45454,10.0.0.5:5025")
        self.assertEqual(entries[0], ("192.168.1.150:45454", "192.168.1.150", 45454))
        self.assertEqual(entries[1], ("10.0.0.5:5025", "10.0.0.5", 5025))

    def test_malformed_entries_skipped(self):
        with self.assertLogs("scpi_daq_system.control.instrument_registry", level="WARNING"):
            entries = parse_instrument_list("nohost,bad=1.2.3.4:port,,ok=1.2.3.4:10")
        self.assertEqual(entries, [("ok", "1.2.3.4", 10)])

    def test_empty(self):
        self.assertEqual(parse_instrument_list(""), [])
        self.assertEqual(parse_instrument_list(None), [])


class TestInstrumentRegistry(unittest.TestCase):

    def setUp(self):
        self.registry = InstrumentRegistry(timeout=0.3)

    def test_ids_assigned_from_one(self):
        a = self.registry.add("A", "10.0.0.1", 1)
        b = self.registry.add("B", "10.0.0.2", 1)
        self.assertEqual((a.id, b.id), (1, 2))

    def test_duplicate_address_returns_existing(self):
        a = self.registry.add("A", "10.0.0.1", 1)
        again = self.registry.add("Other", "10.0.0.1", 1)
        self.assertIs(a, again)
        self.assertEqual(len(self.registry.list_instruments()), 1)

    def test_default_name(self):
        inst = self.registry.add("", "10.0.0.1", 45454)
        self.assertEqual(inst.name, "10.0.0.1:45454")

    def test_resolve_preserves_order(self):
        self.registry.add("A", "10.0.0.1", 1)
        self.registry.add("B", "10.0.0.2", 1)
        resolved = self.registry.resolve("2, 1")
        self.assertEqual([i.name for i in resolved], ["B", "A"])

    def test_resolve_unknown(self):
        with self.assertRaises(UnknownInstrumentError) as ctx:
            self.registry.resolve([5])
        self.assertIn("instrument 5 not found", str(ctx.exception))

    def test_resolve_invalid(self):
        with self.assertRaises(ValueError):
            self.registry.resolve("1,x")

    def test_poll_targets(self):
        inst = self.registry.add("A", "10.0.0.1", 45454)
        self.assertEqual(InstrumentRegistry.poll_targets([inst]),
                         [(1, InstrumentAddress("10.0.0.1", 45454))])

    def test_set_active_toggles(self):
        inst = self.registry.add("A", "10.0.0.1", 1)
        self.registry.set_active(inst.id)
        self.assertFalse(inst.active)
        self.registry.set_active(inst.id)
        self.assertTrue(inst.active)
        self.registry.set_active(inst.id, False)
        self.assertEqual(self.registry.list_instruments(active_only=True), [])

    def test_remove(self):
        inst = self.registry.add("A", "10.0.0.1", 1)
        self.registry.remove(inst.id)
        with self.assertRaises(UnknownInstrumentError):
            self.registry.get(inst.id)

    def test_from_config(self):
        config = {
            "scpi": {"timeout_s": 0.7},
            "instruments": [
                {"name": "TH2690", "host": "10.0.0.1", "port": 45454},
                {"host": "10.0.0.2", "port": "45455", "active": False},
            ],
        }
        registry = InstrumentRegistry.from_config(config)
        self.assertEqual(registry.timeout, 0.7)
        instruments = registry.list_instruments()
        self.assertEqual(instruments[1].name, "10.0.0.2:45455")
        self.assertEqual(instruments[1].port, 45455)
        self.assertFalse(instruments[1].active)


class TestConnectivityCheck(unittest.TestCase):
    """ping() and discover() against fake instruments."""

    def setUp(self):
        self.instrument = FakeInstrument({"*IDN?": "TH2690,V1.0.22,R08C240109"}).start()
        self.registry = InstrumentRegistry(timeout=0.3)
        self.online = self.registry.add("", self.instrument.host, self.instrument.port)
        self.offline = self.registry.add("Bench", "127.0.0.1", unused_port())

    def tearDown(self):
        self.instrument.stop()

    def test_ping_returns_raw_idn(self):
        self.assertEqual(self.registry.ping(self.online.id), "TH2690,V1.0.22,R08C240109")

    def test_ping_unreachable_raises(self):
        with self.assertRaises(ConnectivityError):
            self.registry.ping(self.offline.id)

    def test_ping_sends_only_idn(self):
        self.registry.ping(self.online.id)
        self.assertEqual(self.instrument.commands, ["*IDN?"])

    def test_discover_enriches_and_renames(self):
        reachable = self.registry.discover()

        self.assertEqual(reachable, 1)
        self.assertEqual(self.online.model, "TH2690")
        self.assertEqual(self.online.firmware, "V1.0.22")
        self.assertEqual(self.online.serial, "R08C240109")
        self.assertEqual(self.online.name, "TH2690")
        self.assertEqual(self.offline.name, "Bench")
        self.assertEqual(self.offline.model, "")

    def test_discover_keeps_custom_name(self):
        self.online.name = "Left electrometer"
        self.registry.discover()
        self.assertEqual(self.online.name, "Left electrometer")
        self.assertEqual(self.online.model, "TH2690")


if __name__ == '__main__':
    unittest.main()
