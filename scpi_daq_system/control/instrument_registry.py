"""
instrument_registry.py
PURPOSE: Keep the list of known instruments, resolve them for poll jobs,
         and run the *IDN? connectivity check (admin ping, startup discovery)
KEY CONCEPT: Nothing here touches the poll runner; a ping never starts a
             job and never writes samples.
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from scpi_daq_system.data.models import Instrument
from scpi_daq_system.hardware import scpi_instrument
from scpi_daq_system.hardware.errors import InstrumentError
from scpi_daq_system.hardware.scpi_transport import DEFAULT_TIMEOUT, InstrumentAddress
from scpi_daq_system.utils.helpers import parse_host_port, parse_id_list

logger = logging.getLogger(__name__)


class UnknownInstrumentError(LookupError):
    """Raised when an instrument id is not in the registry."""

    def __init__(self, instrument_id):
        self.instrument_id = instrument_id
        super().__init__(f"instrument {instrument_id} not found")


def parse_instrument_list(text) -> List[Tuple[str, str, int]]:
    """
    Parse an INSTRUMENTS string into (name, host, port) entries.

    Format: 'TH2690=192.168.1.150:45454,Bench2=10.0.0.5:45454'
    or simply '192.168.1.150:45454,10.0.0.5:45454'. Entries without a name
    are named 'host:port'. Malformed entries are logged and skipped.
    """
    entries = []
    for item in (text or "").split(","):
        item = item.strip()
        if not item:
            continue

        name, sep, addr = item.partition("=")
        if not sep:
            name, addr = "", item

        try:
            host, port = parse_host_port(addr.strip())
        except ValueError as e:
            logger.warning("INSTRUMENTS: skipping %r: %s", item, e)
            continue

        entries.append((name.strip() or f"{host}:{port}", host, port))
    return entries


class InstrumentRegistry:
    """In-process store of Instrument records, ids assigned from 1."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        """
        Args:
            timeout: Deadline in seconds for *IDN? exchanges
        """
        self.timeout = timeout
        self._instruments: Dict[int, Instrument] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config) -> "InstrumentRegistry":
        """Build a registry from a loaded configuration dict."""
        registry = cls(timeout=config["scpi"]["timeout_s"])
        for entry in config.get("instruments", []):
            registry.add(entry.get("name", ""), entry["host"], int(entry["port"]),
                         active=entry.get("active", True))
        return registry

    def add(self, name, host, port, active=True) -> Instrument:
        """
        Register an instrument.

        An instrument with the same host and port is returned unchanged
        instead of being added twice.
        """
        with self._lock:
            for inst in self._instruments.values():
                if inst.host == host and inst.port == port:
                    return inst
            inst = Instrument(id=self._next_id, name=name or f"{host}:{port}",
                              host=host, port=port, active=active)
            self._instruments[inst.id] = inst
            self._next_id += 1

        logger.info("Instrument added: %s (%s:%d)", inst.name, host, port)
        return inst

    def remove(self, instrument_id) -> None:
        with self._lock:
            if self._instruments.pop(instrument_id, None) is None:
                raise UnknownInstrumentError(instrument_id)

    def get(self, instrument_id) -> Instrument:
        with self._lock:
            try:
                return self._instruments[instrument_id]
            except KeyError:
                raise UnknownInstrumentError(instrument_id) from None

    def list_instruments(self, active_only=False) -> List[Instrument]:
        """All instruments ordered by id."""
        with self._lock:
            instruments = sorted(self._instruments.values(), key=lambda i: i.id)
        if active_only:
            return [i for i in instruments if i.active]
        return instruments

    def set_active(self, instrument_id, active: Optional[bool] = None) -> Instrument:
        """Set the active flag, or toggle it when active is None."""
        inst = self.get(instrument_id)
        inst.active = (not inst.active) if active is None else bool(active)
        return inst

    def resolve(self, instrument_ids) -> List[Instrument]:
        """
        Look up instruments by id, preserving the requested order.

        Args:
            instrument_ids: Iterable of ints, or a comma-separated string

        Raises:
            ValueError: If an id is not an integer
            UnknownInstrumentError: If an id is not registered
        """
        return [self.get(i) for i in parse_id_list(instrument_ids)]

    @staticmethod
    def poll_targets(instruments: Iterable[Instrument]) -> List[Tuple[int, InstrumentAddress]]:
        """(instrument_id, address) pairs in the shape PollRunner.start expects."""
        return [(inst.id, inst.address) for inst in instruments]

    # ──────────────────────────────────────────────────────────────────────
    # Connectivity check
    # ──────────────────────────────────────────────────────────────────────

    def ping(self, instrument_id) -> str:
        """
        Send *IDN? to one instrument and return the raw reply.

        Raises:
            UnknownInstrumentError: If the id is not registered
            InstrumentError: If the instrument cannot be reached
        """
        inst = self.get(instrument_id)
        return scpi_instrument.identify(inst.address, self.timeout)

    def discover(self) -> int:
        """
        Query *IDN? on every instrument and store model, firmware and serial.

        Instruments still carrying their default 'host:port' name are renamed
        to their model. Unreachable instruments are logged and left as they are.

        Returns:
            Number of instruments that answered
        """
        reachable = 0
        for inst in self.list_instruments():
            try:
                info = scpi_instrument.query_idn(inst.address, self.timeout)
            except InstrumentError as e:
                logger.warning("Instrument %s (%s) unreachable: %s", inst.name, inst.address, e)
                continue

            inst.model = info.model
            inst.firmware = info.firmware
            inst.serial = info.serial
            if inst.name == inst.default_name and info.model:
                inst.name = info.model
            reachable += 1
            logger.info("Instrument OK: %s (model=%s fw=%s serial=%s)",
                        inst.name, info.model, info.firmware, info.serial)
        return reachable
