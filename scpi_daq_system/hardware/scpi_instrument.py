"""
scpi_instrument.py
PURPOSE: Fixed SCPI commands for the TH2690-family electrometer and decoding of their replies
KEY CONCEPT: FETCH:ALL_S? returns every measured quantity in one comma-separated line,
             so one exchange per instrument per poll tick is enough.
Replies:
    *IDN?         -> model,firmware,serial[,...]
    FETCH:ALL_S?  -> voltage,current,charge,resistance,time,source,math,temperature,humidity,error_code
    FUNC:RUN / FUNC:STOP / HAND:ERROR -> no reply
"""

import re
from dataclasses import dataclass
from typing import Optional

from .errors import EmptyReplyError, ProtocolDecodeError
from .scpi_transport import DEFAULT_TIMEOUT, exchange

CMD_IDENTIFY = "*IDN?"
CMD_FETCH_ALL = "FETCH:ALL_S?"
CMD_RUN = "FUNC:RUN"
CMD_STOP = "FUNC:STOP"
CMD_CLEAR_ERROR = "HAND:ERROR"

ALL_S_FIELD_COUNT = 10

# Plain decimal only: no inf/nan, hex, underscores or locale separators
_DECIMAL_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)
_INTEGER_RE = re.compile(r"[+-]?\d+", re.ASCII)


@dataclass(frozen=True)
class IdentificationReply:
    """Parsed *IDN? reply."""
    model: str
    firmware: str
    serial: str
    raw: str


@dataclass(frozen=True)
class SampleReply:
    """
    One decoded FETCH:ALL_S? reply.

    Attributes:
        device_time: Instrument clock text, kept verbatim (e.g. '12:00:00')
        error_code: Instrument error register, 0 when healthy
    """
    voltage: float
    current: float
    charge: float
    resistance: float
    device_time: str
    source: float
    math_value: float
    temperature: float
    humidity: float
    error_code: int


# ──────────────────────────────────────────────────────────────────────────
# Decoding
# ──────────────────────────────────────────────────────────────────────────

def parse_identification(raw):
    """
    Split an *IDN? reply into model, firmware and serial.

    Missing trailing fields become empty strings; extra fields are ignored.

    Raises:
        EmptyReplyError: If the reply is empty
    """
    if not raw:
        raise EmptyReplyError(CMD_IDENTIFY)

    parts = [p.strip() for p in raw.split(",")]
    parts += [""] * (3 - len(parts))
    return IdentificationReply(model=parts[0], firmware=parts[1], serial=parts[2], raw=raw)


def _parse_float(raw, text, field):
    text = text.strip()
    if not _DECIMAL_RE.fullmatch(text):
        raise ProtocolDecodeError(raw, f"parse {field}: invalid number {text!r}", field=field)
    return float(text)


def _parse_int(raw, text, field):
    text = text.strip()
    if not _INTEGER_RE.fullmatch(text):
        raise ProtocolDecodeError(raw, f"parse {field}: invalid integer {text!r}", field=field)
    return int(text)


def parse_all_s(raw):
    """
    Decode a FETCH:ALL_S? reply.

    Format: voltage,current,charge,resistance,time,source,math,temperature,humidity,error_code

    Args:
        raw: Reply text as returned by exchange()

    Returns:
        SampleReply with every field populated

    Raises:
        ProtocolDecodeError: Fewer than ten fields, or the first field that
            is not a plain decimal number (integer for error_code)
    """
    parts = raw.split(",")
    if len(parts) < ALL_S_FIELD_COUNT:
        raise ProtocolDecodeError(
            raw, f"unexpected ALL_S format: got {len(parts)} fields, need {ALL_S_FIELD_COUNT}")

    return SampleReply(
        voltage=_parse_float(raw, parts[0], "voltage"),
        current=_parse_float(raw, parts[1], "current"),
        charge=_parse_float(raw, parts[2], "charge"),
        resistance=_parse_float(raw, parts[3], "resistance"),
        device_time=parts[4].strip(),
        source=_parse_float(raw, parts[5], "source"),
        math_value=_parse_float(raw, parts[6], "math"),
        temperature=_parse_float(raw, parts[7], "temperature"),
        humidity=_parse_float(raw, parts[8], "humidity"),
        error_code=_parse_int(raw, parts[9], "error_code"),
    )


# ──────────────────────────────────────────────────────────────────────────
# Commands
# ──────────────────────────────────────────────────────────────────────────

def identify(address, timeout: Optional[float] = DEFAULT_TIMEOUT) -> str:
    """Send *IDN? and return the raw identification text (may be empty)."""
    return exchange(address, CMD_IDENTIFY, timeout)


def query_idn(address, timeout: Optional[float] = DEFAULT_TIMEOUT) -> IdentificationReply:
    """
    Send *IDN? and parse the reply.

    TH2690 returns e.g. 'TH2690,V1.0.22,R08C240109'.
    """
    raw = identify(address, timeout)
    if not raw:
        raise EmptyReplyError(CMD_IDENTIFY, address)
    return parse_identification(raw)


def fetch_all(address, timeout: Optional[float] = DEFAULT_TIMEOUT) -> SampleReply:
    """Send FETCH:ALL_S? and decode the reply."""
    raw = exchange(address, CMD_FETCH_ALL, timeout)
    if not raw:
        raise EmptyReplyError(CMD_FETCH_ALL, address)
    return parse_all_s(raw)


def run(address, timeout: Optional[float] = DEFAULT_TIMEOUT) -> None:
    """Send FUNC:RUN (start measuring). Any reply is ignored."""
    exchange(address, CMD_RUN, timeout)


def stop(address, timeout: Optional[float] = DEFAULT_TIMEOUT) -> None:
    """Send FUNC:STOP (stop measuring). Any reply is ignored."""
    exchange(address, CMD_STOP, timeout)


def clear_error(address, timeout: Optional[float] = DEFAULT_TIMEOUT) -> None:
    """Send HAND:ERROR (acknowledge the instrument error register)."""
    exchange(address, CMD_CLEAR_ERROR, timeout)
