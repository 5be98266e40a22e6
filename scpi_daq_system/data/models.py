"""
Data records for instruments, experiments and persisted samples.

Instrument and Experiment are owned by the surrounding application; the
polling layer only reads them. Sample is append-only: one is created per
successful decode per tick per instrument and never modified afterwards.
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from scpi_daq_system.hardware.scpi_transport import InstrumentAddress
from scpi_daq_system.utils.helpers import format_timestamp


class ExperimentStatus(Enum):
    """Lifecycle states of an experiment record."""
    RUNNING = "running"
    STOPPED = "stopped"
    COMPLETED = "completed"


@dataclass
class Instrument:
    """A measurement instrument known to the controller."""
    id: int
    name: str
    host: str
    port: int
    active: bool = True
    model: str = ""
    firmware: str = ""
    serial: str = ""

    @property
    def address(self) -> InstrumentAddress:
        return InstrumentAddress(self.host, self.port)

    @property
    def default_name(self) -> str:
        """Name given to instruments configured without one."""
        return f"{self.host}:{self.port}"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Experiment:
    """One measurement run over a fixed set of instruments."""
    id: int
    name: str = ""
    status: ExperimentStatus = ExperimentStatus.STOPPED
    instrument_ids: List[int] = field(default_factory=list)
    notes: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "instrument_ids": ",".join(str(i) for i in self.instrument_ids),
            "notes": self.notes,
            "start_time": format_timestamp(self.start_time) if self.start_time else None,
            "end_time": format_timestamp(self.end_time) if self.end_time else None,
        }


@dataclass(frozen=True)
class Sample:
    """
    One persisted measurement.

    Attributes:
        recorded_at: Controller wall clock when the reply was decoded
        device_time: Instrument clock text, verbatim
    """
    experiment_id: int
    instrument_id: int
    recorded_at: datetime
    device_time: str
    voltage: float
    current: float
    charge: float
    resistance: float
    source: float
    math_value: float
    temperature: float
    humidity: float
    error_code: int

    FIELDS = (
        "experiment_id", "instrument_id", "recorded_at", "device_time",
        "voltage", "current", "charge", "resistance", "source",
        "math_value", "temperature", "humidity", "error_code",
    )

    @classmethod
    def from_reply(cls, experiment_id, instrument_id, reply, recorded_at=None) -> "Sample":
        """Build a Sample from a decoded SampleReply."""
        return cls(
            experiment_id=experiment_id,
            instrument_id=instrument_id,
            recorded_at=recorded_at or datetime.now(),
            device_time=reply.device_time,
            voltage=reply.voltage,
            current=reply.current,
            charge=reply.charge,
            resistance=reply.resistance,
            source=reply.source,
            math_value=reply.math_value,
            temperature=reply.temperature,
            humidity=reply.humidity,
            error_code=reply.error_code,
        )

    def to_row(self) -> list:
        """Values in FIELDS order, timestamps formatted with milliseconds."""
        row = [getattr(self, name) for name in self.FIELDS]
        row[2] = format_timestamp(self.recorded_at, "%Y-%m-%d %H:%M:%S.%f")[:-3]
        return row
