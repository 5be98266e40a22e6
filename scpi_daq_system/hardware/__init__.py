"""Hardware layer for SCPI instruments reached over raw TCP sockets."""
from .errors import ConnectivityError, EmptyReplyError, InstrumentError, ProtocolDecodeError
from .scpi_transport import InstrumentAddress, exchange
from .scpi_instrument import IdentificationReply, SampleReply
