"""
helpers.py
PURPOSE: Small formatting and parsing helpers shared across the package
"""

from datetime import datetime


def format_timestamp(dt=None, fmt="%Y-%m-%d %H:%M:%S"):
    """Format a datetime (default: now) for display or CSV output."""
    if dt is None:
        dt = datetime.now()
    return dt.strftime(fmt)


def format_timestamp_filename(dt=None):
    """Format a datetime so it can be embedded in a file name."""
    return format_timestamp(dt, "%Y%m%d_%H%M%S")


def parse_id_list(value):
    """
    Turn '1, 2,3' or [1, 2, 3] into a list of ints.

    Raises:
        ValueError: If any entry is not an integer
    """
    if isinstance(value, str):
        items = [s.strip() for s in value.split(",")]
        items = [s for s in items if s]
    else:
        items = list(value)

    ids = []
    for item in items:
        try:
            ids.append(int(item))
        except (TypeError, ValueError):
            raise ValueError(f"invalid instrument id: {item!r}") from None
    return ids


def parse_host_port(text):
    """
    Split 'host:port' into (host, port).

    Raises:
        ValueError: If the port is missing or not an integer in 1-65535
    """
    host, sep, port_str = text.rpartition(":")
    host = host.strip()
    if not sep or not host:
        raise ValueError(f"invalid address {text!r} (need host:port)")
    try:
        port = int(port_str.strip())
    except ValueError:
        raise ValueError(f"bad port in {text!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"port out of range in {text!r}")
    return host, port
