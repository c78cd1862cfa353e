"""Device abstractions used by the Haxidraw toolkit."""

from .base import Backend, PortInfo, PortSelector, Transport, fixed_port
from .grbl import GrblTransport, SerialBackend
from .mock import MockBackend, MockTransport

__all__ = [
    "Backend",
    "PortInfo",
    "PortSelector",
    "Transport",
    "fixed_port",
    "GrblTransport",
    "SerialBackend",
    "MockBackend",
    "MockTransport",
]
