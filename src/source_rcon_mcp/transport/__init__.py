"""Byte-stream transports for the RCON connection."""

from .base import Transport, TransportListener
from .tcp_connection import TCPTransport
