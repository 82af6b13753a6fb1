"""Data models for connection endpoints and state."""

from .connection import ConnectionState, Endpoint
