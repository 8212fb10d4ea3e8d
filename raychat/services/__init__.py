"""Service layer utilities consolidating reusable business logic."""

from .chunk_builder import chunk_builder
from .network_manager import network_manager
from .response_parser import EventDecodeError, response_parser

__all__ = [
    "chunk_builder",
    "network_manager",
    "EventDecodeError",
    "response_parser",
]
