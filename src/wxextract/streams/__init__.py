"""Producers of decoded grid text and the reader that consumes them."""

from __future__ import annotations

from .base import ByteStreamHandle, StreamFactory
from .eccodes import EccodesStreamFactory
from .process import ProcessStream
from .reader import GridStreamReader
from .session import StreamSession
from .synthetic import IteratorStream, SyntheticGrid

__all__ = [
    "ByteStreamHandle",
    "EccodesStreamFactory",
    "GridStreamReader",
    "IteratorStream",
    "ProcessStream",
    "StreamFactory",
    "StreamSession",
    "SyntheticGrid",
]
