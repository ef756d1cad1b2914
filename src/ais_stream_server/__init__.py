"""Relay from the AIS Stream websocket feed to polling HTTP clients."""

from ais_stream_server.buffer import MessageRingBuffer
from ais_stream_server.dispatcher import DispatchResult, RequestDispatcher
from ais_stream_server.errors import (
    AISStreamError,
    InvalidStateError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from ais_stream_server.models import ConnectionRecord, ConnectionStatus, SubscriptionConfig
from ais_stream_server.registry import ConnectionRegistry
from ais_stream_server.supervisor import StreamSupervisor

__version__ = "0.1.0"

__all__ = [
    "ConnectionRecord",
    "ConnectionStatus",
    "SubscriptionConfig",
    "MessageRingBuffer",
    "ConnectionRegistry",
    "StreamSupervisor",
    "RequestDispatcher",
    "DispatchResult",
    # Errors
    "AISStreamError",
    "ValidationError",
    "NotFoundError",
    "InvalidStateError",
    "TransportError",
]
