"""In-memory registry of upstream stream connections."""

import logging
import threading
from typing import Optional
from uuid import uuid4

from ais_stream_server.config import Settings, get_settings
from ais_stream_server.models import ConnectionRecord

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Process-wide table of connection records keyed by connection id.

    The table is ephemeral: it starts empty and is lost on restart. A lock
    guards every access so the registry stays consistent if it is ever
    touched from outside the event loop thread.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize an empty registry."""
        self.settings = settings or get_settings()
        self._records: dict[str, ConnectionRecord] = {}
        self._lock = threading.Lock()

    def _new_id(self) -> str:
        connection_id = str(uuid4())
        while connection_id in self._records:
            connection_id = str(uuid4())
        return connection_id

    def create(self, api_key: str = "") -> ConnectionRecord:
        """
        Register a new record in ``connecting`` status.

        Args:
            api_key: AIS Stream API key used for the handshake.

        Returns:
            The created ConnectionRecord. Its id never collides with a live one.
        """
        with self._lock:
            record = ConnectionRecord(
                id=self._new_id(),
                api_key=api_key,
                buffer_capacity=self.settings.message_buffer_capacity,
            )
            self._records[record.id] = record

        logger.info(f"Registered connection {record.id}")
        return record

    def get(self, connection_id: str) -> Optional[ConnectionRecord]:
        """
        Retrieve a record from the registry.

        Returns:
            The ConnectionRecord if found, None otherwise
        """
        with self._lock:
            return self._records.get(connection_id)

    def remove(self, connection_id: str) -> bool:
        """
        Remove a record from the registry.

        Returns:
            True if the record was removed, False if it didn't exist
        """
        with self._lock:
            record = self._records.pop(connection_id, None)

        if record is None:
            logger.warning(f"Connection {connection_id} not found for removal")
            return False
        logger.info(f"Removed connection {connection_id}")
        return True

    def list_all(self) -> list[ConnectionRecord]:
        """Return all records in insertion order."""
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
