"""Supervision of outbound AIS Stream websocket connections."""

import asyncio
import json
import logging
from typing import Any, Callable, Optional

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException

from ais_stream_server.config import Settings, get_settings
from ais_stream_server.errors import InvalidStateError, TransportError
from ais_stream_server.models import ConnectionRecord, ConnectionStatus, SubscriptionConfig

logger = logging.getLogger(__name__)

# Called as factory(uri, open_timeout=...) and used as an async context manager
ConnectFactory = Callable[..., Any]


class StreamSupervisor:
    """
    Runs one asyncio task per connection record.

    Each task opens the upstream websocket, sends the subscription handshake
    and feeds inbound frames into the record until the socket closes, fails,
    or the task is cancelled by a disconnect.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        connect_factory: Optional[ConnectFactory] = None,
    ):
        """
        Initialize the supervisor.

        Args:
            settings: Application settings.
            connect_factory: Replacement for ``websockets.asyncio.client.connect``.
        """
        self.settings = settings or get_settings()
        self._connect = connect_factory or connect
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_connection_count(self) -> int:
        """Return the number of supervisor tasks still running."""
        return sum(1 for task in self._tasks if not task.done())

    def start(self, record: ConnectionRecord, subscription: SubscriptionConfig) -> asyncio.Task:
        """
        Schedule the upstream connection for a record.

        Returns immediately; the transport opens asynchronously and progress
        is only visible through the record's status.
        """
        task = asyncio.create_task(
            self._run(record, subscription), name=f"ais-stream-{record.id}"
        )
        record.task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        # A task cancelled before its first step never runs its finally block
        task.add_done_callback(lambda _: record.mark_disconnected())
        return task

    async def _run(self, record: ConnectionRecord, subscription: SubscriptionConfig) -> None:
        logger.info(f"Opening AIS Stream connection {record.id}")
        try:
            async with self._connect(
                self.settings.ais_stream_url,
                open_timeout=self.settings.open_timeout,
            ) as websocket:
                record.mark_connected(websocket)
                logger.info(f"AIS Stream connected: {record.id}")

                if not await self._send_handshake(record, subscription):
                    return
                record.mark_subscribed()
                logger.info(f"AIS Stream subscribed: {record.id}")

                async for frame in websocket:
                    self._handle_frame(record, frame)

        except asyncio.CancelledError:
            logger.info(f"AIS Stream connection {record.id} closed on request")
            raise
        except ConnectionClosedError as e:
            logger.error(f"AIS Stream connection {record.id} closed abnormally: {e}")
            record.mark_error(e)
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            logger.error(f"AIS Stream error for {record.id}: {e}")
            record.mark_error(e)
        except Exception as e:
            logger.error(f"Unexpected error on AIS Stream connection {record.id}: {e}", exc_info=True)
            record.mark_error(e)
        finally:
            record.mark_disconnected()
            logger.info(f"AIS Stream disconnected: {record.id} (status={record.status.value})")

    async def _send_handshake(
        self, record: ConnectionRecord, subscription: SubscriptionConfig
    ) -> bool:
        """
        Send the subscription message over a freshly opened socket.

        Returns:
            True if the send raised no error, False if the record moved to error.
        """
        payload = json.dumps(subscription.to_handshake(record.api_key))
        try:
            await record.websocket.send(payload)
        except (ConnectionClosed, OSError) as e:
            logger.error(f"Failed to send subscription for {record.id}: {e}")
            record.mark_error(e)
            return False
        return True

    def _handle_frame(self, record: ConnectionRecord, frame: str | bytes) -> None:
        """Decode one inbound frame; malformed frames are logged and dropped."""
        if isinstance(frame, bytes):
            try:
                frame = frame.decode("utf-8")
            except UnicodeDecodeError as e:
                logger.warning(f"Dropping undecodable frame on {record.id}: {e}")
                return

        try:
            message = json.loads(frame)
        except json.JSONDecodeError as e:
            logger.warning(f"Dropping malformed frame on {record.id}: {e}")
            return

        record.record_message(message)

    async def send_subscription(
        self, record: ConnectionRecord, subscription: SubscriptionConfig
    ) -> None:
        """
        Re-send the handshake on a subscribed connection.

        Raises:
            InvalidStateError: If the connection is not subscribed. Nothing is sent.
            TransportError: If the send fails; the record moves to error.
        """
        if record.status != ConnectionStatus.SUBSCRIBED or record.websocket is None:
            raise InvalidStateError("Connection is not active")

        api_key = subscription.api_key or record.api_key
        try:
            await record.websocket.send(json.dumps(subscription.to_handshake(api_key)))
        except (ConnectionClosed, OSError) as e:
            logger.error(f"Failed to update subscription for {record.id}: {e}")
            record.mark_error(e)
            raise TransportError("Failed to update subscription") from e

        record.api_key = api_key
        logger.info(f"Subscription updated for {record.id}")

    def close(self, record: ConnectionRecord) -> bool:
        """
        Request the record's socket to close without waiting for it.

        Returns:
            True if a running connection was asked to stop.
        """
        if record.task is None or record.task.done():
            return False
        record.task.cancel()
        return True

    async def close_all(self, timeout: float = 5.0) -> None:
        """
        Close every upstream connection, waiting up to ``timeout`` seconds.
        """
        tasks = [task for task in self._tasks if not task.done()]
        if not tasks:
            logger.info("No active upstream connections to close")
            return

        logger.info(f"Closing {len(tasks)} upstream connection(s)...")
        for task in tasks:
            task.cancel()

        _, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            logger.warning(
                f"Timeout after {timeout}s while closing connections, "
                f"{len(pending)} still pending"
            )
        else:
            logger.info("All upstream connections closed")
