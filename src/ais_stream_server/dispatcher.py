"""Action dispatcher for the AIS stream endpoint."""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ais_stream_server.config import Settings, get_settings
from ais_stream_server.errors import (
    AISStreamError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ais_stream_server.models import ConnectionRecord, ConnectionStatus, SubscriptionConfig
from ais_stream_server.registry import ConnectionRegistry
from ais_stream_server.supervisor import StreamSupervisor

logger = logging.getLogger(__name__)

ActionHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


@dataclass
class DispatchResult:
    """HTTP status and JSON body produced for one request."""

    status: int
    body: dict[str, Any]


class RequestDispatcher:
    """
    Maps a request's ``action`` to registry and supervisor operations.

    Supported actions: ``connect``, ``disconnect``, ``updateSubscription``
    and ``getStatus``. ``connect`` returns as soon as the upstream open is
    scheduled; callers poll ``getStatus`` to observe progress.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        supervisor: StreamSupervisor,
        settings: Optional[Settings] = None,
    ):
        self.registry = registry
        self.supervisor = supervisor
        self.settings = settings or get_settings()
        self._actions: dict[str, ActionHandler] = {
            "connect": self.connect,
            "disconnect": self.disconnect,
            "updateSubscription": self.update_subscription,
            "getStatus": self.get_status,
        }

    async def dispatch(self, body: dict[str, Any]) -> DispatchResult:
        """
        Run the action named in ``body`` and format the response.

        Known errors map to their HTTP status; anything else is logged and
        reported as a generic 500.
        """
        action = body.get("action")
        handler = self._actions.get(action) if isinstance(action, str) else None

        try:
            if handler is None:
                raise ValidationError("Invalid action")
            return DispatchResult(200, await handler(body))
        except AISStreamError as e:
            logger.info(f"Action {action!r} rejected ({e.status_code}): {e.message}")
            return DispatchResult(e.status_code, e.to_dict())
        except Exception:
            logger.exception(f"AIS Stream API error during {action!r}")
            return DispatchResult(
                500, {"success": False, "message": "AIS Stream operation failed"}
            )

    def _require(self, connection_id: Any) -> ConnectionRecord:
        record = self.registry.get(connection_id) if isinstance(connection_id, str) else None
        if record is None:
            raise NotFoundError()
        return record

    async def connect(self, body: dict[str, Any]) -> dict[str, Any]:
        api_key = body.get("aisApiKey")
        if not api_key or not isinstance(api_key, str):
            raise ValidationError("AIS API key is required")
        subscription = SubscriptionConfig.parse(body.get("subscriptionConfig"))

        record = self.registry.create(api_key=api_key)
        self.supervisor.start(record, subscription)

        return {
            "success": True,
            "connectionId": record.id,
            "message": "AIS Stream connection initiated",
        }

    async def disconnect(self, body: dict[str, Any]) -> dict[str, Any]:
        record = self._require(body.get("connectionId"))
        self.supervisor.close(record)
        self.registry.remove(record.id)
        return {"success": True, "message": "Connection closed"}

    async def update_subscription(self, body: dict[str, Any]) -> dict[str, Any]:
        record = self._require(body.get("connectionId"))
        if record.status != ConnectionStatus.SUBSCRIBED:
            raise InvalidStateError("Connection is not active")
        subscription = SubscriptionConfig.parse(body.get("subscriptionConfig"))
        await self.supervisor.send_subscription(record, subscription)
        return {"success": True, "message": "Subscription updated"}

    async def get_status(self, body: dict[str, Any]) -> dict[str, Any]:
        connection_id = body.get("connectionId")
        if connection_id:
            record = self._require(connection_id)
            return {
                "success": True,
                "connection": record.to_dict(recent=self.settings.status_recent_messages),
            }

        connections = [record.to_summary() for record in self.registry.list_all()]
        return {
            "success": True,
            "totalConnections": len(connections),
            "connections": connections,
        }
