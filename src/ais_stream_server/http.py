"""HTTP endpoints using aiohttp."""

import logging
from collections import Counter
from datetime import datetime, timezone

from aiohttp import web

from ais_stream_server.dispatcher import RequestDispatcher
from ais_stream_server.models import ConnectionStatus

logger = logging.getLogger(__name__)


def _method_not_allowed() -> web.Response:
    return web.json_response({"message": "Method not allowed"}, status=405)


async def ais_stream_handler(request: web.Request) -> web.Response:
    """
    AIS stream endpoint.

    Accepts a JSON object with an ``action`` field and returns the
    dispatcher's response.
    """
    if request.method != "POST":
        return _method_not_allowed()

    try:
        body = await request.json()
    except ValueError:
        # JSONDecodeError and UnicodeDecodeError are both ValueErrors
        return web.json_response(
            {"success": False, "message": "Request body must be valid JSON"}, status=400
        )
    if not isinstance(body, dict):
        return web.json_response(
            {"success": False, "message": "Request body must be a JSON object"}, status=400
        )

    dispatcher: RequestDispatcher = request.app["dispatcher"]
    result = await dispatcher.dispatch(body)
    return web.json_response(result.body, status=result.status)


async def status_handler(request: web.Request) -> web.Response:
    """
    Maritime system status endpoint.

    Summarizes the live upstream connections held by the registry.
    """
    if request.method != "GET":
        return _method_not_allowed()

    dispatcher: RequestDispatcher = request.app["dispatcher"]
    records = dispatcher.registry.list_all()
    by_status = Counter(record.status.value for record in records)

    return web.json_response(
        {
            "success": True,
            "data": {
                "lastUpdate": datetime.now(timezone.utc).isoformat(),
                "aisStreamStatus": {
                    "streamUrl": dispatcher.settings.ais_stream_url,
                    "connectionCount": len(records),
                    "activeConnections": by_status[ConnectionStatus.SUBSCRIBED.value],
                    "connectionsByStatus": {
                        status.value: by_status[status.value] for status in ConnectionStatus
                    },
                    "messageCount": sum(record.message_count for record in records),
                    "evictedMessages": sum(
                        record.recent_messages.evicted_count for record in records
                    ),
                },
            },
            "message": "Maritime status retrieved successfully",
        }
    )


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Returns server status and active upstream connection count.
    """
    dispatcher: RequestDispatcher = request.app["dispatcher"]

    return web.json_response(
        {
            "status": "healthy",
            "active_connections": dispatcher.supervisor.active_connection_count,
            "registered_connections": len(dispatcher.registry),
        }
    )


def create_http_app(dispatcher: RequestDispatcher) -> web.Application:
    """
    Create and configure the aiohttp application.

    Args:
        dispatcher: Request dispatcher wired to the registry and supervisor.

    Returns:
        Configured aiohttp Application.
    """
    app = web.Application()
    settings = dispatcher.settings

    # Store dispatcher in app for access in request handlers
    app["dispatcher"] = dispatcher

    # Register routes
    app.router.add_route("*", settings.endpoint_path, ais_stream_handler)
    app.router.add_route("*", settings.status_path, status_handler)
    app.router.add_get("/health", health_handler)

    logger.info(
        f"HTTP routes registered: POST {settings.endpoint_path}, "
        f"GET {settings.status_path}, GET /health"
    )

    return app
