"""Entry point for the AIS stream relay."""

import asyncio
import logging
import signal
import sys

from aiohttp import web

from ais_stream_server.config import get_settings
from ais_stream_server.dispatcher import RequestDispatcher
from ais_stream_server.http import create_http_app
from ais_stream_server.registry import ConnectionRegistry
from ais_stream_server.supervisor import StreamSupervisor

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


async def run_server() -> None:
    """Initialize and run the HTTP server until a shutdown signal arrives."""
    settings = get_settings()

    logger.info(f"Starting HTTP server on {settings.host}:{settings.http_port}")
    logger.info(f"Upstream AIS Stream: {settings.ais_stream_url}")

    registry = ConnectionRegistry(settings)
    supervisor = StreamSupervisor(settings)
    dispatcher = RequestDispatcher(registry, supervisor, settings)

    http_app = create_http_app(dispatcher)

    # Set up graceful shutdown
    stop_event = asyncio.Event()

    def handle_shutdown():
        logger.info("Shutdown signal received, stopping server...")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_shutdown)

    http_runner = web.AppRunner(http_app)
    await http_runner.setup()
    http_site = web.TCPSite(http_runner, settings.host, settings.http_port)
    await http_site.start()

    logger.info(f"HTTP server listening on http://{settings.host}:{settings.http_port}")
    logger.info(f"AIS stream endpoint: http://{settings.host}:{settings.http_port}{settings.endpoint_path}")

    await stop_event.wait()

    logger.info("Initiating graceful shutdown...")
    await supervisor.close_all(timeout=settings.shutdown_timeout)
    await http_runner.cleanup()

    logger.info("Server stopped")


def main() -> None:
    """Main entry point."""
    configure_logging(get_settings().log_level)
    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        logger.info("Server interrupted")


if __name__ == "__main__":
    main()
