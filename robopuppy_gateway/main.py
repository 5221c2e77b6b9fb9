#!/usr/bin/env python3
"""
RoboPuppy Web Controller - Main Entry Point

Serves the command gateway over HTTP and WebSocket and drives the robot
over a serial link.

Environment Variables:
    PORT: Listen port (default: 3000)
    HOST: Bind address (default: 0.0.0.0)
    LOG_LEVEL: Logging level name (default: INFO)

Usage:
    PORT=3000 python -m robopuppy_gateway.main
"""

import asyncio
import logging
import os
import signal
import sys
from dataclasses import dataclass

import uvicorn

from .gateway import CommandGateway

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"


@dataclass
class GatewayConfig:
    """Settings read from the environment at start-up."""
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ=None) -> 'GatewayConfig':
        """
        Load configuration from environment variables.

        Raises:
            ValueError: if PORT is not an integer in 1-65535
        """
        environ = os.environ if environ is None else environ
        raw_port = environ.get("PORT", str(DEFAULT_PORT))
        try:
            port = int(raw_port)
        except ValueError:
            raise ValueError(f"PORT must be an integer, got {raw_port!r}")
        if not 0 < port < 65536:
            raise ValueError(f"PORT out of range: {port}")

        log_level = environ.get("LOG_LEVEL", "INFO").upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"Unknown LOG_LEVEL: {log_level}")

        return cls(
            host=environ.get("HOST", DEFAULT_HOST),
            port=port,
            log_level=log_level,
        )


async def run_server(gateway: CommandGateway, config: GatewayConfig) -> None:
    """Run the gateway app with uvicorn."""
    server_config = uvicorn.Config(
        gateway.app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        access_log=True,
    )
    server = uvicorn.Server(server_config)
    await server.serve()


async def main_async(config: GatewayConfig) -> None:
    """Async main entry point."""
    gateway = CommandGateway()

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Shutdown signal received")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    logger.info(f"RoboPuppy Web Controller running on http://localhost:{config.port}")

    try:
        server_task = asyncio.create_task(run_server(gateway, config))
        shutdown_task = asyncio.create_task(shutdown_event.wait())

        done, pending = await asyncio.wait(
            [server_task, shutdown_task],
            return_when=asyncio.FIRST_COMPLETED,
        )

        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        for task in done:
            if task is server_task and task.exception():
                logger.error(f"Server error: {task.exception()}")
    finally:
        await gateway.shutdown()
        logger.info("RoboPuppy Web Controller stopped")


def main() -> None:
    """Main entry point."""
    try:
        config = GatewayConfig.from_env()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    logging.getLogger().setLevel(config.log_level)

    try:
        asyncio.run(main_async(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
