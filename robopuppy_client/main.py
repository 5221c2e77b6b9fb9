#!/usr/bin/env python3
"""
RoboPuppy Command Client - Main Entry Point

Sends commands to a running RoboPuppy gateway over its WebSocket event
boundary. The gateway must already be connected to the robot.

Usage:
    python -m robopuppy_client.main stand
    python -m robopuppy_client.main leg 0 hip 30
    python -m robopuppy_client.main --server ws://10.0.0.5:3000/ws demo
"""

import argparse
import asyncio
import logging
import sys
from typing import Any, Dict, List, Tuple

from .ws_client import GatewayError, RobotWebSocketClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SIMPLE_COMMANDS = ("stand", "sit", "walk", "neutral", "down", "help")

# (command, payload, pause after in seconds)
DEMO_STEPS: List[Tuple[str, Dict[str, Any], float]] = [
    ("stand", {}, 2.0),
    ("sit", {}, 2.0),
    ("neutral", {}, 2.0),
    ("leg", {"legId": 0, "joint": "hip", "angle": 30}, 1.0),
    ("leg", {"legId": 0, "joint": "knee", "angle": -30}, 1.0),
    ("leg", {"legId": 0, "joint": "hip", "angle": 0}, 0.0),
    ("leg", {"legId": 0, "joint": "knee", "angle": 0}, 0.0),
]


async def run_demo(client: RobotWebSocketClient, sleep=asyncio.sleep) -> bool:
    """
    Walk through the basic poses and a single-leg wiggle.

    Returns:
        True if every step succeeded; stops at the first failure
    """
    for command, payload, pause in DEMO_STEPS:
        result = await client.send_command(command, **payload)
        if not result.get("success"):
            logger.error(f"Demo stopped at {command}: {result.get('message')}")
            return False
        logger.info(result.get("message"))
        if pause:
            await sleep(pause)

    logger.info("Demo completed!")
    return True


async def main_async(args: argparse.Namespace) -> int:
    """Async main entry point."""
    async with RobotWebSocketClient(args.server, response_timeout=args.timeout) as client:
        if args.command == "demo":
            return 0 if await run_demo(client) else 1

        if args.command == "leg":
            payload = {"legId": args.leg_id, "joint": args.joint, "angle": args.angle}
        else:
            payload = {}

        result = await client.send_command(args.command, **payload)

    if result.get("success"):
        logger.info(result.get("message"))
        return 0
    logger.error(result.get("message"))
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="RoboPuppy Command Client",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--server",
        type=str,
        default="ws://127.0.0.1:3000/ws",
        help="Gateway WebSocket URL",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=15.0,
        help="Seconds to wait for each response",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    for name in SIMPLE_COMMANDS:
        commands.add_parser(name, help=f"Send '{name}'")
    commands.add_parser("demo", help="Run the demo sequence")

    leg = commands.add_parser("leg", help="Move one joint of one leg")
    leg.add_argument("leg_id", type=int, help="Leg index 0-3")
    leg.add_argument("joint", choices=("hip", "knee"), help="Joint to move")
    leg.add_argument("angle", type=float, help="Angle in degrees, -90 to 90")

    return parser


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        status = asyncio.run(main_async(args))
    except GatewayError as e:
        logger.error(f"Client error: {e}")
        status = 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        status = 0
    sys.exit(status)


if __name__ == "__main__":
    main()
