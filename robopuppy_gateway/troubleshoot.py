#!/usr/bin/env python3
"""
RoboPuppy port troubleshooting.

Lists serial endpoints, shows which ones discovery would pick, and
test-opens each one to tell free ports from busy ones.

Usage:
    python -m robopuppy_gateway.troubleshoot
    python -m robopuppy_gateway.troubleshoot --no-probe
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from typing import List, Optional, TextIO

from .session import (
    DEFAULT_SETTINGS,
    PORT_BUSY_HINTS,
    candidate_endpoints,
    is_port_busy,
)
from .transport import EndpointInfo, SerialTransport, TransportError

logger = logging.getLogger(__name__)

STATUS_AVAILABLE = "available"
STATUS_BUSY = "busy"
STATUS_ERROR = "error"

NO_PORT_TIPS = (
    "Make sure the Arduino is connected via USB",
    "Check the USB cable (try a different one)",
    "Try unplugging and reconnecting the Arduino",
)

GENERAL_TIPS = (
    "Close the Arduino IDE Serial Monitor before connecting",
    "Close any other applications that might use the serial port",
    "Try unplugging and reconnecting the Arduino",
    "On Linux, add your user to the dialout group: sudo usermod -aG dialout $USER",
    "Try a different USB cable or USB port",
    "Restart your computer if the issue persists",
)


@dataclass
class ProbeResult:
    """Result of test-opening one endpoint."""
    address: str
    status: str
    message: Optional[str] = None


def probe_endpoint(transport: SerialTransport, address: str) -> ProbeResult:
    """Open and immediately close an endpoint."""
    try:
        link = transport.open(address, DEFAULT_SETTINGS, lambda event, payload: None)
    except TransportError as e:
        message = str(e)
        status = STATUS_BUSY if is_port_busy(message) else STATUS_ERROR
        return ProbeResult(address, status, message)

    try:
        link.close()
    except TransportError as e:
        logger.debug(f"Close after probe failed for {address}: {e}")
    return ProbeResult(address, STATUS_AVAILABLE)


def _describe(endpoint: EndpointInfo) -> str:
    return endpoint.description or endpoint.manufacturer or "Unknown"


def troubleshoot(
    transport: SerialTransport,
    probe: bool = True,
    out: TextIO = sys.stdout,
) -> int:
    """
    Print the troubleshooting report.

    Returns:
        Process exit status: 1 if no endpoints exist, else 0
    """
    def say(line: str = "") -> None:
        print(line, file=out)

    say("RoboPuppy Port Troubleshooting")
    say()
    say("Available Serial Ports:")

    endpoints = transport.list_endpoints()
    if not endpoints:
        say("No serial ports found!")
        for tip in NO_PORT_TIPS:
            say(f"   - {tip}")
        return 1

    for index, endpoint in enumerate(endpoints, start=1):
        say(f"   {index}. {endpoint.address}")
        say(f"      Description: {endpoint.description or 'Unknown'}")
        say(f"      Manufacturer: {endpoint.manufacturer or 'Unknown'}")
        say(f"      Product ID: {endpoint.product_id or 'Unknown'}")
        say(f"      Vendor ID: {endpoint.vendor_id or 'Unknown'}")
        say()

    say("Arduino Port Detection:")
    candidates = candidate_endpoints(endpoints)
    if candidates:
        say("Found potential Arduino ports:")
        for endpoint in candidates:
            say(f"   - {endpoint.address} ({_describe(endpoint)})")
    else:
        say("No Arduino ports detected automatically")
        say("   Try connecting the Arduino and running this script again")

    if probe:
        say()
        say("Testing Port Availability:")
        for endpoint in endpoints:
            result = probe_endpoint(transport, endpoint.address)
            if result.status == STATUS_AVAILABLE:
                say(f"   {result.address}: Available")
            elif result.status == STATUS_BUSY:
                say(f"   {result.address}: Port is locked/busy")
                say("      Solutions:")
                for hint in PORT_BUSY_HINTS:
                    say(f"      - {hint}")
            else:
                say(f"   {result.address}: {result.message}")

    say()
    say("Troubleshooting Tips:")
    for i, tip in enumerate(GENERAL_TIPS, start=1):
        say(f"{i}. {tip}")
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="RoboPuppy serial port troubleshooting",
    )
    parser.add_argument(
        "--no-probe",
        action="store_true",
        help="Skip test-opening each port",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        status = troubleshoot(SerialTransport(), probe=not args.no_probe)
    except TransportError as e:
        logger.error(f"Error during troubleshooting: {e}")
        status = 1
    sys.exit(status)


if __name__ == "__main__":
    main()
