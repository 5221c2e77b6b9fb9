"""
RoboPuppy Gateway - serial session with an HTTP/WebSocket control interface.

This module runs on the machine wired to the robot and:
- Discovers and opens the robot's serial port
- Sends line-delimited commands (stand/sit/walk/leg angles)
- Exposes those commands over REST endpoints and a WebSocket
"""

__version__ = "1.0.0"
