"""
RoboPuppy Client - command-line client for the gateway's WebSocket.

Sends robot-command events to a running gateway and prints the replies.
"""

__version__ = "1.0.0"
