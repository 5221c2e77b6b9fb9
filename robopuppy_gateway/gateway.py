"""
Command Gateway - HTTP and WebSocket front end for the RoboPuppy session.

Handles:
- REST endpoints under /api (connect, disconnect, command, ports)
- WebSocket endpoint at /ws carrying robot-command / robot-response events
- Holding the one live session and replacing it on connect
- Mapping session errors to {success, message} responses
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .commands import RobotCommand
from .errors import CommandError, NotConnectedError, RobotError
from .session import DISCONNECT_SETTLE_S, RoboPuppySession, Sleep
from .transport import SerialTransport

logger = logging.getLogger(__name__)

COMMAND_EVENT = "robot-command"
RESPONSE_EVENT = "robot-response"


class ConnectRequest(BaseModel):
    port: Optional[str] = None


class CommandRequest(BaseModel):
    command: Optional[Any] = None
    legId: Optional[Any] = None
    joint: Optional[Any] = None
    angle: Optional[Any] = None


@dataclass
class CommandResult:
    """Outcome of a gateway operation, shared by both boundaries."""
    success: bool
    message: str
    status_code: int = 200

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "message": self.message}

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_dict())

    @classmethod
    def failure(cls, error: Exception) -> 'CommandResult':
        if isinstance(error, (CommandError, NotConnectedError)):
            return cls(False, str(error), 400)
        return cls(False, str(error), 500)


class CommandGateway:
    """
    Translates HTTP requests and WebSocket events into session calls.

    Features:
    - At most one live session, replaced on each connect request
    - One asyncio.Lock serializing every session-touching request
    - Errors never escape a handler; they become {success: false} replies
    """

    def __init__(
        self,
        transport: Optional[SerialTransport] = None,
        session_factory: Optional[Callable[..., RoboPuppySession]] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the gateway.

        Args:
            transport: Serial transport shared by every session
            session_factory: Builds a session; defaults to RoboPuppySession
            sleep: Coroutine used for the settle delay when replacing a session
        """
        self.transport = transport or SerialTransport()
        self.session_factory = session_factory or RoboPuppySession
        self._sleep = sleep

        self._session: Optional[RoboPuppySession] = None
        self._session_lock = asyncio.Lock()

        # Connected WebSocket clients (for monitoring)
        self._ws_clients: Dict[str, WebSocket] = {}
        self._client_counter = 0

        # Statistics
        self._total_events = 0
        self._invalid_events = 0

        self.app = FastAPI(
            title="RoboPuppy Web Controller",
            lifespan=self._lifespan,
        )
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        self.app.add_exception_handler(RequestValidationError, self._on_invalid_request)
        self._setup_routes()

    @property
    def session(self) -> Optional[RoboPuppySession]:
        return self._session

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        yield
        await self.shutdown()

    def _setup_routes(self):
        """Set up FastAPI routes."""

        @self.app.get("/health")
        async def health_check():
            return {
                "status": "ok",
                "connected": bool(self._session and self._session.connected),
                **self.get_stats(),
            }

        @self.app.post("/api/connect")
        async def connect(body: Optional[ConnectRequest] = None):
            port = body.port if body else None
            return (await self.connect(port)).to_response()

        @self.app.post("/api/disconnect")
        async def disconnect():
            return (await self.disconnect()).to_response()

        @self.app.post("/api/command")
        async def command(body: Optional[CommandRequest] = None):
            payload = body.model_dump() if body else {}
            return (await self.execute(payload)).to_response()

        @self.app.get("/api/ports")
        async def ports():
            try:
                return {"ports": await self.list_ports()}
            except Exception as e:
                logger.error(f"Failed to list ports: {e}")
                return CommandResult(False, str(e), 500).to_response()

        @self.app.websocket("/ws")
        async def websocket_events(websocket: WebSocket):
            await self._handle_websocket(websocket)

    async def connect(self, port: Optional[str] = None) -> CommandResult:
        """Replace the live session with a new one connected to port."""
        async with self._session_lock:
            previous, self._session = self._session, None
            if previous is not None:
                was_connected = previous.connected
                await previous.disconnect()
                if was_connected:
                    await self._sleep(DISCONNECT_SETTLE_S)

            session = self.session_factory(port=port, transport=self.transport)
            try:
                await session.connect()
            except Exception as e:
                await session.disconnect()
                if not isinstance(e, RobotError):
                    logger.exception("Unexpected error while connecting")
                return CommandResult(False, str(e), 500)

            self._session = session
            return CommandResult(True, "Connected to RoboPuppy")

    async def disconnect(self) -> CommandResult:
        async with self._session_lock:
            if self._session is None:
                return CommandResult(False, "Not connected")
            session, self._session = self._session, None
            await session.disconnect()
            return CommandResult(True, "Disconnected")

    async def execute(self, payload: Dict[str, Any]) -> CommandResult:
        """Run a {command, legId?, joint?, angle?} payload on the live session."""
        async with self._session_lock:
            if self._session is None:
                return CommandResult(False, "Not connected to robot", 400)

            try:
                command = RobotCommand.from_payload(payload)
                await command.dispatch(self._session)
            except RobotError as e:
                logger.warning(f"Command {payload.get('command')!r} failed: {e}")
                return CommandResult.failure(e)
            except Exception as e:
                logger.exception("Unexpected error while executing command")
                return CommandResult(False, str(e), 500)

            return CommandResult(True, f"Command {command.name.value} executed")

    async def list_ports(self) -> list:
        """Enumerate serial endpoints without touching the session."""
        loop = asyncio.get_running_loop()
        endpoints = await loop.run_in_executor(None, self.transport.list_endpoints)
        return [{"path": e.address, "description": e.description} for e in endpoints]

    async def shutdown(self) -> None:
        """Release the serial port when the application stops."""
        async with self._session_lock:
            if self._session is not None:
                await self._session.disconnect()
                self._session = None

    async def _on_invalid_request(self, request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning(f"Invalid request body for {request.url.path}: {exc.errors()}")
        return CommandResult(False, "Invalid request body", 400).to_response()

    async def _handle_websocket(self, websocket: WebSocket) -> None:
        await websocket.accept()

        self._client_counter += 1
        client_id = f"client_{self._client_counter}"
        self._ws_clients[client_id] = websocket
        logger.info(f"Client connected: {client_id} from {websocket.client}")

        try:
            while True:
                data = await websocket.receive_text()
                result = await self._handle_event(client_id, data)
                await websocket.send_text(json.dumps({
                    "event": RESPONSE_EVENT,
                    "data": result.to_dict(),
                }))
        except WebSocketDisconnect:
            logger.info(f"Client disconnected: {client_id}")
        except Exception as e:
            logger.error(f"Error handling client {client_id}: {e}")
        finally:
            self._ws_clients.pop(client_id, None)

    async def _handle_event(self, client_id: str, data: str) -> CommandResult:
        """Parse one event frame and run it."""
        self._total_events += 1
        try:
            frame = json.loads(data)
            event = frame["event"]
            payload = frame.get("data") or {}
            if not isinstance(payload, dict):
                raise ValueError("data must be an object")
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError, ValueError) as e:
            self._invalid_events += 1
            logger.warning(f"Invalid event from {client_id}: {e}")
            return CommandResult(False, "Invalid event", 400)

        if event != COMMAND_EVENT:
            self._invalid_events += 1
            logger.warning(f"Unknown event from {client_id}: {event}")
            return CommandResult(False, f"Unknown event: {event}", 400)

        return await self.execute(payload)

    def get_stats(self) -> dict:
        """Get gateway statistics."""
        return {
            "ws_clients": len(self._ws_clients),
            "total_events": self._total_events,
            "invalid_events": self._invalid_events,
            "session": self._session.get_stats() if self._session else None,
        }


def create_app(transport: Optional[SerialTransport] = None) -> FastAPI:
    """Create the FastAPI application with a fresh gateway."""
    gateway = CommandGateway(transport=transport)
    return gateway.app
