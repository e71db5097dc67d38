"""
VR Sync connection manager

- Owns the socket.io session and the Session record
- open() schedules the connection and returns immediately; close() tears down
- Every open builds a new socket.io client; the client never reconnects on
  its own, this manager decides
- On connect: mark connected, refresh feedbacks, ping now, start heartbeat
- On disconnect: mark disconnected, refresh feedbacks, stop heartbeat and
  cancel any pending play-started signal
- Only an "io server disconnect" re-opens automatically; every other
  disconnect leaves the session idle until open() is called again
- Outbound messages go through one queue and one writer task so they are
  emitted in the order send() was called
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional
from urllib.parse import urlparse

import socketio

from .codec import MessageCodec
from .dispatcher import ProtocolDispatcher
from .event_bus import EventBus
from .heartbeat import (
    DEFAULT_INTERVAL_S,
    DEFAULT_SERVER_TIMEOUT_S,
    HeartbeatMonitor,
    PendingTimer,
)
from .models import (
    ConnectionState,
    DisconnectReason,
    OutboundMessage,
    PingMessage,
    Session,
)

_LOGGER = logging.getLogger(__name__)

# Silence socket.io / engine.io packet dumps
for name in ("socketio", "socketio.client", "engineio", "engineio.client"):
    logging.getLogger(name).setLevel(logging.WARNING)

MESSAGE_EVENT = "message"
SIO_REASON = socketio.AsyncClient.reason

_SCHEME_MAP = {"http": "http", "https": "https", "ws": "http", "wss": "https"}
_REASON_MAP = {
    SIO_REASON.SERVER_DISCONNECT: DisconnectReason.SERVER,
    SIO_REASON.CLIENT_DISCONNECT: DisconnectReason.CLIENT,
}


@dataclass(frozen=True)
class Endpoint:
    host: str
    port: int

    @property
    def url(self) -> str:
        """Server URL for the socket.io client; ws(s) schemes map to http(s)."""
        host = self.host.strip()
        if "://" not in host:
            host = f"http://{host}"
        parsed = urlparse(host)
        scheme = _SCHEME_MAP.get(parsed.scheme.lower(), "http")
        hostname = parsed.hostname or ""
        if ":" in hostname:
            hostname = f"[{hostname}]"
        return f"{scheme}://{hostname}:{self.port}"


def classify_disconnect(reason: Optional[str]) -> DisconnectReason:
    """Map a socket.io disconnect reason onto our causes."""
    return _REASON_MAP.get(reason, DisconnectReason.TRANSPORT_CLOSE)


def backoff_delays(cap_s: float) -> Iterator[float]:
    """1 s, then 1.5x per attempt, never above `cap_s`."""
    delay = 1.0
    while True:
        yield min(delay, cap_s)
        delay *= 1.5


class _Link:
    """One socket.io client and the way it ended."""

    def __init__(self, client: Any) -> None:
        self.client = client
        self.closed = asyncio.Event()
        self.reason: Optional[DisconnectReason] = None

    def on_disconnect(self, reason: Optional[str] = None) -> None:
        if self.reason is None:
            self.reason = classify_disconnect(reason)
            _LOGGER.debug("socket.io disconnect (%s)", reason)
        self.closed.set()


class ConnectionManager:
    """Resilient session with the VR Sync server."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        event_bus: EventBus,
        codec: MessageCodec,
        dispatcher: ProtocolDispatcher,
        endpoint: Optional[Endpoint] = None,
        heartbeat_interval_s: float = DEFAULT_INTERVAL_S,
        server_timeout_s: float = DEFAULT_SERVER_TIMEOUT_S,
        open_timeout_s: float = 6.0,
        reconnect_delay_max_s: float = 10.0,
        socketio_path: str = "socket.io",
        client_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self._loop = loop
        self._event_bus = event_bus
        self._codec = codec
        self._dispatcher = dispatcher
        self._endpoint = endpoint

        self._open_timeout_s = float(open_timeout_s)
        self._reconnect_delay_max_s = max(0.0, float(reconnect_delay_max_s))
        self._socketio_path = socketio_path
        self._client_factory = client_factory or self._build_client

        self._session = Session()
        self._state = ConnectionState.DISCONNECTED

        self._task: Optional[asyncio.Task] = None
        self._link: Optional[_Link] = None
        self._outbox: Optional["asyncio.Queue[dict]"] = None

        self.heartbeat = HeartbeatMonitor(
            loop=loop,
            send_ping=self.ping,
            interval_s=heartbeat_interval_s,
            server_timeout_s=server_timeout_s,
        )
        self.play_started_timer = PendingTimer(loop)

    # ---------------------------------------------------------------------
    # Accessors
    # ---------------------------------------------------------------------

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return bool(self._session.connected)

    @property
    def endpoint(self) -> Optional[Endpoint]:
        return self._endpoint

    # ---------------------------------------------------------------------
    # Public control
    # ---------------------------------------------------------------------

    def open(self, endpoint: Optional[Endpoint] = None) -> None:
        """Start a fresh session in the background."""
        if endpoint is not None:
            self._endpoint = endpoint
        if self._endpoint is None:
            raise ValueError("No endpoint configured")

        if self._task is not None and not self._task.done():
            _LOGGER.debug("Replacing active session")
            self._task.cancel()
            self._link = None
            self._outbox = None
            self._on_disconnected(DisconnectReason.CLIENT)

        self._session = Session()
        self._set_state(ConnectionState.CONNECTING)
        self._task = self._loop.create_task(self._run())

    async def close(self) -> None:
        """Client-initiated disconnect; never re-opens."""
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        if self._state != ConnectionState.DISCONNECTED:
            self._on_disconnected(DisconnectReason.CLIENT)

    def send(self, message: OutboundMessage) -> bool:
        """Queue `message` for transmission; dropped when no transport is open."""
        if self._link is None or self._outbox is None:
            _LOGGER.debug("Not connected; dropping %s message", message.TYPE)
            return False
        self._outbox.put_nowait(self._codec.encode(message))
        return True

    def ping(self) -> None:
        self.send(PingMessage())

    # ---------------------------------------------------------------------
    # Session task
    # ---------------------------------------------------------------------

    def _build_client(self) -> Any:
        return socketio.AsyncClient(
            reconnection=False,
            reconnection_delay_max=self._reconnect_delay_max_s,
            logger=False,
            engineio_logger=False,
        )

    def _new_link(self) -> _Link:
        link = _Link(self._client_factory())

        def _on_message(data: Any = None, *_extra: Any) -> None:
            if self._link is not link:
                return
            try:
                self._dispatcher.on_message(data, self._session)
            except Exception:
                _LOGGER.exception("Error handling inbound message")

        link.client.on("disconnect", link.on_disconnect)
        link.client.on(MESSAGE_EVENT, _on_message)
        return link

    async def _run(self) -> None:
        reconnecting = False
        delays: Optional[Iterator[float]] = None

        while True:
            url = self._endpoint.url
            link = self._new_link()
            _LOGGER.info("Connecting to %s", url)
            try:
                await link.client.connect(
                    url,
                    transports=["websocket"],
                    socketio_path=self._socketio_path,
                    wait_timeout=self._open_timeout_s,
                )
            except asyncio.CancelledError:
                await self._shutdown_link(link)
                raise
            except Exception as e:
                _LOGGER.warning("Connection to %s failed: %s", url, e)
                if reconnecting and self._reconnect_delay_max_s > 0:
                    if delays is None:
                        delays = backoff_delays(self._reconnect_delay_max_s)
                    delay = next(delays)
                    _LOGGER.debug("Retrying in %.1fs", delay)
                    await asyncio.sleep(delay)
                    continue
                self._on_disconnected(DisconnectReason.TRANSPORT_ERROR)
                return

            delays = None
            reason = await self._serve(link)
            self._on_disconnected(reason)

            if reason != DisconnectReason.SERVER:
                return

            # The server closed the session on purpose: reopen straight away
            reconnecting = True
            self._session = Session()
            self._set_state(ConnectionState.RECONNECTING)

    async def _serve(self, link: _Link) -> DisconnectReason:
        self._link = link
        self._outbox = asyncio.Queue()
        self._on_connected()

        send_task = self._loop.create_task(self._send_loop(link, self._outbox))
        closed_task = self._loop.create_task(link.closed.wait())
        try:
            done, _pending = await asyncio.wait(
                {send_task, closed_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if send_task in done:
                return send_task.result()
            return link.reason or DisconnectReason.TRANSPORT_CLOSE
        finally:
            for t in (send_task, closed_task):
                t.cancel()
            await asyncio.gather(send_task, closed_task, return_exceptions=True)

            if self._link is link:
                self._link = None
                self._outbox = None
            await self._shutdown_link(link)

    async def _send_loop(self, link: _Link, outbox: "asyncio.Queue[dict]") -> DisconnectReason:
        try:
            while True:
                wire = await outbox.get()
                await link.client.emit(MESSAGE_EVENT, wire)
        except asyncio.CancelledError:
            raise
        except Exception:
            _LOGGER.warning("Send loop error", exc_info=True)
            return DisconnectReason.TRANSPORT_ERROR

    async def _shutdown_link(self, link: _Link) -> None:
        if not link.client.connected:
            return
        try:
            await link.client.disconnect()
        except Exception:
            _LOGGER.debug("socket.io disconnect failed", exc_info=True)

    # ---------------------------------------------------------------------
    # Transitions
    # ---------------------------------------------------------------------

    def _on_connected(self) -> None:
        self._session.connected = True
        self._set_state(ConnectionState.CONNECTED)
        _LOGGER.info("Connected to VR Sync")
        self._event_bus.publish("check_feedbacks")

        self.ping()
        self.heartbeat.start()

    def _on_disconnected(self, reason: DisconnectReason) -> None:
        self.heartbeat.stop()
        self.play_started_timer.cancel()
        self._session.connected = False
        _LOGGER.info("Disconnected from VR Sync (%s)", reason.value)
        self._set_state(ConnectionState.DISCONNECTED, reason=reason)
        self._event_bus.publish("check_feedbacks")

    def _set_state(self, state: ConnectionState, *, reason: Optional[DisconnectReason] = None) -> None:
        self._state = state
        payload = {
            "state": state.value,
            "endpoint": self._endpoint.url if self._endpoint else None,
            "reason": reason.value if reason else None,
        }
        self._event_bus.publish("connection_status", payload)
