"""A single websocket connection to a Lavalink server."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

import aiohttp

from . import __version__
from .config import NodeOptions
from .errors import NodeError
from .rest import NodeRest

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .orchestrator import VoiceOrchestrator

__all__ = ["LavalinkNode", "packet_body"]

logger = logging.getLogger("lavaroute.node")

_CLOSERS = (
    aiohttp.WSMsgType.CLOSE,
    aiohttp.WSMsgType.CLOSING,
    aiohttp.WSMsgType.CLOSED,
    aiohttp.WSMsgType.ERROR,
)


def packet_body(packet: Dict[str, Any]) -> Dict[str, Any]:
    """Return the ``d`` body of a gateway dispatch, or the packet itself."""

    body = packet.get("d")
    return body if isinstance(body, dict) else packet


class LavalinkNode:
    """Owns the socket, REST client and voice bookkeeping for one node.

    Voice-server and voice-state updates arrive separately from the gateway;
    the node keeps the latest of each per guild and forwards the pair to
    Lavalink once both are known and a player on this node wants them.
    """

    def __init__(self, options: NodeOptions, orchestrator: "VoiceOrchestrator") -> None:
        self.options = options
        self.orchestrator = orchestrator
        self.session: Optional[aiohttp.ClientSession] = None
        self.rest = NodeRest(self)
        self.stats: Optional[Dict[str, Any]] = None
        self.voice_servers: Dict[str, Dict[str, Any]] = {}
        self.voice_states: Dict[str, Dict[str, Any]] = {}
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._listener_task: Optional[asyncio.Task[None]] = None

    def __repr__(self) -> str:
        return (
            f"<LavalinkNode identifier={self.identifier!r} "
            f"host={self.options.host!r} port={self.options.port} connected={self.connected}>"
        )

    @property
    def identifier(self) -> Optional[str]:
        return self.options.identifier

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    @property
    def headers(self) -> Dict[str, str]:
        client_name = self.orchestrator.client_name or f"lavaroute/{__version__}"
        return {
            "Authorization": self.options.password,
            "User-Id": str(self.orchestrator.client_id or ""),
            "Client-Name": client_name,
        }

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------
    async def connect(self) -> "LavalinkNode":
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()

        logger.info(
            "Connecting to Lavalink node %s:%s (secure=%s)",
            self.options.host,
            self.options.port,
            self.options.secure,
        )
        try:
            self._ws = await self.session.ws_connect(self.options.ws_url, headers=self.headers)
        except BaseException:
            await self.session.close()
            self.session = None
            raise
        self._listener_task = asyncio.get_running_loop().create_task(self._listen())
        logger.info("Lavalink node %s:%s connected", self.options.host, self.options.port)
        await self.orchestrator.dispatch("node_connect", self)
        return self

    async def disconnect(self) -> None:
        if self._listener_task and not self._listener_task.done():
            self._listener_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._listener_task
        self._listener_task = None

        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self.session is not None:
            await self.session.close()
            self.session = None
        await self.orchestrator.dispatch("node_disconnect", self)

    async def send(self, payload: Dict[str, Any]) -> None:
        if not self.connected:
            raise NodeError(f"Node {self.identifier!r} is not connected")
        await self._ws.send_json(payload)

    async def _listen(self) -> None:
        assert self._ws is not None
        while True:
            msg = await self._ws.receive()
            if msg.type in _CLOSERS:
                logger.warning(
                    "Lavalink node %s closed the socket: %s", self.identifier, msg.extra
                )
                await self.orchestrator.dispatch("node_closed", self, msg.extra)
                return
            if msg.type is not aiohttp.WSMsgType.TEXT:
                continue
            try:
                data = json.loads(msg.data)
            except ValueError:
                logger.warning("Discarding malformed frame from node %s", self.identifier)
                continue
            try:
                await self.orchestrator.dispatch("node_payload", self, data)
                await self.handle_message(data)
            except Exception as exc:
                logger.exception("Failed to handle %r frame from node %s", data.get("op"), self.identifier)
                await self.orchestrator.dispatch("node_error", self, exc)

    async def handle_message(self, data: Dict[str, Any]) -> None:
        op = data.get("op")
        if op == "stats":
            self.stats = data
            return
        if op in ("playerUpdate", "event"):
            guild_id = data.get("guildId")
            if guild_id is None:
                return
            player = await self.orchestrator.fetch_player(str(guild_id))
            if player is not None:
                result = player.handle_node_payload(data)
                if inspect.isawaitable(result):
                    await result
            return
        logger.debug("Unhandled op %r from node %s", op, self.identifier)

    # ------------------------------------------------------------------
    # Voice correlation
    # ------------------------------------------------------------------
    async def handle_voice_server_update(self, packet: Dict[str, Any]) -> bool:
        body = packet_body(packet)
        guild_id = body.get("guild_id")
        if guild_id is None:
            return False
        self.voice_servers[str(guild_id)] = body
        return await self._try_voice_update(str(guild_id))

    async def handle_voice_state_update(self, packet: Dict[str, Any]) -> bool:
        body = packet_body(packet)
        guild_id = body.get("guild_id")
        if guild_id is None:
            return False
        if str(body.get("user_id")) != str(self.orchestrator.client_id):
            return False

        guild_id = str(guild_id)
        if body.get("channel_id") is None:
            self.voice_servers.pop(guild_id, None)
            self.voice_states.pop(guild_id, None)
            return False

        self.voice_states[guild_id] = body
        return await self._try_voice_update(guild_id)

    async def _try_voice_update(self, guild_id: str) -> bool:
        server = self.voice_servers.get(guild_id)
        state = self.voice_states.get(guild_id)
        if server is None or state is None:
            return False

        player = await self.orchestrator.fetch_player(guild_id)
        if player is None:
            return False
        # Players that do not expose a node binding are hosted on the first node.
        bound = getattr(player, "node", None) or self.orchestrator.first_node()
        if bound is not self:
            return False

        await self.send(
            {
                "op": "voiceUpdate",
                "guildId": guild_id,
                "sessionId": state.get("session_id"),
                "event": server,
            }
        )
        logger.debug("Sent voiceUpdate", extra={"node": self.identifier, "guild_id": guild_id})
        return True
