"""Node registry, voice packet routing and player lifecycle."""

from __future__ import annotations

import inspect
import logging
import secrets
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from nextcord.gateway import DiscordWebSocket

from .config import NodeOptions, OrchestratorOptions, PlayerOptions
from .errors import ConfigurationError
from .node import LavalinkNode
from .player import LavalinkPlayer
from .rest import QueryLike

__all__ = ["VoiceOrchestrator", "generate_identifier"]

logger = logging.getLogger("lavaroute.orchestrator")

VOICE_SERVER_UPDATE = "VOICE_SERVER_UPDATE"
VOICE_STATE_UPDATE = "VOICE_STATE_UPDATE"


def generate_identifier() -> str:
    """Return 8 lowercase hex characters from 4 random bytes.

    Uniqueness is probabilistic; callers that need stable keys should pass
    their own identifier.
    """

    return secrets.token_hex(4)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass
class _ClientState:
    """Mutable settings owned by the orchestrator, copied from the caller's options."""

    send: Callable[[str, dict], Any]
    spawn_player: Callable[..., Any]
    fetch_player: Callable[[str], Any]
    nodes: List[NodeOptions]
    client_id: Optional[str] = None
    client_name: Optional[str] = None


class VoiceOrchestrator:
    """Fan gateway voice events out to Lavalink nodes and hand out players.

    Players are managed by the orchestrator itself unless both
    ``spawn_player`` and ``fetch_player`` are supplied. Supplying only one of
    them keeps the built-in default for the other, backed by ``players``.

    Nodes report through :meth:`dispatch`: ``node_connect(node)``,
    ``node_disconnect(node)``, ``node_closed(node, extra)``,
    ``node_payload(node, data)`` for every decoded frame and
    ``node_error(node, exc)`` when handling a frame fails.
    """

    def __init__(self, options: OrchestratorOptions) -> None:
        if not callable(options.send):
            raise ConfigurationError("send function must be present and must be a function")
        if not options.nodes:
            raise ConfigurationError("nodes option must not be an empty sequence")

        self.nodes: Dict[str, LavalinkNode] = {}
        self.players: Optional[Dict[str, LavalinkPlayer]] = None
        self._listeners: Dict[str, List[Callable[..., Any]]] = {}

        spawn = options.spawn_player if callable(options.spawn_player) else None
        fetch = options.fetch_player if callable(options.fetch_player) else None
        if spawn is None or fetch is None:
            self.players = {}
        spawn = spawn or self._default_spawn_player
        fetch = fetch or self._default_fetch_player

        self._state = _ClientState(
            send=options.send,
            spawn_player=spawn,
            fetch_player=fetch,
            nodes=list(options.nodes),
            client_id=options.client_id,
            client_name=options.client_name,
        )
        logger.debug(
            "Orchestrator created (self_managed=%s, nodes=%d)",
            self.players is not None,
            len(self._state.nodes),
        )

    # ------------------------------------------------------------------
    # Client identity
    # ------------------------------------------------------------------
    @property
    def client_id(self) -> Optional[str]:
        return self._state.client_id

    @property
    def client_name(self) -> Optional[str]:
        return self._state.client_name

    def set_client_id(self, client_id: str) -> "VoiceOrchestrator":
        self._state.client_id = client_id
        return self

    def set_client_name(self, client_name: str) -> "VoiceOrchestrator":
        self._state.client_name = client_name
        return self

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def add_listener(self, event: str, func: Callable[..., Any]) -> "VoiceOrchestrator":
        self._listeners.setdefault(event, []).append(func)
        return self

    def remove_listener(self, event: str, func: Callable[..., Any]) -> "VoiceOrchestrator":
        listeners = self._listeners.get(event, [])
        if func in listeners:
            listeners.remove(func)
        return self

    def listen(self, event: Optional[str] = None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of :meth:`add_listener`.

        Without an explicit event the function name is used, minus an
        ``on_`` prefix, so ``async def on_node_connect(node)`` listens to
        ``node_connect``.
        """

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            name = event or func.__name__.removeprefix("on_")
            self.add_listener(name, func)
            return func

        return decorator

    async def dispatch(self, event: str, *args: Any) -> None:
        """Call every listener for ``event`` in registration order.

        A failing listener is logged and does not stop the others.
        """

        for func in list(self._listeners.get(event, ())):
            try:
                await _maybe_await(func(*args))
            except Exception:
                logger.exception("Listener %r for %s failed", func, event)

    # ------------------------------------------------------------------
    # Node lifecycle
    # ------------------------------------------------------------------
    async def initialize(self, client_id: Optional[str] = None) -> "VoiceOrchestrator":
        if not client_id and not self._state.client_id:
            raise ConfigurationError("Invalid client id provided")
        if client_id and not self._state.client_id:
            self._state.client_id = client_id
        return await self.set_node(self._state.nodes)

    async def set_node(
        self, nodes: Union[NodeOptions, Sequence[NodeOptions]]
    ) -> "VoiceOrchestrator":
        """Connect and register one node or several, one after another.

        A connection failure propagates and leaves later nodes untouched.
        Two concurrent calls registering the same identifier race, and the
        last one to finish wins.
        """

        descriptors = list(nodes) if isinstance(nodes, Sequence) else [nodes]
        for descriptor in descriptors:
            node = LavalinkNode(descriptor, self)
            await node.connect()
            if descriptor.identifier is None:
                descriptor.identifier = generate_identifier()
            previous = self.nodes.get(descriptor.identifier)
            if previous is not None and previous is not node:
                logger.info("Replacing node %s", descriptor.identifier)
                await previous.disconnect()
            self.nodes[descriptor.identifier] = node
            logger.info("Registered node %s", descriptor.identifier)
        return self

    def first_node(self) -> Optional[LavalinkNode]:
        return next(iter(self.nodes.values()), None)

    async def close(self) -> None:
        for node in list(self.nodes.values()):
            await node.disconnect()

    # ------------------------------------------------------------------
    # Tracks & players
    # ------------------------------------------------------------------
    def resolve_tracks(
        self, query: QueryLike, node: Optional[LavalinkNode] = None
    ) -> Optional[Awaitable[Dict[str, Any]]]:
        node = node or self.first_node()
        if node is None:
            return None
        return node.rest.load_tracks(query)

    async def spawn_player(
        self,
        options: Union[PlayerOptions, Mapping[str, Any]],
        node: Optional[LavalinkNode] = None,
    ) -> Optional[Any]:
        node = node or self.first_node()
        if node is None:
            logger.warning("No node registered; cannot spawn player")
            return None
        options = PlayerOptions.coerce(options)
        player = await _maybe_await(self._state.spawn_player(options.guild_id, options, node))
        return await player.connect()

    async def fetch_player(self, guild_id: str) -> Optional[Any]:
        return await _maybe_await(self._state.fetch_player(guild_id))

    def _default_spawn_player(
        self, guild_id: str, options: PlayerOptions, node: LavalinkNode
    ) -> LavalinkPlayer:
        existing = self.players.get(guild_id)
        if existing is not None:
            return existing
        player = LavalinkPlayer(options, self, node)
        self.players[guild_id] = player
        return player

    def _default_fetch_player(self, guild_id: str) -> Optional[LavalinkPlayer]:
        return self.players.get(guild_id)

    async def send(self, guild_id: str, payload: Dict[str, Any]) -> None:
        await _maybe_await(self._state.send(guild_id, payload))

    # ------------------------------------------------------------------
    # Gateway packets
    # ------------------------------------------------------------------
    async def handle_voice_server_update(self, packet: Dict[str, Any]) -> None:
        for node in list(self.nodes.values()):
            await node.handle_voice_server_update(packet)

    async def handle_voice_state_update(self, packet: Dict[str, Any]) -> None:
        for node in list(self.nodes.values()):
            await node.handle_voice_state_update(packet)

    async def handle_raw_packet(self, t: Optional[str], packet: Dict[str, Any]) -> None:
        if t == VOICE_STATE_UPDATE:
            await self.handle_voice_state_update(packet)
        elif t == VOICE_SERVER_UPDATE:
            await self.handle_voice_server_update(packet)
        else:
            logger.debug("Ignoring packet type %r", t)

    @staticmethod
    def create_voice_channel_payload(
        options: Union[PlayerOptions, Mapping[str, Any]], leave: bool = False
    ) -> Dict[str, Any]:
        options = PlayerOptions.coerce(options)
        return {
            "op": DiscordWebSocket.VOICE_STATE,
            "d": {
                "guild_id": options.guild_id,
                "channel_id": None if leave else options.voice_id,
                "self_deaf": bool(options.self_deaf),
                "self_mute": bool(options.self_mute),
            },
        }
