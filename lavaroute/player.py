"""Per-guild player bound to one Lavalink node."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from .config import PlayerOptions

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .node import LavalinkNode
    from .orchestrator import VoiceOrchestrator

__all__ = ["LavalinkPlayer"]

logger = logging.getLogger("lavaroute.player")


class LavalinkPlayer:
    """Joins and leaves a voice channel and tracks what its node reports.

    Queueing and playback control live in the host application.
    """

    def __init__(
        self,
        options: PlayerOptions | Mapping[str, Any],
        orchestrator: "VoiceOrchestrator",
        node: "LavalinkNode",
    ) -> None:
        self.options = PlayerOptions.coerce(options)
        self.orchestrator = orchestrator
        self.node = node
        self.connected = False
        self.position: int = 0
        self.last_event: Optional[Dict[str, Any]] = None

    def __repr__(self) -> str:
        return (
            f"<LavalinkPlayer guild_id={self.guild_id!r} "
            f"voice_id={self.options.voice_id!r} node={self.node.identifier!r}>"
        )

    @property
    def guild_id(self) -> str:
        return self.options.guild_id

    async def connect(self) -> "LavalinkPlayer":
        payload = self.orchestrator.create_voice_channel_payload(self.options)
        await self.orchestrator.send(self.guild_id, payload)
        logger.info(
            "Requested voice join", extra={"guild_id": self.guild_id, "channel_id": self.options.voice_id}
        )
        return self

    async def disconnect(self) -> "LavalinkPlayer":
        payload = self.orchestrator.create_voice_channel_payload(self.options, leave=True)
        await self.orchestrator.send(self.guild_id, payload)
        if self.node.connected:
            await self.node.send({"op": "destroy", "guildId": self.guild_id})
        self.connected = False
        logger.info("Requested voice leave", extra={"guild_id": self.guild_id})
        return self

    def handle_node_payload(self, data: Dict[str, Any]) -> None:
        if data.get("op") == "playerUpdate":
            state = data.get("state") or {}
            self.position = int(state.get("position") or 0)
            self.connected = bool(state.get("connected", self.connected))
        elif data.get("op") == "event":
            self.last_event = data
            if data.get("type") == "WebSocketClosedEvent":
                self.connected = False
