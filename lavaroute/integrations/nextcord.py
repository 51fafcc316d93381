"""Glue between a nextcord bot and :class:`~lavaroute.orchestrator.VoiceOrchestrator`."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Union

from nextcord.ext import commands

if TYPE_CHECKING:  # pragma: no cover - typing only
    from lavaroute.orchestrator import VoiceOrchestrator

__all__ = ["attach", "make_send", "VOICE_EVENTS"]

logger = logging.getLogger("lavaroute.integrations.nextcord")

VOICE_EVENTS = frozenset({"VOICE_SERVER_UPDATE", "VOICE_STATE_UPDATE"})


def make_send(bot: commands.Bot) -> Callable[[str, Dict[str, Any]], Awaitable[None]]:
    """Return a ``send`` callable writing through the shard that owns the guild."""

    async def send(guild_id: str, payload: Dict[str, Any]) -> None:
        ws = bot._connection._get_websocket(int(guild_id))
        await ws.send_as_json(payload)

    return send


def attach(bot: commands.Bot, orchestrator: "VoiceOrchestrator") -> Callable[..., Awaitable[None]]:
    """Feed the bot's raw voice dispatches into ``orchestrator``.

    Raw frames are only dispatched when the bot was built with
    ``enable_debug_events=True``.
    """

    async def on_socket_raw_receive(msg: Union[str, bytes]) -> None:
        if isinstance(msg, bytes):
            msg = msg.decode("utf-8")
        try:
            data = json.loads(msg)
        except ValueError:
            logger.debug("Skipping undecodable gateway frame")
            return
        if not isinstance(data, dict) or data.get("t") not in VOICE_EVENTS:
            return
        await orchestrator.handle_raw_packet(data["t"], data)

    bot.add_listener(on_socket_raw_receive, "on_socket_raw_receive")
    return on_socket_raw_receive
