"""Configuration records and environment-backed defaults."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Sequence

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_LAVALINK_PORT = 2333
DEFAULT_LAVALINK_PASSWORD = "youshallnotpass"

# Tests drive configuration through monkeypatch, so leave .env alone there.
_running_under_pytest = bool(os.getenv("PYTEST_CURRENT_TEST")) or any(
    "pytest" in (arg or "") for arg in sys.argv
)
if not _running_under_pytest:
    load_dotenv(BASE_DIR / ".env")

logger = logging.getLogger("lavaroute.config")

__all__ = [
    "Config",
    "NodeOptions",
    "OrchestratorOptions",
    "PlayerOptions",
    "node_options_from_env",
]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s '%s' - expected integer, using %s", name, raw, default)
        return default


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class NodeOptions:
    """Connection details for one Lavalink node.

    ``identifier`` is filled in by the orchestrator when left empty, so the
    caller can read back the generated value after ``set_node``.
    """

    host: str = "localhost"
    port: int = DEFAULT_LAVALINK_PORT
    password: str = DEFAULT_LAVALINK_PASSWORD
    secure: bool = False
    identifier: Optional[str] = None

    @property
    def ws_url(self) -> str:
        scheme = "wss" if self.secure else "ws"
        return f"{scheme}://{self.host}:{self.port}"

    @property
    def rest_url(self) -> str:
        scheme = "https" if self.secure else "http"
        return f"{scheme}://{self.host}:{self.port}"


@dataclass
class PlayerOptions:
    """Per-guild voice settings consumed by players and voice payloads."""

    guild_id: str
    voice_id: Optional[str] = None
    self_deaf: bool = False
    self_mute: bool = False

    @classmethod
    def coerce(cls, value: "PlayerOptions | Mapping[str, Any]") -> "PlayerOptions":
        """Accept either a ``PlayerOptions`` or a plain mapping.

        Mappings may use snake_case keys or the camelCase keys Discord
        libraries in other ecosystems tend to emit.
        """

        if isinstance(value, cls):
            return value

        def pick(*keys: str) -> Any:
            for key in keys:
                if key in value and value[key] is not None:
                    return value[key]
            return None

        guild_id = pick("guild_id", "guildId")
        if guild_id is None:
            raise KeyError("guild_id")
        return cls(
            guild_id=str(guild_id),
            voice_id=pick("voice_id", "voiceId"),
            self_deaf=bool(pick("self_deaf", "selfDeaf")),
            self_mute=bool(pick("self_mute", "selfMute")),
        )


@dataclass
class OrchestratorOptions:
    """Caller-supplied settings for :class:`~lavaroute.orchestrator.VoiceOrchestrator`.

    ``send`` delivers an outbound gateway payload for a guild and may be a
    plain function or a coroutine function. ``spawn_player``/``fetch_player``
    replace the built-in player registry when given.
    """

    send: Optional[Callable[[str, dict], Any]] = None
    spawn_player: Optional[Callable[..., Any]] = None
    fetch_player: Optional[Callable[[str], Any]] = None
    nodes: Sequence[NodeOptions] = field(default_factory=list)
    client_id: Optional[str] = None
    client_name: Optional[str] = None


class Config:
    """Defaults loaded from environment variables."""

    BASE_DIR = BASE_DIR
    LAVALINK_HOST = os.getenv("LAVALINK_HOST", "localhost")
    LAVALINK_PORT = _env_int("LAVALINK_PORT", DEFAULT_LAVALINK_PORT)
    LAVALINK_PASSWORD = os.getenv("LAVALINK_PASSWORD", DEFAULT_LAVALINK_PASSWORD)
    LAVALINK_SSL = _env_flag("LAVALINK_SSL")
    LAVALINK_NODES = os.getenv("LAVALINK_NODES", "")
    CLIENT_ID = os.getenv("DISCORD_CLIENT_ID") or None
    CLIENT_NAME = os.getenv("LAVAROUTE_CLIENT_NAME") or None


def _parse_node_entry(entry: str, password: str, secure: bool) -> Optional[NodeOptions]:
    identifier: Optional[str] = None
    if "@" in entry:
        identifier, entry = entry.split("@", 1)
        identifier = identifier.strip() or None

    host, _, port_raw = entry.strip().rpartition(":")
    if not host:
        host, port_raw = port_raw, ""
    port = DEFAULT_LAVALINK_PORT
    if port_raw:
        try:
            port = int(port_raw)
        except ValueError:
            logger.warning("Invalid port in LAVALINK_NODES entry '%s'; skipping", entry)
            return None
    return NodeOptions(
        host=host, port=port, password=password, secure=secure, identifier=identifier
    )


def node_options_from_env() -> List[NodeOptions]:
    """Return the node descriptors described by the runtime environment.

    ``LAVALINK_NODES`` takes a comma separated list of ``[label@]host[:port]``
    entries sharing ``LAVALINK_PASSWORD``; without it a single node is built
    from ``LAVALINK_HOST``/``LAVALINK_PORT``.
    """

    password = os.getenv("LAVALINK_PASSWORD") or Config.LAVALINK_PASSWORD
    secure = _env_flag("LAVALINK_SSL", Config.LAVALINK_SSL)
    listing = os.getenv("LAVALINK_NODES", Config.LAVALINK_NODES)

    if listing.strip():
        nodes = []
        for entry in listing.split(","):
            if not entry.strip():
                continue
            node = _parse_node_entry(entry, password, secure)
            if node is not None:
                nodes.append(node)
        return nodes

    host = os.getenv("LAVALINK_HOST") or Config.LAVALINK_HOST
    port = _env_int("LAVALINK_PORT", Config.LAVALINK_PORT)
    return [NodeOptions(host=host, port=port, password=password, secure=secure)]
