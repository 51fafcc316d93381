"""Route Discord voice events to Lavalink nodes and manage per-guild players."""

__version__ = "0.1.0"

from .config import NodeOptions, OrchestratorOptions, PlayerOptions  # noqa: E402
from .errors import ConfigurationError, LavarouteError, NodeError  # noqa: E402
from .logging_config import configure_json_logging  # noqa: E402
from .node import LavalinkNode  # noqa: E402
from .orchestrator import VoiceOrchestrator, generate_identifier  # noqa: E402
from .player import LavalinkPlayer  # noqa: E402
from .rest import NodeRest, TrackQuery  # noqa: E402

__all__ = [
    "__version__",
    "ConfigurationError",
    "LavalinkNode",
    "LavalinkPlayer",
    "LavarouteError",
    "NodeError",
    "NodeOptions",
    "NodeRest",
    "OrchestratorOptions",
    "PlayerOptions",
    "TrackQuery",
    "VoiceOrchestrator",
    "configure_json_logging",
    "generate_identifier",
]
