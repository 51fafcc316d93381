"""REST helpers for resolving tracks against a Lavalink node."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Union

from .errors import NodeError

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .node import LavalinkNode

__all__ = ["TrackQuery", "NodeRest", "build_identifier"]

logger = logging.getLogger("lavaroute.rest")

DEFAULT_SEARCH_SOURCE = "yt"


@dataclass(frozen=True)
class TrackQuery:
    """A search query with an optional source hint (``yt``, ``sc``, ...)."""

    query: str
    source: Optional[str] = None


QueryLike = Union[str, TrackQuery, Mapping[str, Any]]


def build_identifier(query: QueryLike) -> str:
    """Turn a query into the ``identifier`` Lavalink expects.

    Plain strings pass through untouched so URLs and prefixed searches work
    as-is; structured queries become ``<source>search:<query>``.
    """

    if isinstance(query, str):
        return query
    if isinstance(query, TrackQuery):
        text, source = query.query, query.source
    else:
        text, source = query["query"], query.get("source")
    return f"{source or DEFAULT_SEARCH_SOURCE}search:{text}"


class NodeRest:
    """Thin REST client bound to a single node's HTTP session."""

    def __init__(self, node: "LavalinkNode") -> None:
        self.node = node

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": self.node.options.password}

    async def load_tracks(self, query: QueryLike) -> Dict[str, Any]:
        session = self.node.session
        if session is None or session.closed:
            raise NodeError(f"Node {self.node.identifier!r} is not connected")

        identifier = build_identifier(query)
        url = f"{self.node.options.rest_url}/loadtracks"
        logger.debug("Loading tracks", extra={"node": self.node.identifier, "identifier": identifier})

        async with session.get(
            url, params={"identifier": identifier}, headers=self.headers
        ) as resp:
            resp.raise_for_status()
            data = await resp.json(content_type=None)

        logger.info(
            "Loaded tracks for %s (load_type=%s)",
            identifier,
            data.get("loadType", "unknown") if isinstance(data, dict) else "unknown",
        )
        return data
