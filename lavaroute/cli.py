"""Command-line helpers for checking Lavalink nodes from the environment."""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any, Dict, Iterable, Optional

from .config import Config, OrchestratorOptions, node_options_from_env
from .errors import ConfigurationError
from .logging_config import configure_json_logging
from .orchestrator import VoiceOrchestrator
from .rest import TrackQuery


def _echo(message: str) -> None:
    print(message)


def _discard_send(guild_id: str, payload: Dict[str, Any]) -> None:
    _echo(f"[lavaroute] would send to guild {guild_id}: {json.dumps(payload)}")


def command_nodes(_: argparse.Namespace) -> None:
    for node in node_options_from_env():
        label = node.identifier or "(generated)"
        _echo(f"{label}\t{node.rest_url}")


async def _resolve(args: argparse.Namespace) -> Dict[str, Any]:
    orchestrator = VoiceOrchestrator(
        OrchestratorOptions(
            send=_discard_send,
            nodes=node_options_from_env(),
            client_id=args.client_id or Config.CLIENT_ID,
            client_name=Config.CLIENT_NAME,
        )
    )
    try:
        await orchestrator.initialize()
        query = TrackQuery(args.query, args.source) if args.source else args.query
        pending = orchestrator.resolve_tracks(query)
        if pending is None:
            raise ConfigurationError("no Lavalink node is registered")
        return await pending
    finally:
        await orchestrator.close()


def command_resolve(args: argparse.Namespace) -> None:
    result = asyncio.run(_resolve(args))
    _echo(f"load_type={result.get('loadType', 'unknown')}")
    for track in result.get("tracks") or []:
        info = track.get("info") or {}
        _echo(f"- {info.get('title', 'Unknown title')} ({info.get('uri', '')})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lavaroute", description="Lavalink node utility")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    sub = parser.add_subparsers(dest="command", required=True)

    nodes = sub.add_parser("nodes", help="List nodes configured in the environment")
    nodes.set_defaults(func=command_nodes)

    resolve = sub.add_parser("resolve", help="Resolve a query on the first configured node")
    resolve.add_argument("query")
    resolve.add_argument("--source", help="Search source prefix such as yt or sc")
    resolve.add_argument("--client-id", help="Bot user id (defaults to DISCORD_CLIENT_ID)")
    resolve.set_defaults(func=command_resolve)

    return parser


def main(argv: Optional[Iterable[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    if args.json_logs:
        configure_json_logging()
    try:
        args.func(args)
    except ConfigurationError as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main()
