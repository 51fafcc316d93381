"""Adapters that wire lavaroute into Discord client libraries."""
