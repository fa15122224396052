"""Merging of incremental text fragments into a growing answer."""
from __future__ import annotations


def merge_delta(existing: str, incoming: str) -> str:
    """Combine ``existing`` with the next streamed fragment ``incoming``.

    Handles pure continuations, fragments that restate the full text so far,
    stale duplicates that are a prefix of what we already have, and partial
    overlaps at the boundary (the longest suffix of ``existing`` that is a
    prefix of ``incoming`` is spliced once).
    """

    if not incoming:
        return existing
    if not existing:
        return incoming
    if incoming.startswith(existing):
        return incoming
    if existing.startswith(incoming):
        return existing
    for size in range(min(len(existing), len(incoming)), 0, -1):
        if existing.endswith(incoming[:size]):
            return existing + incoming[size:]
    return existing + incoming


__all__ = ["merge_delta"]
