"""
Index of active links and endpoints.

Tracks every distinct link and every distinct ``(link, endpoint)`` pair
seen during a session together with the number of events observed for
it. Entries are never removed; the index feeds filter selectors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class KeyIndexEntry:
    """
    One key of the index with its live event count.

    Attributes:
        link_id: Link identifier.
        endpoint_id: Endpoint identifier, or None for a link-wide entry.
        count: Events observed for this key.
    """

    link_id: int
    endpoint_id: Optional[int]
    count: int


class KeyIndex:
    """Grow-only counters keyed by link and by ``(link, endpoint)``."""

    __slots__ = ("_links", "_endpoints")

    def __init__(self) -> None:
        self._links: Dict[int, int] = {}
        self._endpoints: Dict[Tuple[int, int], int] = {}

    def observe(self, link_id: int, endpoint_id: Optional[int] = None) -> None:
        """
        Count one event for a link, or for a ``(link, endpoint)`` pair.

        The key is registered on first sighting.
        """
        if endpoint_id is None:
            self._links[link_id] = self._links.get(link_id, 0) + 1
        else:
            key = (link_id, endpoint_id)
            self._endpoints[key] = self._endpoints.get(key, 0) + 1

    @property
    def link_count(self) -> int:
        """Number of distinct links."""
        return len(self._links)

    @property
    def endpoint_count(self) -> int:
        """Number of distinct ``(link, endpoint)`` pairs."""
        return len(self._endpoints)

    def count(self, link_id: int, endpoint_id: Optional[int] = None) -> int:
        """Events seen for a key (0 for unknown keys)."""
        if endpoint_id is None:
            return self._links.get(link_id, 0)
        return self._endpoints.get((link_id, endpoint_id), 0)

    def snapshot(self) -> List[KeyIndexEntry]:
        """
        All entries ordered by link, then endpoint.

        The link-wide entry of a link sorts before its endpoints.
        """
        entries = [
            KeyIndexEntry(link, None, count) for link, count in self._links.items()
        ]
        entries.extend(
            KeyIndexEntry(link, endpoint, count)
            for (link, endpoint), count in self._endpoints.items()
        )
        entries.sort(
            key=lambda e: (e.link_id, -1 if e.endpoint_id is None else e.endpoint_id)
        )
        return entries

    def __len__(self) -> int:
        return len(self._links) + len(self._endpoints)

    def __repr__(self) -> str:
        return f"KeyIndex(links={self.link_count}, endpoints={self.endpoint_count})"
