"""Visited set and breadth-first frontier driving exploration order."""

import logging
from collections import deque
from typing import Iterator, Optional

from navcrawl.identity import identity_keys
from navcrawl.models import FrontierItem

logger = logging.getLogger(__name__)


class VisitedSet:
    """Monotonically growing set of visited canonical ids.

    A fragment route is also recorded under its fragment-stripped form, so
    arriving at the bare document after having seen one of its routes counts
    as a re-arrival. Sibling routes of the same document stay distinct.
    """

    def __init__(self):
        self._ids: dict[str, None] = {}  # Insertion-ordered
        self._aliases: set[str] = set()

    def mark_visited(self, canonical_id: str) -> bool:
        """Mark a resource visited.

        Returns:
            True if the resource was not visited before
        """
        if self.is_visited(canonical_id):
            return False
        self._ids[canonical_id] = None
        self._aliases.update(identity_keys(canonical_id)[1:])
        return True

    def is_visited(self, canonical_id: str) -> bool:
        if canonical_id in self._ids:
            return True
        return "#" not in canonical_id and canonical_id in self._aliases

    def __contains__(self, canonical_id: str) -> bool:
        return self.is_visited(canonical_id)

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def to_list(self) -> list[str]:
        return list(self._ids)


class Frontier:
    """FIFO queue of frontier items with depth and per-parent breadth caps.

    ``enqueue`` is a no-op for items whose key is already visited or queued,
    for items deeper than ``max_depth`` and for items beyond the breadth cap
    of their origin resource.
    """

    def __init__(self, visited: VisitedSet, max_depth: int, max_breadth_per_resource: int):
        self.visited = visited
        self.max_depth = max_depth
        self.max_breadth_per_resource = max_breadth_per_resource
        self._queue: deque[FrontierItem] = deque()
        self._seen_keys: set[str] = set()
        self._children: dict[str, int] = {}
        self.discarded_depth = 0
        self.discarded_breadth = 0

    def enqueue(self, item: FrontierItem) -> bool:
        """Add an item to the back of the queue.

        Returns:
            True if the item was accepted
        """
        if item.depth > self.max_depth:
            self.discarded_depth += 1
            return False

        key = item.key
        if key in self._seen_keys or self.visited.is_visited(key):
            return False

        if self._children.get(item.origin_resource, 0) >= self.max_breadth_per_resource:
            self.discarded_breadth += 1
            return False

        self._children[item.origin_resource] = self._children.get(item.origin_resource, 0) + 1
        self._seen_keys.add(key)
        self._queue.append(item)
        return True

    def dequeue(self) -> Optional[FrontierItem]:
        """Pop the oldest item, or None when the frontier is empty."""
        if not self._queue:
            return None
        return self._queue.popleft()

    def drop_children_of(self, origin_resource: str) -> int:
        """Remove queued items discovered on a given resource.

        Returns:
            Number of items removed
        """
        kept = deque(i for i in self._queue if i.origin_resource != origin_resource)
        removed = len(self._queue) - len(kept)
        self._queue = kept
        if removed:
            logger.debug(f"Dropped {removed} queued item(s) discovered on {origin_resource}")
        return removed

    def children_enqueued(self, origin_resource: str) -> int:
        return self._children.get(origin_resource, 0)

    def __len__(self) -> int:
        return len(self._queue)

    def snapshot(self) -> list[dict]:
        """Queue contents for checkpointing."""
        return [
            {
                "intent": item.intent,
                "depth": item.depth,
                "origin_resource": item.origin_resource,
                "target_location": item.target_location,
            }
            for item in self._queue
        ]
