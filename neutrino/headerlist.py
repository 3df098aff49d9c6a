"""A size-bounded, in-memory chain of block headers."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field, replace
from typing import Iterator

from neutrino.chain import BlockHeader


@dataclass
class Node:
    """A header with its height; ``prev`` links to the prior node in the chain."""

    height: int = 0
    header: BlockHeader = field(default_factory=BlockHeader)
    prev: Node | None = field(default=None, compare=False, repr=False)


class BoundedMemoryChain:
    """Keeps at most ``max_nodes`` of the most recently pushed nodes.

    Pushing past the limit drops the front node, and the new front node
    loses its ``prev`` link.
    """

    def __init__(self, max_nodes: int) -> None:
        if max_nodes < 1:
            raise ValueError("a bounded chain needs room for at least one node")
        self._nodes: deque[Node] = deque(maxlen=max_nodes)

    def reset_header_state(self, node: Node) -> None:
        """Drop all nodes and start again with ``node`` alone."""
        self._nodes.clear()
        self.push_back(node)

    def back(self) -> Node | None:
        """Return the last node, or None when the chain is empty."""
        return self._nodes[-1] if self._nodes else None

    def front(self) -> Node | None:
        """Return the first node, or None when the chain is empty."""
        return self._nodes[0] if self._nodes else None

    def push_back(self, node: Node) -> Node:
        """Append a copy of ``node`` linked to the current back; return the copy."""
        stored = replace(node, prev=self.back())
        self._nodes.append(stored)
        self._nodes[0].prev = None
        return stored

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)