from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Protocol, runtime_checkable

NEVER = 2**63 - 1
MIN_POLL_ADVANCE_MS = 60_000


@runtime_checkable
class Node(Protocol):
    def executor_count(self) -> int: ...


class Squatter(ABC):
    """Something that keeps some of a node's executors away from general scheduling."""

    display_name: str = ""

    @abstractmethod
    def size_of_reservation(self, node: Node, timestamp: int) -> int:
        """Number of executors of ``node`` reserved at ``timestamp`` (epoch ms)."""

    @abstractmethod
    def time_of_next_change(self, node: Node, timestamp: int) -> int:
        """Earliest instant (epoch ms) at which the reservation size could change.

        The value may equal ``timestamp``; it is a lower bound for a useful
        re-query, not a strictly future instant. ``NEVER`` if nothing changes.
        """


def reserved_executors(squatters: Iterable[Squatter], node: Node, timestamp: int) -> int:
    return sum(squatter.size_of_reservation(node, timestamp) for squatter in squatters)


def next_poll_time(
    squatters: Iterable[Squatter],
    node: Node,
    timestamp: int,
    min_advance: int = MIN_POLL_ADVANCE_MS,
) -> int:
    """Return when a poller should ask again, never sooner than ``timestamp + min_advance``."""
    if min_advance <= 0:
        raise ValueError("min_advance must be positive.")

    earliest = min((squatter.time_of_next_change(node, timestamp) for squatter in squatters), default=NEVER)
    if earliest == NEVER:
        return NEVER
    return max(earliest, timestamp + min_advance)
