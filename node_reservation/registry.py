from __future__ import annotations

from typing import Callable

from .schedule import ReservationSchedule
from .squatter import Squatter

SquatterFactory = Callable[[str], Squatter]


class SquatterRegistry:
    """Plain name -> factory table the host uses to build squatters from stored text."""

    def __init__(self) -> None:
        self._factories: dict[str, SquatterFactory] = {}

    def register(self, kind: str, factory: SquatterFactory) -> None:
        kind = kind.strip().lower()
        if not kind:
            raise ValueError("kind must not be empty")
        if kind in self._factories:
            raise ValueError(f"Squatter kind already registered: {kind}")
        self._factories[kind] = factory

    def create(self, kind: str, text: str) -> Squatter:
        try:
            factory = self._factories[kind.strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown squatter kind: {kind}") from None
        return factory(text)

    def names(self) -> list[str]:
        return sorted(self._factories)


def default_registry() -> SquatterRegistry:
    registry = SquatterRegistry()
    registry.register("cron", ReservationSchedule.parse)
    return registry
