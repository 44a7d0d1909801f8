from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from pathlib import Path
from typing import Any
import logging

import yaml

from .errors import MalformedRuleError, NodeConfigError
from .recurrence import resolve_timezone, timezone_name
from .schedule import ReservationSchedule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeConfig:
    name: str
    executors: int
    schedule_text: str = ""

    def executor_count(self) -> int:
        return self.executors

    def schedule(self, tz: tzinfo = timezone.utc) -> ReservationSchedule:
        return ReservationSchedule.parse(self.schedule_text, tz)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "executors": self.executors,
            "schedule": self.schedule_text,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "NodeConfig":
        name = str(data.get("name") or "").strip()
        if not name:
            raise NodeConfigError("Node entry is missing a name.")

        executors = data.get("executors")
        if isinstance(executors, bool) or not isinstance(executors, int) or executors < 0:
            raise NodeConfigError(f"Node '{name}': executors must be a non-negative integer, got {executors!r}.")

        schedule_text = data.get("schedule") or ""
        if not isinstance(schedule_text, str):
            raise NodeConfigError(f"Node '{name}': schedule must be text.")
        return NodeConfig(name=name, executors=executors, schedule_text=schedule_text)


@dataclass(frozen=True)
class NodeConfigSet:
    tz: tzinfo = timezone.utc
    nodes: dict[str, NodeConfig] = field(default_factory=dict)
    schedules: dict[str, ReservationSchedule] = field(default_factory=dict)

    def get(self, name: str) -> NodeConfig:
        try:
            return self.nodes[name]
        except KeyError:
            raise NodeConfigError(f"Unknown node: {name}") from None

    def schedule_for(self, name: str) -> ReservationSchedule:
        self.get(name)
        return self.schedules[name]

    def names(self) -> list[str]:
        return list(self.nodes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timezone": timezone_name(self.tz),
            "nodes": [node.to_dict() for node in self.nodes.values()],
        }


def load_node_configs(path: str | Path) -> NodeConfigSet:
    """Load node definitions from YAML and parse every node's schedule up front.

    A schedule that does not parse fails the whole load, naming the node and line.
    """
    path = Path(path)
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as error:
        raise NodeConfigError(f"Node config file not found: {path}") from error
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
        raise NodeConfigError(f"Failed to read node config file: {path}") from error

    config = parse_node_configs(payload)
    logger.debug("Loaded %d nodes from %s", len(config.nodes), path)
    return config


def parse_node_configs(payload: Any) -> NodeConfigSet:
    if payload is None:
        return NodeConfigSet()
    if not isinstance(payload, dict):
        raise NodeConfigError("Top-level node config must be a mapping.")

    try:
        tz = resolve_timezone(payload.get("timezone"))
    except ValueError as error:
        raise NodeConfigError(str(error)) from error

    rows = payload.get("nodes") or []
    if not isinstance(rows, list):
        raise NodeConfigError("'nodes' must be a list.")

    nodes: dict[str, NodeConfig] = {}
    schedules: dict[str, ReservationSchedule] = {}
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            raise NodeConfigError(f"Node entry #{index + 1} is not a mapping.")
        node = NodeConfig.from_dict(row)
        if node.name in nodes:
            raise NodeConfigError(f"Duplicate node name: {node.name}")

        try:
            schedules[node.name] = node.schedule(tz)
        except MalformedRuleError as error:
            raise NodeConfigError(f"Node '{node.name}': invalid schedule at {error}") from error
        nodes[node.name] = node

    return NodeConfigSet(tz=tz, nodes=nodes, schedules=schedules)
