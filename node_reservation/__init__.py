from .errors import InvalidPatternError, MalformedRuleError, NodeConfigError, NodeReservationError
from .node_config import NodeConfig, NodeConfigSet, load_node_configs, parse_node_configs
from .recurrence import RecurrencePattern, from_millis, to_millis
from .registry import SquatterRegistry, default_registry
from .schedule import (
    ALL,
    Entry,
    ReservationSchedule,
    ReservationSize,
    ValidationResult,
    parse_entries,
    validate_format,
)
from .squatter import MIN_POLL_ADVANCE_MS, NEVER, Node, Squatter, next_poll_time, reserved_executors

__all__ = [
    "ALL",
    "NEVER",
    "MIN_POLL_ADVANCE_MS",
    "Entry",
    "InvalidPatternError",
    "MalformedRuleError",
    "Node",
    "NodeConfig",
    "NodeConfigError",
    "NodeConfigSet",
    "NodeReservationError",
    "RecurrencePattern",
    "ReservationSchedule",
    "ReservationSize",
    "Squatter",
    "SquatterRegistry",
    "ValidationResult",
    "default_registry",
    "from_millis",
    "load_node_configs",
    "next_poll_time",
    "parse_entries",
    "parse_node_configs",
    "reserved_executors",
    "to_millis",
    "validate_format",
]
