""" Data models for automation graphs and their test executions """

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional, Union

NODE_TYPES = ("start", "end", "action", "delay", "condition")
CONDITION_OPERATORS = ("equals", "not_equals", "includes", "starts_with", "ends_with")
DELAY_UNITS = ("minutes", "hours", "days")


class ExecutionStatus:
    """Execution status constants"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class LogStatus:
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class ConditionRule:
    operator: Optional[str] = None
    value: Optional[str] = None
    field: str = "email"


@dataclass(frozen=True)
class ActionData:
    message: Optional[str] = None


@dataclass(frozen=True)
class DelayData:
    mode: Optional[str] = None  # "absolute" | "relative"
    absolute_time: Optional[datetime] = None
    relative_value: Optional[float] = None
    relative_unit: Optional[str] = None


@dataclass(frozen=True)
class ConditionData:
    rules: List[ConditionRule] = field(default_factory=list)
    logic: Optional[str] = None  # "AND" | "OR", AND when unset


@dataclass(frozen=True)
class EmptyData:
    pass


NodeData = Union[ActionData, DelayData, ConditionData, EmptyData]


@dataclass(frozen=True)
class Edge:
    id: str
    source: str
    target: str
    source_handle: Optional[str] = None  # "true" | "false" on condition sources


@dataclass(frozen=True)
class Node:
    id: str
    type: str
    data: NodeData = field(default_factory=EmptyData)


@dataclass(frozen=True)
class Automation:
    id: str
    name: str
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def with_graph(self, nodes: List[Node], edges: List[Edge]) -> "Automation":
        return replace(self, nodes=list(nodes), edges=list(edges))


@dataclass
class LogEntry:
    node_id: str
    node_type: str
    timestamp: datetime
    status: str
    message: Optional[str] = None
    error: Optional[str] = None


@dataclass
class Execution:
    """One test run of an automation against a single subject identity."""
    id: str
    automation_id: str
    subject: str
    status: str = ExecutionStatus.PENDING
    current_node_id: Optional[str] = None
    execution_log: List[LogEntry] = field(default_factory=list)
    scheduled_for: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)
