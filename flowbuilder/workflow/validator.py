"""
Structural validation of automation graphs.

Runs before an automation is saved and again before any execution starts,
since an automation may have been edited into an invalid state after creation.
"""

import math
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from .delays import UNIT_MILLIS
from .models import (
    CONDITION_OPERATORS, DELAY_UNITS, ActionData, ConditionData, DelayData, Edge, Node,
)

# Non-branching nodes that must hand control to exactly one successor
SINGLE_EXIT_TYPES = ("start", "action", "delay")


def validate(nodes: List[Node], edges: List[Edge], now: Optional[datetime] = None) -> List[str]:
    """
    Return a list of human readable errors for the graph; empty means valid.
    """
    now = now or datetime.now(timezone.utc)
    errors: List[str] = []

    if not nodes:
        errors.append("Automation must have at least one node")
        return errors

    start_nodes = [n for n in nodes if n.type == "start"]
    end_nodes = [n for n in nodes if n.type == "end"]
    if len(start_nodes) != 1:
        errors.append("Flow must have exactly one Start node")
    if len(end_nodes) != 1:
        errors.append("Flow must have exactly one End node")

    seen = set()
    for node in nodes:
        if node.id in seen:
            errors.append(f"Duplicate node id: {node.id}")
        seen.add(node.id)
        _validate_node(node, errors, now)

    _validate_edges(nodes, edges, errors)

    if len(start_nodes) == 1:
        _validate_connectivity(nodes, edges, start_nodes[0], end_nodes[0] if end_nodes else None, errors)

    return errors


def _validate_node(node: Node, errors: List[str], now: datetime) -> None:
    if not node.id:
        errors.append("Node is missing id")
        return

    if node.type == "action":
        data = node.data
        if not isinstance(data, ActionData) or not data.message or not data.message.strip():
            errors.append(f"Action node {node.id} is missing message")

    elif node.type == "delay":
        _validate_delay(node, errors, now)

    elif node.type == "condition":
        data = node.data
        if not isinstance(data, ConditionData) or not data.rules:
            errors.append(f"Condition node {node.id} must have at least one rule")
            return
        for idx, rule in enumerate(data.rules, start=1):
            if not rule.operator or not rule.value:
                errors.append(f"Condition node {node.id} rule {idx} is incomplete")
            elif rule.operator not in CONDITION_OPERATORS:
                errors.append(f"Condition node {node.id} rule {idx} has unknown operator: {rule.operator}")
        if data.logic is not None and data.logic not in ("AND", "OR"):
            errors.append(f"Condition node {node.id} logic must be AND or OR")

    elif node.type in ("start", "end"):
        pass

    else:
        errors.append(f"Unknown node type: {node.type}")


def _validate_delay(node: Node, errors: List[str], now: datetime) -> None:
    data = node.data
    if not isinstance(data, DelayData) or not data.mode:
        errors.append(f"Delay node {node.id} is missing mode")
        return

    if data.mode == "absolute":
        if data.absolute_time is None:
            errors.append(f"Delay node {node.id} is missing absolute time")
        elif data.absolute_time <= now:
            errors.append(f"Delay node {node.id} absolute time must be in the future")
    elif data.mode == "relative":
        value = data.relative_value
        if value is not None and not math.isfinite(value):
            errors.append(f"Delay node {node.id} relative value must be a finite number")
        elif not value or value <= 0:
            errors.append(f"Delay node {node.id} relative value must be greater than 0")
        if not data.relative_unit:
            errors.append(f"Delay node {node.id} is missing relative unit")
        elif data.relative_unit not in DELAY_UNITS:
            errors.append(f"Delay node {node.id} has unknown relative unit: {data.relative_unit}")
        elif value and math.isfinite(value) and value > 0:
            # resume time must still be a representable datetime
            limit = (datetime.max.replace(tzinfo=timezone.utc) - now) / timedelta(milliseconds=1)
            if value * UNIT_MILLIS[data.relative_unit] >= limit:
                errors.append(f"Delay node {node.id} relative value is too large")
    else:
        errors.append(f"Delay node {node.id} has unknown mode: {data.mode}")


def _validate_edges(nodes: List[Node], edges: List[Edge], errors: List[str]) -> None:
    node_ids = {n.id for n in nodes}
    outgoing: Dict[str, List[Edge]] = {}

    for edge in edges:
        if edge.source not in node_ids:
            errors.append(f"Edge {edge.id} has invalid source node {edge.source}")
        if edge.target not in node_ids:
            errors.append(f"Edge {edge.id} has invalid target node {edge.target}")
        outgoing.setdefault(edge.source, []).append(edge)

    for node in nodes:
        out = outgoing.get(node.id, [])
        if node.type == "start":
            if len(out) != 1:
                errors.append("Start node must have exactly one outgoing edge")
        elif node.type == "end":
            if out:
                errors.append("End node cannot have outgoing edges")
        elif node.type == "condition":
            if len(out) != 2:
                errors.append(f"Condition node {node.id} must have exactly 2 outgoing edges (true/false)")
            elif sorted(str(e.source_handle) for e in out) != ["false", "true"]:
                errors.append(f"Condition node {node.id} must have 'true' and 'false' handles")
        elif node.type in SINGLE_EXIT_TYPES and len(out) != 1:
            errors.append(f"{node.type.capitalize()} node {node.id} must have exactly one outgoing edge")


def _validate_connectivity(nodes: List[Node], edges: List[Edge], start: Node,
                           end: Optional[Node], errors: List[str]) -> None:
    """
    Breadth-first walk from Start over the directed edges.
    """
    adjacency: Dict[str, List[str]] = {n.id: [] for n in nodes}
    for edge in edges:
        if edge.source in adjacency:
            adjacency[edge.source].append(edge.target)

    reachable = {start.id}
    queue = deque([start.id])
    while queue:
        current = queue.popleft()
        for neighbor in adjacency.get(current, []):
            if neighbor not in reachable:
                reachable.add(neighbor)
                queue.append(neighbor)

    unreachable = [n.id for n in nodes if n.id not in reachable]
    if unreachable:
        errors.append(f"Unreachable nodes: {', '.join(unreachable)}")

    if end is not None and end.id not in reachable:
        errors.append("End node is not reachable from Start node")
