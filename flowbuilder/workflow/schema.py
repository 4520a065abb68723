from datetime import datetime, timezone
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models import (
    ActionData, ConditionData, ConditionRule, DelayData, Edge, EmptyData, Node, NodeData,
)


class RuleSpec(BaseModel):
    field: str = "email"
    operator: Optional[str] = None
    value: Optional[str] = None


class NodeDataSpec(BaseModel):
    """Union of every per-type field the editor may send. Narrowed by node type."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message: Optional[str] = None

    mode: Optional[str] = None
    absolute_time: Optional[datetime] = Field(default=None, alias="absoluteTime")
    relative_value: Optional[float] = Field(default=None, alias="relativeValue")
    relative_unit: Optional[str] = Field(default=None, alias="relativeUnit")

    rules: Optional[List[RuleSpec]] = None
    logic: Optional[str] = None


class NodeSpec(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    position: Optional[Dict[str, Any]] = None  # editor layout only
    data: NodeDataSpec = Field(default_factory=NodeDataSpec)


class EdgeSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")


class AutomationSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    name: str
    nodes: List[NodeSpec] = Field(default_factory=list)
    edges: List[EdgeSpec] = Field(default_factory=list)


def validate_document(raw: Dict[str, Any]) -> AutomationSpec:
    """Shape-check a raw automation document."""
    try:
        return AutomationSpec.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Automation document validation error: {e}")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def node_data_for(node_type: str, data: NodeDataSpec) -> NodeData:
    if node_type == "action":
        return ActionData(message=data.message)
    if node_type == "delay":
        return DelayData(
            mode=data.mode,
            absolute_time=_as_utc(data.absolute_time),
            relative_value=data.relative_value,
            relative_unit=data.relative_unit,
        )
    if node_type == "condition":
        rules = [ConditionRule(operator=r.operator, value=r.value, field=r.field) for r in data.rules or []]
        return ConditionData(rules=rules, logic=data.logic)
    return EmptyData()


def to_node(spec: NodeSpec) -> Node:
    return Node(id=spec.id, type=spec.type, data=node_data_for(spec.type, spec.data))


def to_edge(spec: EdgeSpec) -> Edge:
    return Edge(
        id=spec.id or f"{spec.source}->{spec.target}",
        source=spec.source,
        target=spec.target,
        source_handle=spec.source_handle,
    )


def node_to_dict(node: Node) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    d = node.data
    if isinstance(d, ActionData):
        data["message"] = d.message
    elif isinstance(d, DelayData):
        data["mode"] = d.mode
        if d.absolute_time is not None:
            data["absoluteTime"] = d.absolute_time.isoformat()
        if d.relative_value is not None:
            data["relativeValue"] = d.relative_value
        if d.relative_unit is not None:
            data["relativeUnit"] = d.relative_unit
    elif isinstance(d, ConditionData):
        data["rules"] = [{"field": r.field, "operator": r.operator, "value": r.value} for r in d.rules]
        if d.logic is not None:
            data["logic"] = d.logic
    return {"id": node.id, "type": node.type, "data": data}


def edge_to_dict(edge: Edge) -> Dict[str, Any]:
    out: Dict[str, Any] = {"id": edge.id, "source": edge.source, "target": edge.target}
    if edge.source_handle is not None:
        out["sourceHandle"] = edge.source_handle
    return out
