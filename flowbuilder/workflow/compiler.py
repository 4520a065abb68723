""" Load automations from YAML/JSON documents and render them back. """

from typing import Any, Dict, List, Optional, Tuple

import yaml

from .models import Automation, Edge, Node
from .schema import edge_to_dict, node_to_dict, to_edge, to_node, validate_document

REQUIRED_FIELDS = ["name", "nodes", "edges"]


def load_automation(text: str, automation_id: Optional[str] = None) -> Automation:
    """
    Load an Automation from a YAML (or JSON) string.
    """
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError("Automation document must be a mapping")
    return automation_from_dict(data, automation_id=automation_id)


def automation_from_dict(data: Dict[str, Any], automation_id: Optional[str] = None) -> Automation:
    # basic validation
    for key in REQUIRED_FIELDS:
        if key not in data:
            raise ValueError(f"Missing required top-level field: {key}")

    spec = validate_document(data)
    nodes, edges = graph_from_spec(spec.nodes, spec.edges)
    return Automation(
        id=automation_id or spec.id or "",
        name=spec.name,
        nodes=nodes,
        edges=edges,
    )


def graph_from_dicts(raw_nodes: List[Dict[str, Any]], raw_edges: List[Dict[str, Any]]) -> Tuple[List[Node], List[Edge]]:
    """Build nodes and edges from editor payload lists."""
    spec = validate_document({"name": "_", "nodes": raw_nodes, "edges": raw_edges})
    return graph_from_spec(spec.nodes, spec.edges)


def graph_from_spec(node_specs, edge_specs) -> Tuple[List[Node], List[Edge]]:
    return [to_node(n) for n in node_specs], [to_edge(e) for e in edge_specs]


def automation_to_dict(automation: Automation) -> Dict[str, Any]:
    return {
        "id": automation.id,
        "name": automation.name,
        "nodes": [node_to_dict(n) for n in automation.nodes],
        "edges": [edge_to_dict(e) for e in automation.edges],
    }


def dump_automation(automation: Automation) -> str:
    return yaml.safe_dump(automation_to_dict(automation), sort_keys=False)
