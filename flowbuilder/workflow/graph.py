""" Read-only lookup view over an automation's nodes and edges. """

from typing import Dict, List, Optional

from .models import Automation, Edge, Node


class FlowGraph:
    """
    Adjacency view rebuilt from the stored automation on every run or resume,
    so edits saved between steps are always picked up.
    """

    def __init__(self, nodes: List[Node], edges: List[Edge]):
        self._nodes: Dict[str, Node] = {}
        for node in nodes:
            self._nodes.setdefault(node.id, node)
        self._out_edges: Dict[str, List[Edge]] = {}
        for edge in edges:
            self._out_edges.setdefault(edge.source, []).append(edge)

    @classmethod
    def from_automation(cls, automation: Automation) -> "FlowGraph":
        return cls(automation.nodes, automation.edges)

    def node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def nodes_of_type(self, node_type: str) -> List[Node]:
        return [n for n in self._nodes.values() if n.type == node_type]

    @property
    def start_node(self) -> Optional[Node]:
        starts = self.nodes_of_type("start")
        return starts[0] if starts else None

    def outgoing(self, node_id: str) -> List[Edge]:
        return list(self._out_edges.get(node_id, []))

    def successor(self, node_id: str) -> Optional[str]:
        """Target of the first outgoing edge of a non-branching node."""
        edges = self._out_edges.get(node_id)
        return edges[0].target if edges else None

    def branch(self, node_id: str, outcome: bool) -> Optional[str]:
        """Target of a condition node's edge tagged with the given outcome."""
        handle = "true" if outcome else "false"
        for edge in self._out_edges.get(node_id, []):
            if edge.source_handle == handle:
                return edge.target
        return None
