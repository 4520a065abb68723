from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..errors import StepError
from ..notifiers.base import Notifier
from ..workflow.graph import FlowGraph
from ..workflow.models import Node


@dataclass
class StepContext:
    """ Everything a step may read while it runs. """
    subject: str
    graph: FlowGraph
    notifier: Notifier
    now: datetime
    preview_chars: int = 50


@dataclass
class StepResult:
    message: str
    next_node_id: Optional[str] = None
    resume_at: Optional[datetime] = None  # set when the execution must suspend
    completed: bool = False
    error: Optional[str] = None  # logged outcome, but the execution cannot continue


class BaseStep(ABC):
    """ Abstract base class for all node steps. """

    def __init__(self, node: Node):
        self.node = node
        self.node_id = node.id
        self.data = node.data

    @abstractmethod
    async def execute(self, ctx: StepContext) -> StepResult:
        """
        Run the node.  Must be implemented by subclasses.
        """
        pass

    def next_node(self, ctx: StepContext) -> str:
        """ Follow the single outgoing edge of a non-branching node. """
        target = ctx.graph.successor(self.node_id)
        if target is None:
            raise StepError(f"No outgoing edge from node {self.node_id}")
        return target
