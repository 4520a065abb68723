"""
Authoring boundary for automations.

Every save of a graph goes through the structural validator first, so the
store only ever receives automations that were valid when written.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .errors import AutomationNotFoundError, AutomationValidationError
from .storage.base import AutomationStore
from .workflow.compiler import graph_from_dicts
from .workflow.executor import utcnow
from .workflow.models import Automation, Edge, Node
from .workflow.validator import validate

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 100


def clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise AutomationValidationError(["Automation name is required"])
    if len(name) > NAME_MAX_LENGTH:
        raise AutomationValidationError([f"Automation name must be at most {NAME_MAX_LENGTH} characters"])
    return name


class AutomationService:

    def __init__(self, store: AutomationStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def check_graph(self, nodes: List[Node], edges: List[Edge]) -> None:
        errors = validate(nodes, edges, now=self.clock())
        if errors:
            raise AutomationValidationError(errors)

    async def create(self, name: str, nodes: List[Node], edges: List[Edge]) -> Automation:
        automation = Automation(id="", name=clean_name(name), nodes=list(nodes), edges=list(edges))
        self.check_graph(automation.nodes, automation.edges)
        created = await self.store.create(automation)
        logger.info(f"Created automation {created.id} ({created.name})")
        return created

    async def create_from_dict(self, payload: Dict[str, Any]) -> Automation:
        """ Create from an editor payload with camelCase node and edge fields. """
        missing = [k for k in ("name", "nodes", "edges") if payload.get(k) is None]
        if missing:
            raise AutomationValidationError([f"Missing required fields: {', '.join(missing)}"])
        nodes, edges = graph_from_dicts(payload["nodes"], payload["edges"])
        return await self.create(payload["name"], nodes, edges)

    async def get(self, automation_id: str) -> Automation:
        automation = await self.store.get(automation_id)
        if automation is None:
            raise AutomationNotFoundError(automation_id)
        return automation

    async def list(self) -> List[Automation]:
        return await self.store.list()

    async def update(self, automation_id: str, name: Optional[str] = None,
                     nodes: Optional[List[Node]] = None, edges: Optional[List[Edge]] = None) -> Automation:
        """
        Partial update. Nodes and edges are replaced (and re-validated) together.
        """
        if (nodes is None) != (edges is None):
            raise AutomationValidationError(["Nodes and edges must be updated together"])
        automation = await self.get(automation_id)
        if name is not None:
            automation = replace(automation, name=clean_name(name))
        if nodes is not None:
            self.check_graph(nodes, edges)
            automation = automation.with_graph(nodes, edges)
        updated = await self.store.update(automation)
        logger.info(f"Updated automation {updated.id} ({updated.name})")
        return updated

    async def delete(self, automation_id: str) -> None:
        if not await self.store.delete(automation_id):
            raise AutomationNotFoundError(automation_id)
        logger.info(f"Deleted automation {automation_id}")
