import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ..errors import ExecutionNotFoundError
from ..notifiers.base import Notifier
from ..storage.base import AutomationStore, ExecutionStore
from ..steps.base import StepContext
from .factory import make_step
from .graph import FlowGraph
from .models import Execution, ExecutionStatus, LogEntry, LogStatus, Node

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionEngine:
    """
    Walks an automation graph one node at a time for a single execution.

    Each call to ``run`` continues from the execution's ``current_node_id`` (or
    the start node) until the flow ends, fails, or suspends on a delay node.
    The automation is re-read on every call so edits between steps are honoured.
    """

    def __init__(self, automations: AutomationStore, executions: ExecutionStore, notifier: Notifier,
                 scheduler=None, clock: Callable[[], datetime] = utcnow, preview_chars: int = 50):
        self.automations = automations
        self.executions = executions
        self.notifier = notifier
        self.scheduler = scheduler
        self.clock = clock
        self.preview_chars = preview_chars

    async def run(self, execution_id: str) -> Execution:
        execution = await self.executions.get(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(execution_id)

        automation = await self.automations.get(execution.automation_id)
        if automation is None:
            return await self._fail(execution_id, None, f"Automation not found: {execution.automation_id}")

        graph = FlowGraph.from_automation(automation)
        current_id = execution.current_node_id
        if current_id is None:
            start = graph.start_node
            if start is None:
                return await self._fail(execution_id, None, "Start node not found")
            current_id = start.id

        while True:
            node = graph.node(current_id)
            if node is None:
                return await self._fail(execution_id, None, f"Node {current_id} not found", node_id=current_id)

            await self.executions.update(execution_id, status=ExecutionStatus.RUNNING, current_node_id=node.id)
            logger.debug(f"Execution {execution_id}: executing node {node.type} ({node.id})")

            ctx = StepContext(
                subject=execution.subject,
                graph=graph,
                notifier=self.notifier,
                now=self.clock(),
                preview_chars=self.preview_chars,
            )
            try:
                step = make_step(node)
                result = await step.execute(ctx)
            except Exception as e:
                return await self._fail(execution_id, node, str(e))

            await self._log(execution_id, node, message=result.message)

            if result.error is not None:
                return await self._fail(execution_id, node, result.error)

            if result.resume_at is not None:
                return await self._suspend(execution_id, node, result.resume_at)

            if result.completed:
                logger.info(f"Execution {execution_id} completed")
                return await self.executions.update(
                    execution_id, status=ExecutionStatus.COMPLETED, completed_at=self.clock()
                )

            current_id = result.next_node_id

    async def _suspend(self, execution_id: str, node: Node, resume_at: datetime) -> Execution:
        execution = await self.executions.update(
            execution_id,
            status=ExecutionStatus.PENDING,
            current_node_id=node.id,
            scheduled_for=resume_at,
        )
        logger.info(f"Execution {execution_id} suspended at {node.id} until {resume_at.isoformat()}")
        if self.scheduler is not None:
            self.scheduler.schedule(execution_id, resume_at)
        else:
            logger.warning(f"No scheduler attached; execution {execution_id} waits for recovery")
        return execution

    async def _log(self, execution_id: str, node: Node, message: Optional[str] = None,
                   error: Optional[str] = None) -> None:
        entry = LogEntry(
            node_id=node.id,
            node_type=node.type,
            timestamp=self.clock(),
            status=LogStatus.FAILED if error else LogStatus.SUCCESS,
            message=message,
            error=error,
        )
        await self.executions.append_log(execution_id, entry)

    async def _fail(self, execution_id: str, node: Optional[Node], error: str,
                    node_id: Optional[str] = None) -> Execution:
        logger.error(f"Execution {execution_id} failed: {error}")
        if node is not None:
            await self._log(execution_id, node, error=error)
        elif node_id is not None:
            await self.executions.append_log(execution_id, LogEntry(
                node_id=node_id, node_type="unknown", timestamp=self.clock(),
                status=LogStatus.FAILED, error=error,
            ))
        return await self.executions.update(
            execution_id,
            status=ExecutionStatus.FAILED,
            scheduled_for=None,
            completed_at=self.clock(),
        )
