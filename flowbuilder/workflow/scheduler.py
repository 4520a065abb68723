"""
Durable delay timers.

The execution record (``status=pending`` plus ``scheduled_for`` and
``current_node_id``) is the only authoritative suspension state. The timers kept
here are a disposable index over it and are rebuilt by ``recover()`` on startup.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Optional, Set

from ..storage.base import AutomationStore, ExecutionStore
from .graph import FlowGraph
from .models import ExecutionStatus, LogEntry, LogStatus

logger = logging.getLogger(__name__)


@dataclass
class ScheduledResume:
    execution_id: str
    due: datetime
    handle: asyncio.TimerHandle


class DelayScheduler:

    def __init__(self, automations: AutomationStore, executions: ExecutionStore,
                 run_execution: Callable[[str], Awaitable[object]], clock: Callable[[], datetime]):
        self.automations = automations
        self.executions = executions
        self.run_execution = run_execution
        self.clock = clock
        self._timers: Dict[str, ScheduledResume] = {}
        self._in_flight: Set[asyncio.Task] = set()

    def schedule(self, execution_id: str, due: datetime) -> bool:
        """
        Arm a timer that resumes ``execution_id`` at ``due`` (immediately if past).
        Returns False when a timer for the execution is already armed.
        """
        if execution_id in self._timers:
            logger.debug(f"Timer for execution {execution_id} already armed")
            return False

        loop = asyncio.get_running_loop()
        delay = max(0.0, (due - self.clock()) / timedelta(seconds=1))
        handle = loop.call_later(delay, self._fire, execution_id)
        self._timers[execution_id] = ScheduledResume(execution_id, due, handle)
        logger.info(f"Scheduled execution {execution_id} to resume in {delay:.3f}s at {due.isoformat()}")
        return True

    def _fire(self, execution_id: str) -> None:
        task = asyncio.get_running_loop().create_task(self.resume(execution_id))
        self._in_flight.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Delayed resume failed: {task.exception()!r}")

    async def resume(self, execution_id: str) -> None:
        """
        Move a suspended execution past its delay node and hand it back to the
        interpreter. Safe to call directly; an armed timer for the id is disarmed.
        """
        entry = self._timers.get(execution_id)
        if entry is not None:
            entry.handle.cancel()
        try:
            await self._advance_and_run(execution_id, entry)
        finally:
            self._release(execution_id, entry)

    def _release(self, execution_id: str, entry: Optional[ScheduledResume]) -> None:
        # a later delay node may already have armed a fresh timer for the same id
        if entry is not None and self._timers.get(execution_id) is entry:
            del self._timers[execution_id]

    async def _advance_and_run(self, execution_id: str, entry: Optional[ScheduledResume]) -> None:
        execution = await self.executions.get(execution_id)
        if execution is None:
            logger.warning(f"Dropping timer for missing execution {execution_id}")
            return
        if execution.status != ExecutionStatus.PENDING or execution.scheduled_for is None:
            logger.warning(f"Dropping stale timer for execution {execution_id} (status={execution.status})")
            return

        logger.info(f"Resuming execution {execution_id}")
        automation = await self.automations.get(execution.automation_id)
        delay_node_id = execution.current_node_id
        target = None
        if automation is not None and delay_node_id is not None:
            target = FlowGraph.from_automation(automation).successor(delay_node_id)

        if target is None:
            if automation is None:
                error = f"Automation not found: {execution.automation_id}"
            else:
                error = f"No outgoing edge from node {delay_node_id}"
            await self._fail(execution_id, delay_node_id, error)
            return

        await self.executions.update(execution_id, current_node_id=target, scheduled_for=None)
        self._release(execution_id, entry)
        await self.run_execution(execution_id)

    async def _fail(self, execution_id: str, node_id: Optional[str], error: str) -> None:
        logger.error(f"Execution {execution_id} failed on resume: {error}")
        now = self.clock()
        await self.executions.append_log(execution_id, LogEntry(
            node_id=node_id or "unknown", node_type="delay", timestamp=now,
            status=LogStatus.FAILED, error=error,
        ))
        await self.executions.update(
            execution_id, status=ExecutionStatus.FAILED, scheduled_for=None, completed_at=now,
        )

    async def recover(self) -> int:
        """
        Re-arm timers for every durably suspended execution. Failures are logged
        per execution and do not stop the pass.
        """
        pending = await self.executions.list_scheduled()
        logger.info(f"Found {len(pending)} pending executions to resume")

        armed = 0
        for execution in pending:
            try:
                if self.schedule(execution.id, execution.scheduled_for):
                    armed += 1
            except Exception:
                logger.exception(f"Failed to re-arm timer for execution {execution.id}")
        return armed

    def is_scheduled(self, execution_id: str) -> bool:
        return execution_id in self._timers

    def get(self, execution_id: str) -> Optional[ScheduledResume]:
        return self._timers.get(execution_id)

    @property
    def in_flight(self) -> Set[asyncio.Task]:
        return set(self._in_flight)

    def has_due_timers(self) -> bool:
        now = asyncio.get_running_loop().time()
        return any(
            not entry.handle.cancelled() and entry.handle.when() <= now
            for entry in self._timers.values()
        )

    def cancel_all(self) -> None:
        """ Disarm every timer. Durable state is left untouched for recovery. """
        for entry in self._timers.values():
            entry.handle.cancel()
        self._timers.clear()

    @property
    def armed_count(self) -> int:
        return len(self._timers)
