"""
Trigger and recovery interface for test executions.

``start_execution`` validates the automation, records a pending execution and
returns immediately; the interpreter runs as an independent asyncio task.
``resume_pending_executions`` is called once at process start to re-arm delay
timers from the durable execution records.
"""

import asyncio
import logging
import re
from datetime import datetime
from typing import Callable, List, Optional, Set

from .errors import (
    AutomationNotFoundError, AutomationValidationError, ExecutionNotFoundError, InvalidSubjectError,
)
from .notifiers.base import Notifier
from .storage.base import AutomationStore, ExecutionStore
from .workflow.executor import ExecutionEngine, utcnow
from .workflow.models import Execution, ExecutionStatus
from .workflow.scheduler import DelayScheduler
from .workflow.validator import validate

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def clean_subject(subject: Optional[str]) -> str:
    subject = (subject or "").strip()
    if not subject:
        raise InvalidSubjectError("Email is required")
    if not _EMAIL_RE.match(subject):
        raise InvalidSubjectError(f"Invalid email format: {subject}")
    return subject


class FlowRunner:
    """ Owns the interpreter and the delay scheduler for one process. """

    def __init__(self, automations: AutomationStore, executions: ExecutionStore, notifier: Notifier,
                 clock: Callable[[], datetime] = utcnow, preview_chars: int = 50,
                 recent_limit: int = 50):
        self.automations = automations
        self.executions = executions
        self.clock = clock
        self.recent_limit = recent_limit
        self.engine = ExecutionEngine(
            automations, executions, notifier, clock=clock, preview_chars=preview_chars,
        )
        self.scheduler = DelayScheduler(automations, executions, self.engine.run, clock)
        self.engine.scheduler = self.scheduler
        self._tasks: Set[asyncio.Task] = set()

    async def start_execution(self, automation_id: str, subject: str) -> Execution:
        subject = clean_subject(subject)
        automation = await self.automations.get(automation_id)
        if automation is None:
            raise AutomationNotFoundError(automation_id)

        errors = validate(automation.nodes, automation.edges, now=self.clock())
        if errors:
            raise AutomationValidationError(errors, message="Cannot execute invalid automation")

        execution = await self.executions.create(Execution(
            id="",
            automation_id=automation.id,
            subject=subject,
            status=ExecutionStatus.PENDING,
        ))
        logger.info(f"Started execution {execution.id} of automation {automation.id} for {subject}")
        self.dispatch(execution.id)
        return execution

    def dispatch(self, execution_id: str) -> asyncio.Task:
        """ Run the interpreter for an execution without awaiting it. """
        task = asyncio.get_running_loop().create_task(self.engine.run(execution_id))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Execution task failed: {task.exception()!r}")

    async def resume_pending_executions(self) -> int:
        return await self.scheduler.recover()

    async def get_execution(self, execution_id: str) -> Execution:
        execution = await self.executions.get(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(execution_id)
        return execution

    async def list_executions(self, limit: Optional[int] = None) -> List[Execution]:
        return await self.executions.list_recent(limit or self.recent_limit)

    async def drain(self) -> None:
        """ Wait until no interpreter work is running or due. Future timers stay armed. """
        while True:
            pending = self._tasks | self.scheduler.in_flight
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            elif self.scheduler.has_due_timers():
                await asyncio.sleep(0)
            else:
                return

    async def wait_until_idle(self, poll_interval: float = 1.0) -> None:
        """ Like drain, but also waits for every armed timer to fire. """
        while True:
            await self.drain()
            if self.scheduler.armed_count == 0:
                return
            await asyncio.sleep(poll_interval)

    async def shutdown(self) -> None:
        self.scheduler.cancel_all()
        pending = self._tasks | self.scheduler.in_flight
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
