""" In-process stores. Useful for tests and single-shot CLI runs. """
import copy
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..errors import DuplicateNameError, ExecutionNotFoundError, AutomationNotFoundError
from ..workflow.models import Automation, Execution, ExecutionStatus, LogEntry
from .base import AutomationStore, ExecutionStore, check_execution_fields


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryAutomationStore(AutomationStore):

    def __init__(self):
        self._items: Dict[str, Automation] = {}

    def _name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        return any(a.name == name and a.id != exclude_id for a in self._items.values())

    async def create(self, automation: Automation) -> Automation:
        if self._name_taken(automation.name):
            raise DuplicateNameError(automation.name)
        now = _now()
        stored = replace(automation, id=automation.id or str(uuid.uuid4()), created_at=now, updated_at=now)
        self._items[stored.id] = stored
        return stored

    async def get(self, automation_id: str) -> Optional[Automation]:
        return self._items.get(automation_id)

    async def get_by_name(self, name: str) -> Optional[Automation]:
        return next((a for a in self._items.values() if a.name == name), None)

    async def list(self) -> List[Automation]:
        return sorted(self._items.values(), key=lambda a: a.updated_at, reverse=True)

    async def update(self, automation: Automation) -> Automation:
        current = self._items.get(automation.id)
        if current is None:
            raise AutomationNotFoundError(automation.id)
        if self._name_taken(automation.name, exclude_id=automation.id):
            raise DuplicateNameError(automation.name)
        stored = replace(automation, created_at=current.created_at, updated_at=_now())
        self._items[stored.id] = stored
        return stored

    async def delete(self, automation_id: str) -> bool:
        return self._items.pop(automation_id, None) is not None


class MemoryExecutionStore(ExecutionStore):
    """ Hands out deep copies so callers never alias stored records. """

    def __init__(self):
        self._items: Dict[str, Execution] = {}

    async def create(self, execution: Execution) -> Execution:
        stored = replace(
            copy.deepcopy(execution),
            id=execution.id or str(uuid.uuid4()),
            created_at=execution.created_at or _now(),
        )
        self._items[stored.id] = stored
        return copy.deepcopy(stored)

    async def get(self, execution_id: str) -> Optional[Execution]:
        item = self._items.get(execution_id)
        return copy.deepcopy(item) if item else None

    async def update(self, execution_id: str, **fields: Any) -> Execution:
        check_execution_fields(fields)
        item = self._items.get(execution_id)
        if item is None:
            raise ExecutionNotFoundError(execution_id)
        for key, value in fields.items():
            setattr(item, key, value)
        return copy.deepcopy(item)

    async def append_log(self, execution_id: str, entry: LogEntry) -> None:
        item = self._items.get(execution_id)
        if item is None:
            raise ExecutionNotFoundError(execution_id)
        item.execution_log.append(copy.deepcopy(entry))

    async def list_recent(self, limit: int = 50) -> List[Execution]:
        items = sorted(self._items.values(), key=lambda e: e.created_at, reverse=True)
        return [copy.deepcopy(e) for e in items[:limit]]

    async def list_scheduled(self) -> List[Execution]:
        return [
            copy.deepcopy(e) for e in self._items.values()
            if e.status == ExecutionStatus.PENDING and e.scheduled_for is not None
        ]
