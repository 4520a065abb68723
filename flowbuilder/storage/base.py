""" Storage interfaces for automations and executions. """
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from ..workflow.models import Automation, Execution, LogEntry

# Fields an execution update may touch; the log is only ever appended to
EXECUTION_FIELDS = ("status", "current_node_id", "scheduled_for", "completed_at")


def check_execution_fields(fields: dict) -> None:
    unknown = set(fields) - set(EXECUTION_FIELDS)
    if unknown:
        raise ValueError(f"Unknown execution fields: {', '.join(sorted(unknown))}")


class AutomationStore(ABC):
    """ Persistence for automations; names are unique. """

    @abstractmethod
    async def create(self, automation: Automation) -> Automation:
        """ Insert a new automation, assigning an id if it has none. """

    @abstractmethod
    async def get(self, automation_id: str) -> Optional[Automation]:
        pass

    @abstractmethod
    async def get_by_name(self, name: str) -> Optional[Automation]:
        pass

    @abstractmethod
    async def list(self) -> List[Automation]:
        """ All automations, most recently updated first. """

    @abstractmethod
    async def update(self, automation: Automation) -> Automation:
        pass

    @abstractmethod
    async def delete(self, automation_id: str) -> bool:
        pass


class ExecutionStore(ABC):
    """ Persistence for executions. Records are never deleted. """

    @abstractmethod
    async def create(self, execution: Execution) -> Execution:
        pass

    @abstractmethod
    async def get(self, execution_id: str) -> Optional[Execution]:
        pass

    @abstractmethod
    async def update(self, execution_id: str, **fields: Any) -> Execution:
        """
        Atomically set any of status, current_node_id, scheduled_for, completed_at.
        Raises ExecutionNotFoundError for unknown ids.
        """

    @abstractmethod
    async def append_log(self, execution_id: str, entry: LogEntry) -> None:
        pass

    @abstractmethod
    async def list_recent(self, limit: int = 50) -> List[Execution]:
        pass

    @abstractmethod
    async def list_scheduled(self) -> List[Execution]:
        """ Pending executions with a non-null scheduled_for. """
