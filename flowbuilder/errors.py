""" Exception types raised across the automation engine. """
from typing import List


class FlowError(Exception):
    """Base class for all engine errors."""


class AutomationValidationError(FlowError, ValueError):
    """ Raised when an automation graph fails structural validation. """

    def __init__(self, errors: List[str], message: str = "Validation failed"):
        self.errors = list(errors)
        super().__init__(f"{message}: {'; '.join(self.errors)}")


class NotFoundError(FlowError, LookupError):
    pass


class AutomationNotFoundError(NotFoundError):
    def __init__(self, automation_id: str):
        self.automation_id = automation_id
        super().__init__(f"Automation not found: {automation_id}")


class ExecutionNotFoundError(NotFoundError):
    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"Execution not found: {execution_id}")


class DuplicateNameError(FlowError, ValueError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Automation name must be unique: {name}")


class InvalidSubjectError(FlowError, ValueError):
    pass


class StepError(FlowError):
    """ A single node failed; terminates the execution it belongs to. """


class DeliveryError(StepError):
    pass
