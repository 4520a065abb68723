""" Factory for creating step instances based on node type. """
from typing import Dict, Type

from ..errors import StepError
from ..steps.base import BaseStep
from ..steps.action import ActionStep
from ..steps.condition import ConditionStep
from ..steps.delay import DelayStep
from ..steps.end import EndStep
from ..steps.start import StartStep
from .models import Node

_STEP_MAP: Dict[str, Type[BaseStep]] = {
    "start": StartStep,
    "action": ActionStep,
    "delay": DelayStep,
    "condition": ConditionStep,
    "end": EndStep,
}


def make_step(node: Node) -> BaseStep:
    cls = _STEP_MAP.get(node.type)
    if not cls:
        raise StepError(f"Unknown node type: {node.type}")
    return cls(node)
