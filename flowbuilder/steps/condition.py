from .base import BaseStep, StepContext, StepResult
from ..errors import StepError
from ..workflow.guards import evaluate_condition
from ..workflow.models import ConditionData


class ConditionStep(BaseStep):
    """ Branches on the subject identity via the node's true/false edges. """

    async def execute(self, ctx: StepContext) -> StepResult:
        if not isinstance(self.data, ConditionData):
            raise StepError(f"Condition node {self.node_id} must have at least one rule")

        outcome = evaluate_condition(self.data, ctx.subject)
        label = "TRUE" if outcome else "FALSE"
        message = f"Condition evaluated to: {label}"
        target = ctx.graph.branch(self.node_id, outcome)
        if target is None:
            return StepResult(message=message, error=f"No {label} path found for condition node {self.node_id}")
        return StepResult(message=message, next_node_id=target)
