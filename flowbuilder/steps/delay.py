from .base import BaseStep, StepContext, StepResult
from ..errors import StepError
from ..workflow.delays import delay_millis, describe_delay, resume_time
from ..workflow.models import DelayData


class DelayStep(BaseStep):
    """ Suspends the execution until the delay has elapsed. """

    async def execute(self, ctx: StepContext) -> StepResult:
        if not isinstance(self.data, DelayData):
            raise StepError(f"Delay node {self.node_id} is missing mode")

        next_id = self.next_node(ctx)
        if delay_millis(self.data, ctx.now) <= 0:
            return StepResult(message="Delay already elapsed, continuing", next_node_id=next_id)

        return StepResult(
            message=f"Delaying {describe_delay(self.data)}",
            resume_at=resume_time(self.data, ctx.now),
        )
