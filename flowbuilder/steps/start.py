from .base import BaseStep, StepContext, StepResult


class StartStep(BaseStep):
    async def execute(self, ctx: StepContext) -> StepResult:
        return StepResult(message="Flow started", next_node_id=self.next_node(ctx))
