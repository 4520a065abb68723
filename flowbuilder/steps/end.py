from .base import BaseStep, StepContext, StepResult


class EndStep(BaseStep):
    async def execute(self, ctx: StepContext) -> StepResult:
        return StepResult(message="Flow completed successfully", completed=True)
