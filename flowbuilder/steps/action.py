from .base import BaseStep, StepContext, StepResult
from ..errors import StepError
from ..workflow.models import ActionData


class ActionStep(BaseStep):
    """ Sends the node's message to the subject through the notifier. """

    async def execute(self, ctx: StepContext) -> StepResult:
        if not isinstance(self.data, ActionData) or not self.data.message:
            raise StepError(f"Action node {self.node_id} is missing message")

        # resolve the successor first so a dangling action never sends
        next_id = self.next_node(ctx)
        message = self.data.message
        delivery_id = await ctx.notifier.send(ctx.subject, message)
        preview = message[:ctx.preview_chars]
        return StepResult(
            message=f'Email sent: "{preview}..." (ID: {delivery_id})',
            next_node_id=next_id,
        )
