"""Example: run the welcome flow in memory, skipping the one day wait."""
import asyncio
import logging
from pathlib import Path

from flowbuilder.automations import AutomationService
from flowbuilder.cli import format_execution
from flowbuilder.notifiers.console import LogNotifier
from flowbuilder.runner import FlowRunner
from flowbuilder.storage.memory import MemoryAutomationStore, MemoryExecutionStore
from flowbuilder.workflow.compiler import load_automation


async def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    automations, executions = MemoryAutomationStore(), MemoryExecutionStore()
    service = AutomationService(automations)
    runner = FlowRunner(automations, executions, LogNotifier())

    source = load_automation((Path(__file__).parent / "welcome_flow.yaml").read_text())
    automation = await service.create(source.name, source.nodes, source.edges)

    for subject in ("jane@acme.com", "sam@example.org"):
        execution = await runner.start_execution(automation.id, subject)
        await runner.drain()
        print(format_execution(await runner.get_execution(execution.id)))

        # don't wait a real day
        await runner.scheduler.resume(execution.id)
        print(format_execution(await runner.get_execution(execution.id)))
        print()

    await runner.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
