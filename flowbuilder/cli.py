"""
Command line entry point.

    flowbuilder validate flows/welcome.yaml
    flowbuilder save flows/welcome.yaml
    flowbuilder run welcome --to someone@example.com --wait
    flowbuilder serve
"""

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

from .automations import AutomationService
from .config import Settings, load_settings
from .errors import FlowError
from .notifiers.registry import build_notifier
from .runner import FlowRunner
from .storage.memory import MemoryAutomationStore, MemoryExecutionStore
from .storage.sqlite import SqliteAutomationStore, SqliteDatabase, SqliteExecutionStore
from .workflow.compiler import load_automation
from .workflow.models import Execution
from .workflow.validator import validate


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def open_runtime(settings: Settings):
    """ Yield (AutomationService, FlowRunner) wired to the configured stores. """
    database = None
    if settings.database_path:
        database = SqliteDatabase(settings.database_path)
        await database.initialize()
        automations, executions = SqliteAutomationStore(database), SqliteExecutionStore(database)
    else:
        automations, executions = MemoryAutomationStore(), MemoryExecutionStore()

    runner = FlowRunner(
        automations,
        executions,
        build_notifier(settings),
        preview_chars=settings.message_preview_chars,
        recent_limit=settings.recent_executions_limit,
    )
    try:
        yield AutomationService(automations), runner
    finally:
        await runner.shutdown()
        if database is not None:
            await database.close()


def format_execution(execution: Execution) -> str:
    lines = [
        f"Execution {execution.id}",
        f"  automation: {execution.automation_id}",
        f"  subject:    {execution.subject}",
        f"  status:     {execution.status}",
        f"  node:       {execution.current_node_id}",
    ]
    if execution.scheduled_for:
        lines.append(f"  resumes at: {execution.scheduled_for.isoformat()}")
    if execution.completed_at:
        lines.append(f"  finished:   {execution.completed_at.isoformat()}")
    for entry in execution.execution_log:
        text = entry.message if entry.error is None else f"ERROR {entry.error}"
        lines.append(f"  [{entry.timestamp.isoformat()}] {entry.node_type}:{entry.node_id} {entry.status} - {text}")
    return "\n".join(lines)


def cmd_validate(args, settings: Settings) -> int:
    automation = load_automation(Path(args.file).read_text())
    errors = validate(automation.nodes, automation.edges)
    if errors:
        for error in errors:
            print(f"- {error}")
        return 1
    print(f"{automation.name}: OK")
    return 0


async def _save(service: AutomationService, path: str):
    automation = load_automation(Path(path).read_text())
    existing = await service.store.get_by_name(automation.name)
    if existing is None:
        return await service.create(automation.name, automation.nodes, automation.edges)
    return await service.update(existing.id, nodes=automation.nodes, edges=automation.edges)


async def cmd_save(args, settings: Settings) -> int:
    async with open_runtime(settings) as (service, _runner):
        automation = await _save(service, args.file)
        print(f"Saved automation {automation.id} ({automation.name})")
    return 0


async def cmd_run(args, settings: Settings) -> int:
    async with open_runtime(settings) as (service, runner):
        if Path(args.automation).is_file():
            automation = await _save(service, args.automation)
        else:
            automation = await service.store.get_by_name(args.automation) or await service.get(args.automation)

        execution = await runner.start_execution(automation.id, args.to)
        print(f"Started execution {execution.id} ({execution.status})")
        if args.wait:
            await runner.wait_until_idle()
        else:
            await runner.drain()
        print(format_execution(await runner.get_execution(execution.id)))
    return 0


async def cmd_serve(args, settings: Settings) -> int:
    async with open_runtime(settings) as (_service, runner):
        armed = await runner.resume_pending_executions()
        print(f"Re-armed {armed} pending executions")
        await runner.wait_until_idle(poll_interval=args.poll_interval)
    return 0


async def cmd_executions(args, settings: Settings) -> int:
    async with open_runtime(settings) as (_service, runner):
        for execution in await runner.list_executions(args.limit):
            print(f"{execution.id}  {execution.status:<9}  {execution.subject}  {execution.automation_id}")
    return 0


async def cmd_show(args, settings: Settings) -> int:
    async with open_runtime(settings) as (_service, runner):
        print(format_execution(await runner.get_execution(args.execution_id)))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="flowbuilder", description="Validate and test-run automation flows")
    parser.add_argument("--config", help="YAML settings file")
    parser.add_argument("--log-level", help="Override the configured log level")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="Check an automation file for structural errors")
    p.add_argument("file")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("save", help="Create or update an automation from a file")
    p.add_argument("file")
    p.set_defaults(func=cmd_save)

    p = sub.add_parser("run", help="Start a test execution")
    p.add_argument("automation", help="Automation file, name or id")
    p.add_argument("--to", required=True, help="Test recipient address")
    p.add_argument("--wait", action="store_true", help="Keep running until every delay has elapsed")
    p.set_defaults(func=cmd_run)

    p = sub.add_parser("serve", help="Resume suspended executions and run until they finish")
    p.add_argument("--poll-interval", type=float, default=1.0)
    p.set_defaults(func=cmd_serve)

    p = sub.add_parser("executions", help="List recent executions")
    p.add_argument("--limit", type=int, default=None)
    p.set_defaults(func=cmd_executions)

    p = sub.add_parser("show", help="Show one execution and its log")
    p.add_argument("execution_id")
    p.set_defaults(func=cmd_show)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    configure_logging(args.log_level or settings.log_level)

    try:
        result = args.func(args, settings)
        if asyncio.iscoroutine(result):
            result = asyncio.run(result)
        return result
    except (FlowError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
