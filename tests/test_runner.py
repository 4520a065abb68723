"""Tests for triggering, suspending and recovering test executions."""

from datetime import timedelta

import pytest
from flowbuilder.errors import (
    AutomationNotFoundError, AutomationValidationError, ExecutionNotFoundError, InvalidSubjectError,
)
from flowbuilder.runner import FlowRunner, clean_subject
from flowbuilder.workflow.models import Execution, ExecutionStatus

from conftest import BRANCH_YAML, DELAY_YAML, LINEAR_YAML

DELAYED_MAIL_YAML = """
name: delayed_mail
nodes:
  - { id: start, type: start }
  - id: wait
    type: delay
    data: { mode: relative, relativeValue: 1, relativeUnit: minutes }
  - { id: mail, type: action, data: { message: "later" } }
  - { id: end, type: end }
edges:
  - { id: e1, source: start, target: wait }
  - { id: e2, source: wait, target: mail }
  - { id: e3, source: mail, target: end }
"""


@pytest.fixture
def runner(automation_store, execution_store, notifier, clock):
    return FlowRunner(automation_store, execution_store, notifier, clock=clock)


def test_clean_subject():
    assert clean_subject("  Someone@Example.COM ") == "Someone@Example.COM"

    with pytest.raises(InvalidSubjectError, match="Email is required"):
        clean_subject("   ")
    with pytest.raises(InvalidSubjectError, match="Invalid email format: not-an-email"):
        clean_subject("not-an-email")


@pytest.mark.asyncio
async def test_start_execution_runs_to_completion(runner, automation_store, notifier, load):
    """Test start -> action -> end through the trigger interface."""
    automation = await automation_store.create(load(LINEAR_YAML))

    execution = await runner.start_execution(automation.id, "a@b.com")
    assert execution.status == ExecutionStatus.PENDING
    assert execution.subject == "a@b.com"

    await runner.drain()

    done = await runner.get_execution(execution.id)
    assert done.status == ExecutionStatus.COMPLETED
    assert len(done.execution_log) == 3
    assert done.completed_at is not None
    assert notifier.sent == [("a@b.com", "hi")]


@pytest.mark.asyncio
async def test_branching_through_runner(runner, automation_store, notifier, load):
    automation = await automation_store.create(load(BRANCH_YAML))

    matched = await runner.start_execution(automation.id, "test@example.com")
    missed = await runner.start_execution(automation.id, "foo@example.com")
    await runner.drain()

    matched = await runner.get_execution(matched.id)
    missed = await runner.get_execution(missed.id)
    assert "TRUE" in matched.execution_log[1].message
    assert matched.execution_log[2].node_id == "yes_mail"
    assert "FALSE" in missed.execution_log[1].message
    assert missed.execution_log[2].node_id == "no_mail"
    assert sorted(notifier.sent) == [("foo@example.com", "not matched"), ("test@example.com", "matched")]


@pytest.mark.asyncio
async def test_start_execution_rejects_bad_input(runner, automation_store, load):
    automation = await automation_store.create(load(LINEAR_YAML))

    with pytest.raises(InvalidSubjectError):
        await runner.start_execution(automation.id, "nope")
    with pytest.raises(AutomationNotFoundError, match="Automation not found: missing"):
        await runner.start_execution("missing", "a@b.com")


@pytest.mark.asyncio
async def test_start_execution_revalidates(runner, automation_store, execution_store, load):
    """An automation stored in an invalid state cannot be run."""
    automation = await automation_store.create(load("""
name: no_end
nodes:
  - { id: start, type: start }
  - { id: hello, type: action, data: { message: "hi" } }
edges:
  - { id: e1, source: start, target: hello }
"""))

    with pytest.raises(AutomationValidationError) as excinfo:
        await runner.start_execution(automation.id, "a@b.com")

    assert str(excinfo.value).startswith("Cannot execute invalid automation: ")
    assert "Flow must have exactly one End node" in excinfo.value.errors
    assert await execution_store.list_recent() == []


@pytest.mark.asyncio
async def test_delay_suspends_then_resumes(runner, automation_store, clock, load):
    automation = await automation_store.create(load(DELAY_YAML))

    execution = await runner.start_execution(automation.id, "a@b.com")
    await runner.drain()

    suspended = await runner.get_execution(execution.id)
    assert suspended.status == ExecutionStatus.PENDING
    assert suspended.current_node_id == "wait"
    assert suspended.scheduled_for == clock.now + timedelta(seconds=60)
    assert runner.scheduler.is_scheduled(execution.id)

    clock.advance(minutes=1)
    await runner.scheduler.resume(execution.id)

    done = await runner.get_execution(execution.id)
    assert done.status == ExecutionStatus.COMPLETED
    assert done.scheduled_for is None
    assert [e.node_id for e in done.execution_log] == ["start", "wait", "end"]
    assert runner.scheduler.armed_count == 0
    await runner.shutdown()


@pytest.mark.asyncio
async def test_restart_recovery_completes_execution(automation_store, execution_store, notifier, clock, load):
    """A new runner over the same stores picks up a past-due suspension."""
    automation = await automation_store.create(load(DELAYED_MAIL_YAML))
    first = FlowRunner(automation_store, execution_store, notifier, clock=clock)
    execution = await first.start_execution(automation.id, "a@b.com")
    await first.drain()
    await first.shutdown()
    assert notifier.sent == []

    clock.advance(minutes=5)
    second = FlowRunner(automation_store, execution_store, notifier, clock=clock)
    assert await second.resume_pending_executions() == 1
    await second.drain()

    done = await second.get_execution(execution.id)
    assert done.status == ExecutionStatus.COMPLETED
    assert notifier.sent == [("a@b.com", "later")]


@pytest.mark.asyncio
async def test_recovery_is_idempotent(runner, automation_store, execution_store, notifier, clock, load):
    """Two past-due and one future suspension; recovering twice delivers once each."""
    automation = await automation_store.create(load(DELAYED_MAIL_YAML))
    due = {
        "past1": clock.now - timedelta(minutes=10),
        "past2": clock.now - timedelta(seconds=1),
        "future": clock.now + timedelta(hours=1),
    }
    for subject, scheduled_for in due.items():
        await execution_store.create(Execution(
            id=subject,
            automation_id=automation.id,
            subject=f"{subject}@example.com",
            status=ExecutionStatus.PENDING,
            current_node_id="wait",
            scheduled_for=scheduled_for,
        ))

    assert await runner.resume_pending_executions() == 3
    assert await runner.resume_pending_executions() == 0
    await runner.drain()

    assert sorted(notifier.sent) == [("past1@example.com", "later"), ("past2@example.com", "later")]
    assert (await runner.get_execution("past1")).status == ExecutionStatus.COMPLETED
    assert (await runner.get_execution("past2")).status == ExecutionStatus.COMPLETED

    future = await runner.get_execution("future")
    assert future.status == ExecutionStatus.PENDING
    assert runner.scheduler.get("future").due == due["future"]
    assert runner.scheduler.armed_count == 1
    await runner.shutdown()


@pytest.mark.asyncio
async def test_wait_until_idle_waits_for_due_timers(runner, automation_store, execution_store, load):
    automation = await automation_store.create(load(DELAY_YAML))
    await execution_store.create(Execution(
        id="x1", automation_id=automation.id, subject="a@b.com", status=ExecutionStatus.PENDING,
        current_node_id="wait", scheduled_for=runner.clock() - timedelta(minutes=1),
    ))

    await runner.resume_pending_executions()
    await runner.wait_until_idle(poll_interval=0.01)

    assert (await runner.get_execution("x1")).status == ExecutionStatus.COMPLETED


@pytest.mark.asyncio
async def test_list_and_get_executions(runner, automation_store, load):
    automation = await automation_store.create(load(LINEAR_YAML))
    for subject in ("a@b.com", "c@d.com"):
        await runner.start_execution(automation.id, subject)
    await runner.drain()

    executions = await runner.list_executions()
    assert len(executions) == 2
    assert len(await runner.list_executions(limit=1)) == 1

    with pytest.raises(ExecutionNotFoundError):
        await runner.get_execution("missing")


@pytest.mark.asyncio
async def test_start_execution_rejects_uncomputable_delay(runner, automation_store, execution_store, load):
    """Delay values the interpreter cannot turn into a resume time never start."""
    for value in (".inf", ".nan", "1e12"):
        automation = await automation_store.create(load(f"""
name: huge_{value}
nodes:
  - {{ id: start, type: start }}
  - id: wait
    type: delay
    data: {{ mode: relative, relativeValue: {value}, relativeUnit: days }}
  - {{ id: end, type: end }}
edges:
  - {{ id: e1, source: start, target: wait }}
  - {{ id: e2, source: wait, target: end }}
"""))

        with pytest.raises(AutomationValidationError):
            await runner.start_execution(automation.id, "a@b.com")

    assert await execution_store.list_recent() == []


@pytest.mark.asyncio
async def test_subject_is_kept_as_given(runner, automation_store, notifier, load):
    """Only rule matching ignores case; the stored and delivered address is untouched."""
    automation = await automation_store.create(load(BRANCH_YAML))

    execution = await runner.start_execution(automation.id, " Test.User@Example.com ")
    await runner.drain()

    done = await runner.get_execution(execution.id)
    assert done.subject == "Test.User@Example.com"
    assert done.execution_log[1].message == "Condition evaluated to: TRUE"
    assert notifier.sent == [("Test.User@Example.com", "matched")]
