"""Shared fixtures for automation engine tests."""

import os
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import pytest

from flowbuilder.errors import DeliveryError
from flowbuilder.notifiers.base import Notifier
from flowbuilder.storage.memory import MemoryAutomationStore, MemoryExecutionStore
from flowbuilder.workflow.compiler import load_automation


class RecordingNotifier(Notifier):
    """Notifier that records deliveries instead of sending them."""

    def __init__(self, fail_with: Optional[str] = None):
        self.sent: List[Tuple[str, str]] = []
        self.fail_with = fail_with

    async def send(self, subject: str, message: str) -> str:
        if self.fail_with:
            raise DeliveryError(self.fail_with)
        self.sent.append((subject, message))
        return f"msg-{len(self.sent)}"


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


LINEAR_YAML = """
name: linear
nodes:
  - { id: start, type: start }
  - { id: hello, type: action, data: { message: "hi" } }
  - { id: end, type: end }
edges:
  - { id: e1, source: start, target: hello }
  - { id: e2, source: hello, target: end }
"""

DELAY_YAML = """
name: with_delay
nodes:
  - { id: start, type: start }
  - id: wait
    type: delay
    data: { mode: relative, relativeValue: 1, relativeUnit: minutes }
  - { id: end, type: end }
edges:
  - { id: e1, source: start, target: wait }
  - { id: e2, source: wait, target: end }
"""

BRANCH_YAML = """
name: branching
nodes:
  - { id: start, type: start }
  - id: check
    type: condition
    data:
      logic: AND
      rules:
        - { operator: includes, value: test }
  - { id: yes_mail, type: action, data: { message: "matched" } }
  - { id: no_mail, type: action, data: { message: "not matched" } }
  - { id: end, type: end }
edges:
  - { id: e1, source: start, target: check }
  - { id: e2, source: check, target: yes_mail, sourceHandle: "true" }
  - { id: e3, source: check, target: no_mail, sourceHandle: "false" }
  - { id: e4, source: yes_mail, target: end }
  - { id: e5, source: no_mail, target: end }
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep FLOWBUILDER_* variables from the host out of every test."""
    for key in list(os.environ):
        if key.startswith("FLOWBUILDER_"):
            monkeypatch.delenv(key)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def automation_store():
    return MemoryAutomationStore()


@pytest.fixture
def execution_store():
    return MemoryExecutionStore()


@pytest.fixture
def load():
    """Parse an inline YAML automation."""
    return load_automation
