"""Unit tests for the collaborator protocols in recurbot.protocols."""

import inspect

import pytest

from recurbot.protocols import NotificationSink, TaskStorage, TimeProvider
from recurbot.storage import InMemoryTaskStorage, JsonTaskStorage

pytestmark = [pytest.mark.unit, pytest.mark.fast]


def _protocol_methods(protocol):
    return [
        name
        for name, member in vars(protocol).items()
        if inspect.isfunction(member) and (not name.startswith("_") or name == "__call__")
    ]


@pytest.mark.parametrize("protocol", [TaskStorage, NotificationSink, TimeProvider])
def test_protocol_methods_when_inspected_then_each_documented(protocol) -> None:
    undocumented = [name for name in _protocol_methods(protocol) if not inspect.getdoc(getattr(protocol, name))]

    assert undocumented == []


@pytest.mark.parametrize("implementation", [InMemoryTaskStorage, JsonTaskStorage])
def test_storage_implementations_when_inspected_then_cover_task_storage(implementation) -> None:
    missing = [name for name in _protocol_methods(TaskStorage) if not callable(getattr(implementation, name, None))]

    assert missing == []
