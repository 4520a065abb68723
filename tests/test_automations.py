"""Tests for the automation authoring service."""

import pytest
from flowbuilder.automations import AutomationService, clean_name
from flowbuilder.errors import AutomationNotFoundError, AutomationValidationError, DuplicateNameError

from conftest import BRANCH_YAML, LINEAR_YAML


@pytest.fixture
def service(automation_store, clock):
    return AutomationService(automation_store, clock=clock)


def test_clean_name():
    assert clean_name("  Welcome flow ") == "Welcome flow"

    with pytest.raises(AutomationValidationError, match="Automation name is required"):
        clean_name("")
    with pytest.raises(AutomationValidationError, match="at most 100 characters"):
        clean_name("x" * 101)


@pytest.mark.asyncio
async def test_create_valid_automation(service, load):
    source = load(LINEAR_YAML)

    created = await service.create(source.name, source.nodes, source.edges)

    assert created.id
    assert created.created_at is not None
    assert (await service.get(created.id)).nodes == source.nodes


@pytest.mark.asyncio
async def test_create_rejects_invalid_graph(service, automation_store, load):
    source = load(LINEAR_YAML)

    with pytest.raises(AutomationValidationError) as excinfo:
        await service.create("broken", source.nodes, source.edges[:1])

    assert "Action node hello must have exactly one outgoing edge" in excinfo.value.errors
    assert str(excinfo.value).startswith("Validation failed: ")
    assert await automation_store.list() == []


@pytest.mark.asyncio
async def test_names_are_unique(service, load):
    source = load(LINEAR_YAML)
    await service.create("same", source.nodes, source.edges)

    with pytest.raises(DuplicateNameError, match="Automation name must be unique: same"):
        await service.create("same", source.nodes, source.edges)


@pytest.mark.asyncio
async def test_create_from_editor_payload(service):
    created = await service.create_from_dict({
        "name": "from editor",
        "nodes": [
            {"id": "s", "type": "start", "position": {"x": 0, "y": 0}, "data": {}},
            {"id": "d", "type": "delay", "data": {"mode": "relative", "relativeValue": 3, "relativeUnit": "days"}},
            {"id": "e", "type": "end", "data": {}},
        ],
        "edges": [
            {"id": "e1", "source": "s", "target": "d"},
            {"id": "e2", "source": "d", "target": "e"},
        ],
    })

    assert created.name == "from editor"
    assert created.nodes[1].data.relative_unit == "days"


@pytest.mark.asyncio
async def test_create_from_payload_missing_fields(service):
    with pytest.raises(AutomationValidationError, match="Missing required fields: nodes, edges"):
        await service.create_from_dict({"name": "x"})


@pytest.mark.asyncio
async def test_update_graph_and_name(service, load):
    linear = load(LINEAR_YAML)
    branch = load(BRANCH_YAML)
    created = await service.create("flow", linear.nodes, linear.edges)

    renamed = await service.update(created.id, name="renamed")
    assert renamed.name == "renamed"
    assert renamed.nodes == linear.nodes

    regraphed = await service.update(created.id, nodes=branch.nodes, edges=branch.edges)
    assert regraphed.name == "renamed"
    assert regraphed.nodes == branch.nodes
    assert regraphed.created_at == created.created_at


@pytest.mark.asyncio
async def test_update_validates_new_graph(service, load):
    linear = load(LINEAR_YAML)
    created = await service.create("flow", linear.nodes, linear.edges)

    with pytest.raises(AutomationValidationError):
        await service.update(created.id, nodes=linear.nodes[:1], edges=[])

    assert (await service.get(created.id)).nodes == linear.nodes


@pytest.mark.asyncio
async def test_nodes_and_edges_update_together(service, load):
    linear = load(LINEAR_YAML)
    created = await service.create("flow", linear.nodes, linear.edges)

    with pytest.raises(AutomationValidationError, match="Nodes and edges must be updated together"):
        await service.update(created.id, nodes=[])
    with pytest.raises(AutomationValidationError, match="Nodes and edges must be updated together"):
        await service.update(created.id, name="renamed", edges=linear.edges)

    assert await service.get(created.id) == created


@pytest.mark.asyncio
async def test_get_and_delete_missing(service, load):
    linear = load(LINEAR_YAML)
    created = await service.create("flow", linear.nodes, linear.edges)

    await service.delete(created.id)

    with pytest.raises(AutomationNotFoundError):
        await service.get(created.id)
    with pytest.raises(AutomationNotFoundError, match="Automation not found: nope"):
        await service.delete("nope")
    assert await service.list() == []
