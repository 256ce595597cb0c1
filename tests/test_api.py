"""HTTP API for staff tooling."""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from conftest import MEMBER, STAFF, string_type
from ticketbot.api import create_app
from ticketbot.models import Ticket
from ticketbot.runtime import Runtime
from ticketbot.services.extensions import ExtensionLoader


@pytest.fixture
def api_runtime(settings, transport, messages, registry):
    runtime = Runtime(
        settings, transport, messages=messages, registry=registry,
        extensions=ExtensionLoader(registry, group=None)
    )
    asyncio.run(runtime.startup())
    runtime.tickets.load([
        Ticket(title="Printer", author=MEMBER, channel=10),
        Ticket(title="Scanner", author=MEMBER, channel=11, open=False),
        Ticket(title="Access", author=STAFF, channel=12),
    ])
    runtime.catalog.load([string_type()])
    return runtime


@pytest.fixture
def client(api_runtime):
    return TestClient(create_app(api_runtime))


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["service"] == "ticketbot"


# =============================================================================
# TICKETS
# =============================================================================

def test_list_tickets(client):
    assert [t["title"] for t in client.get("/tickets").json()] == ["Printer", "Scanner", "Access"]
    assert [t["title"] for t in client.get("/tickets", params={"open": False}).json()] == ["Scanner"]


def test_get_ticket(client):
    response = client.get("/tickets/10")
    assert response.status_code == 200
    assert response.json()["title"] == "Printer"
    assert response.json()["assignees"] == []


def test_unknown_ticket_is_404(client):
    response = client.get("/tickets/99")
    assert response.status_code == 404
    assert response.json()["detail"] == "No ticket in channel 99."


def test_tickets_by_author(client):
    assert [t["channel"] for t in client.get(f"/users/{MEMBER}/tickets").json()] == [10, 11]
    assert client.get("/users/99/tickets").json() == []


def test_close_and_reopen(client, api_runtime, settings):
    assert client.post("/tickets/10/close").json()["open"] is False
    assert api_runtime.tickets.require(10).open is False
    saved = json.loads(settings.data_file.read_text(encoding="utf-8"))
    assert saved["tickets"][0]["open"] is False

    assert client.post("/tickets/10/open").json()["open"] is True


def test_assign_and_unassign(client):
    first = client.post("/tickets/10/assignees", json={"user": STAFF}).json()
    again = client.post("/tickets/10/assignees", json={"user": STAFF}).json()
    assert first["changed"] is True
    assert again["changed"] is False
    assert again["ticket"]["assignees"] == [STAFF]

    removed = client.delete(f"/tickets/10/assignees/{STAFF}").json()
    assert removed["changed"] is True
    assert removed["ticket"]["assignees"] == []
    assert client.delete(f"/tickets/10/assignees/{STAFF}").json()["changed"] is False


def test_assign_unknown_ticket(client):
    assert client.post("/tickets/99/assignees", json={"user": STAFF}).status_code == 404


def test_cancel_hanging_wizard(client, api_runtime):
    asyncio.run(api_runtime.wizard.start(MEMBER, 500))
    assert api_runtime.sessions.active_session_for(500) is not None

    assert client.post("/tickets/500/wizard/cancel").json() == {"cancelled": True}
    assert api_runtime.sessions.active_session_for(500) is None
    assert api_runtime.wizard.active_session(500) is None
    assert client.post("/tickets/500/wizard/cancel").json() == {"cancelled": False}


# =============================================================================
# TICKET TYPES
# =============================================================================

def test_list_ticket_types(client):
    (support,) = client.get("/ticket-types").json()
    assert support["emoji"] == "🎫"
    assert support["steps"][0]["type"] == "string"


def test_create_ticket_type(client, api_runtime):
    body = {"name": "Bug", "emoji": "🐛", "steps": [{"title": "Severity", "type": "integer", "options": {"min": 1}}]}
    response = client.post("/ticket-types", json=body)
    assert response.status_code == 201
    assert api_runtime.catalog.get("🐛").steps[0].options == {"min": 1}


def test_create_ticket_type_conflict(client):
    response = client.post("/ticket-types", json={"name": "Other", "emoji": "🎫"})
    assert response.status_code == 409


def test_create_ticket_type_unknown_step(client):
    body = {"name": "Odd", "emoji": "🌈", "steps": [{"title": "Color", "type": "color"}]}
    assert client.post("/ticket-types", json=body).status_code == 422


def test_replace_ticket_type(client, api_runtime):
    response = client.put("/ticket-types/🎫", json={"name": "Help", "emoji": "🆘"})
    assert response.status_code == 200
    assert api_runtime.catalog.get("🎫") is None
    assert api_runtime.catalog.get("🆘").name == "Help"
    assert client.put("/ticket-types/🎫", json={"name": "Help", "emoji": "🆘"}).status_code == 404


# =============================================================================
# STEP TYPES
# =============================================================================

def test_list_step_types(client):
    step_types = client.get("/step-types").json()
    assert [s["identifier"] for s in step_types] == [
        "boolean", "integer", "double", "string", "list", "single_select", "multi_select"
    ]
    boolean = step_types[0]
    assert boolean["answer_type"] == "boolean"
    assert boolean["locks_channel"] is True
    assert boolean["extension"] is None
