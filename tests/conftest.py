"""
Pytest configuration and fixtures.

Everything runs against the InMemoryTransport; no chat platform needed.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from ticketbot.config import MessageCatalog, Settings
from ticketbot.models.ticket import StepDefinition, TicketType
from ticketbot.runtime import Runtime
from ticketbot.services.extensions import ExtensionLoader
from ticketbot.services.notices import Notifier
from ticketbot.services.registry import default_registry
from ticketbot.services.sessions import SessionManager
from ticketbot.services.steps import StepContext, StepType
from ticketbot.transport.memory import InMemoryTransport

MEMBER = 1
STAFF = 2
OWNER = 3
OTHER = 4


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        data_file=tmp_path / "data.json",
        extensions_dir=tmp_path / "extensions",
        delete_error_messages=False,
    )


@pytest.fixture
def messages() -> MessageCatalog:
    return MessageCatalog()


@pytest.fixture
def transport() -> InMemoryTransport:
    transport = InMemoryTransport(owner_id=OWNER)
    transport.add_user(MEMBER, "dreta")
    transport.add_user(STAFF, "helper", roles=["Ticket Bot Manager"])
    transport.add_user(OWNER, "owner")
    transport.add_user(OTHER, "someone")
    return transport


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
async def runtime(settings, transport, messages, registry) -> Runtime:
    loader = ExtensionLoader(registry, directory=None, group=None)
    runtime = Runtime(settings, transport, messages=messages, registry=registry, extensions=loader)
    await runtime.startup()
    yield runtime
    await runtime.shutdown()


def string_type(emoji: str = "🎫", name: str = "Support", steps: Optional[List[StepDefinition]] = None) -> TicketType:
    if steps is None:
        steps = [StepDefinition(title="Describe issue", type="string", options={"maximumLength": 100})]
    return TicketType(name=name, description=f"{name} tickets", emoji=emoji, steps=steps)


# =============================================================================
# STEP HARNESS
# =============================================================================

class StepHarness:
    """Runs one step instance and records what it completed with."""

    def __init__(self, settings: Settings, transport: InMemoryTransport, messages: MessageCatalog):
        self.transport = transport
        self.sessions = SessionManager(transport)
        self.context = StepContext(
            transport=transport,
            sessions=self.sessions,
            notifier=Notifier(transport, messages, settings),
            messages=messages,
            settings=settings
        )
        self.settings = settings
        self.messages = messages
        self.answers: List[Any] = []
        self.channel = 500
        self.step: Optional[StepType] = None

    async def begin(self, step_type, options: Optional[Dict[str, Any]] = None, question: str = "Question?") -> StepType:
        async def on_done(value: Any) -> None:
            self.answers.append(value)

        self.step = step_type(self.context)
        await self.step.begin(self.channel, question, "", options or {}, on_done)
        return self.step

    async def say(self, text: str, author: int = MEMBER):
        event = self.transport.message(self.channel, author, text)
        await self.sessions.dispatch(event)
        return event

    async def react(self, token: str, user: int = MEMBER):
        await self.sessions.dispatch(self.transport.reaction(self.step.prompt, token, user))

    async def unreact(self, token: str, user: int = MEMBER):
        await self.sessions.dispatch(self.transport.unreaction(self.step.prompt, token, user))

    def errors(self) -> List[str]:
        title = self.messages.format("error.title")
        return [
            content.description
            for _, content in self.transport.sent_to(self.channel)
            if content.title == title
        ]


@pytest.fixture
def harness(settings, transport, messages) -> StepHarness:
    return StepHarness(settings, transport, messages)
