"""Ticket creation from the chat command to the persisted ticket."""

import asyncio
import json

import pytest

from conftest import MEMBER, string_type
from ticketbot.errors import SessionConflict
from ticketbot.models import AnswerKind, MessageReceived, StepDefinition, TicketType
from ticketbot.runtime import Runtime
from ticketbot.services.extensions import ExtensionLoader
from ticketbot.services.steps import PENDING, Done, StepType
from ticketbot.services.wizard import WizardState

LOBBY = 5


async def open_ticket(runtime, transport, author=MEMBER) -> int:
    before = set(transport.channels)
    await runtime.on_event(transport.message(LOBBY, author, "!ticket"))
    (channel,) = set(transport.channels) - before
    return channel


async def say(runtime, transport, channel, text, author=MEMBER):
    await runtime.on_event(transport.message(channel, author, text))


async def react(runtime, transport, channel, token, author=MEMBER):
    prompt = runtime.wizard.active_session(channel).step.prompt
    await runtime.on_event(transport.reaction(prompt, token, author))


def titles(transport, channel):
    return [content.title for _, content in transport.sent_to(channel)]


# =============================================================================
# HAPPY PATHS
# =============================================================================

async def test_single_type_end_to_end(runtime, transport, settings):
    await runtime.catalog.add(string_type())
    channel = await open_ticket(runtime, transport)

    assert transport.channels[channel].name == "ticket-dreta-1"
    assert transport.channels[channel].member_id == MEMBER
    session = runtime.wizard.active_session(channel)
    assert session.state == WizardState.ASKING_TITLE

    await say(runtime, transport, channel, "Printer broke")
    assert session.state == WizardState.ASKING_STEP
    assert transport.last_sent(channel)[1].title == "Describe issue"

    await say(runtime, transport, channel, "printer on fire")

    ticket = runtime.tickets.get(channel)
    assert ticket.title == "Printer broke"
    assert ticket.author == MEMBER
    assert ticket.steps[0].answer == "printer on fire"
    assert ticket.open is True
    assert ticket.assignees == []
    assert session.state == WizardState.DONE
    assert runtime.wizard.active_session(channel) is None
    assert runtime.sessions.active_session_for(channel) is None

    assert titles(transport, channel)[-2:] == ["Ticket created", "Printer broke"]
    saved = json.loads(settings.data_file.read_text(encoding="utf-8"))
    assert saved["tickets"][0]["steps"][0]["answer"] == "printer on fire"


async def test_selection_presented_for_two_types(runtime, transport):
    await runtime.catalog.add(string_type())
    await runtime.catalog.add(TicketType(name="Bug", emoji="🐛", steps=[
        StepDefinition(title="Steps to reproduce", type="string")
    ]))
    channel = await open_ticket(runtime, transport)

    session = runtime.wizard.active_session(channel)
    assert session.state == WizardState.SELECTING_TYPE
    prompt = session.step.prompt
    assert transport.reactions[prompt] == ["🎫", "🐛"]
    assert "**Bug**" in transport.messages[prompt].description
    assert runtime.sessions.is_locked(channel)

    await react(runtime, transport, channel, "🐛")
    assert session.ticket_type.name == "Bug"
    assert session.state == WizardState.ASKING_TITLE
    assert not runtime.sessions.is_locked(channel)

    await say(runtime, transport, channel, "Crash")
    await say(runtime, transport, channel, "click twice")
    assert runtime.tickets.get(channel).steps[0].title == "Steps to reproduce"


async def test_steps_chain_in_order(runtime, transport):
    await runtime.catalog.add(TicketType(name="Facilities", emoji="🏢", steps=[
        StepDefinition(title="Urgent?", type="boolean"),
        StepDefinition(title="Floor", type="integer", options={"min": 1, "max": 5}),
        StepDefinition(title="Rooms", type="list"),
        StepDefinition(title="Area", type="multi_select", options={"options": {"🅰️": "North", "🅱️": "South"}}),
    ]))
    channel = await open_ticket(runtime, transport)
    await say(runtime, transport, channel, "Heating")

    await react(runtime, transport, channel, "✅")
    await say(runtime, transport, channel, "3")
    await say(runtime, transport, channel, "101")
    await react(runtime, transport, channel, "✅")
    await react(runtime, transport, channel, "🅱️")
    await react(runtime, transport, channel, "➡️")

    ticket = runtime.tickets.get(channel)
    assert [(s.title, s.answer) for s in ticket.steps] == [
        ("Urgent?", True),
        ("Floor", 3),
        ("Rooms", ["101"]),
        ("Area", ["South"]),
    ]
    assert [s.type for s in ticket.steps] == ["boolean", "integer", "list", "multi_select"]


async def test_type_without_steps_finalizes_after_title(runtime, transport):
    await runtime.catalog.add(TicketType(name="Hello", emoji="👋"))
    channel = await open_ticket(runtime, transport)
    await say(runtime, transport, channel, "Just saying hi")
    assert runtime.tickets.get(channel).steps == []


async def test_ticket_numbers_count_per_author(runtime, transport):
    await runtime.catalog.add(TicketType(name="Hello", emoji="👋"))
    first = await open_ticket(runtime, transport)
    await say(runtime, transport, first, "One")
    second = await open_ticket(runtime, transport)
    assert transport.channels[second].name == "ticket-dreta-2"


# =============================================================================
# REJECTIONS AND FAILURES
# =============================================================================

async def test_out_of_range_keeps_the_same_step(runtime, transport):
    await runtime.catalog.add(TicketType(name="Rate", emoji="⭐", steps=[
        StepDefinition(title="Score", type="integer", options={"min": 1, "max": 5})
    ]))
    channel = await open_ticket(runtime, transport)
    await say(runtime, transport, channel, "Feedback")
    session = runtime.wizard.active_session(channel)
    step = session.step

    await say(runtime, transport, channel, "7")

    assert session.state == WizardState.ASKING_STEP
    assert session.cursor == 0
    assert session.answers == []
    assert session.step is step
    assert runtime.tickets.get(channel) is None

    await say(runtime, transport, channel, "4")
    assert runtime.tickets.get(channel).steps[0].answer == 4


async def test_title_is_bounded(runtime, transport, settings):
    settings.ticket_title_max_length = 5
    await runtime.catalog.add(TicketType(name="Hello", emoji="👋"))
    channel = await open_ticket(runtime, transport)

    await say(runtime, transport, channel, "Too long")
    assert runtime.wizard.active_session(channel).state == WizardState.ASKING_TITLE
    await say(runtime, transport, channel, "Short")
    assert runtime.tickets.get(channel).title == "Short"


async def test_no_ticket_types(runtime, transport):
    await runtime.on_event(transport.message(LOBBY, MEMBER, "!ticket"))
    assert transport.channels == {}
    assert transport.last_sent(LOBBY)[1].description == "No ticket types have been configured yet."


async def test_unresolvable_type_is_reported(runtime, transport):
    runtime.catalog.load([TicketType(name="Odd", emoji="🌈", steps=[StepDefinition(title="Color", type="color")])])
    channel = await open_ticket(runtime, transport)

    assert runtime.wizard.active_session(channel) is None
    assert transport.last_sent(channel)[1].description == (
        "The ticket type Odd can't be used right now, please contact staff."
    )


async def test_cancel(runtime, transport):
    await runtime.catalog.add(string_type())
    channel = await open_ticket(runtime, transport)

    assert await runtime.wizard.cancel(channel) is True
    assert runtime.sessions.active_session_for(channel) is None
    await say(runtime, transport, channel, "anyone?")
    assert runtime.tickets.get(channel) is None
    assert await runtime.wizard.cancel(channel) is False


async def test_idle_session_expires_when_configured(settings, transport, messages, registry):
    settings.session_idle_timeout = 0.01
    runtime = Runtime(
        settings, transport, messages=messages, registry=registry,
        extensions=ExtensionLoader(registry, group=None)
    )
    await runtime.startup()
    await runtime.catalog.add(string_type())
    channel = await open_ticket(runtime, transport)

    await asyncio.sleep(0.1)

    assert runtime.wizard.active_session(channel) is None
    assert runtime.sessions.active_session_for(channel) is None
    assert transport.last_sent(channel)[1].description == "This session expired due to inactivity."
    await runtime.shutdown()


# =============================================================================
# COMMAND PARSING
# =============================================================================

async def test_command_is_case_insensitive(runtime, transport):
    await runtime.catalog.add(string_type())
    await runtime.on_event(transport.message(LOBBY, MEMBER, "!TICKET"))
    assert len(transport.channels) == 1


async def test_other_messages_are_not_commands(runtime, transport):
    await runtime.catalog.add(string_type())
    for text in ["ticket", "!tickets", "?ticket", "!help"]:
        await runtime.on_event(transport.message(LOBBY, MEMBER, text))
    await runtime.on_event(transport.message(LOBBY, MEMBER, "!ticket", is_bot=True))
    assert transport.channels == {}


async def test_commands_channel_restriction(runtime, transport, settings):
    settings.bot_commands_channel = 77
    await runtime.catalog.add(string_type())
    await runtime.on_event(transport.message(LOBBY, MEMBER, "!ticket"))
    assert transport.channels == {}
    await runtime.on_event(transport.message(77, MEMBER, "!ticket"))
    assert len(transport.channels) == 1


# =============================================================================
# STEP FAILURES
# =============================================================================

FAILED = "Something went wrong while creating your ticket, please contact staff."


class RatingStep(StepType):
    identifier = "rating"
    display_name = "Rating"
    emoji = "🌟"
    answer_kind = AnswerKind.FLOAT

    async def ask(self):
        return await self.transport.send_message(self.channel_id, self.card("Rate us"))

    async def on_input(self, event):
        if isinstance(event, MessageReceived):
            return Done(3)
        return PENDING


class SloppyRatingStep(RatingStep):
    identifier = "sloppy_rating"
    emoji = "🥴"

    async def on_input(self, event):
        return Done("three")


def rating_type(step_type: str) -> TicketType:
    return TicketType(name="Feedback", emoji="⭐", steps=[StepDefinition(title="Rate", type=step_type)])


def fail_sends(monkeypatch, transport, count: int = 1) -> None:
    send_message = transport.send_message
    remaining = [count]

    async def flaky(channel_id, content):
        if remaining[0]:
            remaining[0] -= 1
            raise RuntimeError("HTTP 503")
        return await send_message(channel_id, content)

    monkeypatch.setattr(transport, "send_message", flaky)


async def test_answer_is_stored_as_the_declared_kind(runtime, transport, registry):
    registry.register(RatingStep, owner="ratings")
    await runtime.catalog.add(rating_type("rating"))
    channel = await open_ticket(runtime, transport)
    await say(runtime, transport, channel, "Great service")
    await say(runtime, transport, channel, "three")

    answer = runtime.tickets.get(channel).steps[0]
    assert answer.answer == 3.0
    assert isinstance(answer.answer, float)
    assert answer.answer_type == AnswerKind.FLOAT

    tickets, _ = await runtime.store.load()
    assert [ticket.channel for ticket in tickets] == [channel]
    assert runtime.store.skipped_tickets == []


async def test_answer_of_the_wrong_kind_ends_the_session(runtime, transport, registry):
    registry.register(SloppyRatingStep, owner="ratings")
    await runtime.catalog.add(rating_type("sloppy_rating"))
    channel = await open_ticket(runtime, transport)
    await say(runtime, transport, channel, "Great service")
    await say(runtime, transport, channel, "three")

    assert runtime.tickets.get(channel) is None
    assert runtime.wizard.active_session(channel) is None
    assert runtime.sessions.active_session_for(channel) is None
    assert transport.last_sent(channel)[1].description == FAILED


async def test_failed_prompt_frees_the_channel(runtime, transport, monkeypatch):
    await runtime.catalog.add(TicketType(name="Urgent", emoji="🚨", steps=[
        StepDefinition(title="Is anyone hurt?", type="boolean")
    ]))
    channel = await open_ticket(runtime, transport)
    fail_sends(monkeypatch, transport)

    with pytest.raises(RuntimeError):
        await say(runtime, transport, channel, "Fire")

    assert runtime.wizard.active_session(channel) is None
    assert runtime.sessions.active_session_for(channel) is None
    assert not runtime.sessions.is_locked(channel)
    assert transport.last_sent(channel)[1].description == FAILED

    session = await runtime.wizard.start(MEMBER, channel)
    assert session.state == WizardState.ASKING_TITLE


async def test_failed_save_frees_the_channel(runtime, transport, monkeypatch):
    async def broken_save(ticket_docs, type_docs):
        raise OSError("disk full")

    await runtime.catalog.add(TicketType(name="Hello", emoji="👋"))
    channel = await open_ticket(runtime, transport)
    monkeypatch.setattr(runtime.store, "save", broken_save)

    with pytest.raises(OSError):
        await say(runtime, transport, channel, "Hi")

    assert runtime.tickets.get(channel) is None
    assert runtime.wizard.active_session(channel) is None
    assert transport.last_sent(channel)[1].description == FAILED
    monkeypatch.undo()

    session = await runtime.wizard.start(MEMBER, channel)
    assert session.state == WizardState.ASKING_TITLE


async def test_busy_channel_is_reported(runtime, transport, monkeypatch):
    async def busy(author_id, channel_id):
        raise SessionConflict(f"Channel {channel_id} already has an active session.")

    await runtime.catalog.add(string_type())
    monkeypatch.setattr(runtime.wizard, "start", busy)
    channel = await open_ticket(runtime, transport)

    assert transport.last_sent(channel)[1].description == "A session is already running in this channel."
