"""Management command and screens."""

import pytest

from conftest import MEMBER, OTHER, OWNER, STAFF
from ticketbot.models import Ticket
from ticketbot.services.manage import ManageState

LOBBY = 5
TICKET_CHANNEL = 42

OPEN = "🔓"
CLOSE = "🔒"
ASSIGNEES = "👥"
EXIT = "❌"
ADD = "➕"
REMOVE = "➖"
BACK = "↩️"


@pytest.fixture
async def ticket(runtime):
    ticket = Ticket(title="Printer", author=MEMBER, channel=TICKET_CHANNEL)
    await runtime.tickets.insert(ticket)
    return ticket


async def start(runtime, transport, user=STAFF):
    before = set(transport.channels)
    await runtime.on_event(transport.message(LOBBY, user, "!ticket manage"))
    created = set(transport.channels) - before
    if not created:
        return None
    (channel,) = created
    return runtime.manage.active_session(channel)


async def pick(runtime, transport, session, channel=TICKET_CHANNEL):
    await runtime.on_event(transport.message(session.channel_id, session.user_id, f"<#{channel}>"))


async def press(runtime, transport, session, token):
    await runtime.on_event(transport.reaction(session.panel, token, session.user_id))


def announcements(transport):
    return [content.title for _, content in transport.sent_to(TICKET_CHANNEL)]


async def test_permission_denied(runtime, transport, ticket):
    assert await start(runtime, transport, user=OTHER) is None
    assert transport.last_sent(LOBBY)[1].description == "You need the Ticket Bot Manager role to manage tickets."


async def test_guild_owner_may_manage(runtime, transport, ticket):
    session = await start(runtime, transport, user=OWNER)
    assert session is not None
    assert transport.channels[session.channel_id].name == "manage-owner"


async def test_select_ticket_by_channel_mention(runtime, transport, ticket):
    session = await start(runtime, transport)
    assert session.state == ManageState.SELECTING_TICKET

    await pick(runtime, transport, session, channel=999)
    assert session.state == ManageState.SELECTING_TICKET
    assert transport.last_sent(session.channel_id)[1].description == "That channel doesn't belong to a ticket."

    await pick(runtime, transport, session)
    assert session.state == ManageState.TICKET
    assert session.ticket is ticket
    assert transport.reactions[session.panel] == [OPEN, CLOSE, ASSIGNEES, EXIT]
    assert runtime.sessions.is_locked(session.channel_id)
    assert transport.messages[session.panel].title == "Printer"


async def test_close_and_reopen(runtime, transport, ticket):
    session = await start(runtime, transport)
    await pick(runtime, transport, session)

    await press(runtime, transport, session, CLOSE)
    assert ticket.open is False
    assert announcements(transport) == ["helper closed this ticket."]

    await press(runtime, transport, session, CLOSE)
    assert len(announcements(transport)) == 1

    await press(runtime, transport, session, OPEN)
    assert ticket.open is True
    assert announcements(transport)[-1] == "helper reopened this ticket."


async def test_assign_and_unassign(runtime, transport, ticket):
    session = await start(runtime, transport)
    await pick(runtime, transport, session)
    await press(runtime, transport, session, ASSIGNEES)
    assert session.state == ManageState.ASSIGNEES
    assert transport.reactions[session.panel] == [ADD, REMOVE, BACK]

    await press(runtime, transport, session, ADD)
    assert session.state == ManageState.ASSIGNING
    assert not runtime.sessions.is_locked(session.channel_id)

    await runtime.on_event(transport.message(session.channel_id, STAFF, f"<@{STAFF}> and <@!{OTHER}>"))
    assert ticket.assignees == [STAFF, OTHER]
    assert session.state == ManageState.ASSIGNEES
    assert announcements(transport) == [
        "helper assigned helper to this ticket.",
        "helper assigned someone to this ticket.",
    ]

    await press(runtime, transport, session, ADD)
    await runtime.on_event(transport.message(session.channel_id, STAFF, f"<@{STAFF}>"))
    assert ticket.assignees == [STAFF, OTHER]
    assert len(announcements(transport)) == 2

    await press(runtime, transport, session, REMOVE)
    await runtime.on_event(transport.message(session.channel_id, STAFF, f"<@{OTHER}>"))
    assert ticket.assignees == [STAFF]
    assert announcements(transport)[-1] == "helper unassigned someone from this ticket."


async def test_mention_required(runtime, transport, ticket):
    session = await start(runtime, transport)
    await pick(runtime, transport, session)
    await press(runtime, transport, session, ASSIGNEES)
    await press(runtime, transport, session, ADD)

    await runtime.on_event(transport.message(session.channel_id, STAFF, "nobody"))

    assert session.state == ManageState.ASSIGNING
    assert transport.last_sent(session.channel_id)[1].description == "Please mention at least one member."


async def test_back_and_exit(runtime, transport, ticket):
    session = await start(runtime, transport)
    channel = session.channel_id
    await pick(runtime, transport, session)
    await press(runtime, transport, session, ASSIGNEES)
    await press(runtime, transport, session, BACK)
    assert session.state == ManageState.TICKET

    await press(runtime, transport, session, EXIT)

    assert session.state == ManageState.CLOSED
    assert channel in transport.deleted_channels
    assert runtime.sessions.active_session_for(channel) is None
    assert not runtime.sessions.is_locked(channel)
    assert runtime.manage.active_session(channel) is None


async def test_only_the_manager_drives_the_session(runtime, transport, ticket):
    session = await start(runtime, transport)
    await runtime.on_event(transport.message(session.channel_id, MEMBER, f"<#{TICKET_CHANNEL}>"))
    assert session.state == ManageState.SELECTING_TICKET

    await pick(runtime, transport, session)
    await runtime.on_event(transport.reaction(session.panel, CLOSE, OTHER))
    assert ticket.open is True


async def test_changes_are_persisted(runtime, transport, ticket, settings):
    session = await start(runtime, transport)
    await pick(runtime, transport, session)
    await press(runtime, transport, session, CLOSE)
    assert '"open": false' in settings.data_file.read_text(encoding="utf-8")
