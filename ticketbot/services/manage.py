"""
Ticket Bot Management

Staff inspect and change tickets from a private management channel.

Screens:
1. SELECTING_TICKET  mention the ticket's channel
2. TICKET            summary + open / close / assignees / exit reactions
3. ASSIGNEES         assignee list + add / remove / exit reactions
4. ASSIGNING / UNASSIGNING   mention the members

Every change is announced in the ticket's own channel. Exiting from the
ticket screen deletes the management channel.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional

from ..errors import PermissionDenied, SessionConflict
from ..models.events import InboundEvent, MessageContent, MessageHandle, MessageReceived, ReactionAdded
from ..models.ticket import Ticket
from .rendering import TicketFormatter
from .steps import StepContext
from .tickets import TicketService

logger = logging.getLogger(__name__)


class ManagerGuard:
    """
    Gate for management operations.

    A member may manage tickets when they own the guild or hold the
    configured manager role.
    """

    def __init__(self, transport, settings, messages):
        self.transport = transport
        self.settings = settings
        self.messages = messages

    async def is_manager(self, user_id: int) -> bool:
        if await self.transport.is_guild_owner(user_id):
            return True
        return self.settings.manager_role in await self.transport.member_role_names(user_id)

    async def require_manager(self, user_id: int) -> None:
        if not await self.is_manager(user_id):
            raise PermissionDenied(
                self.messages.format("manage.permission_error", ROLE=self.settings.manager_role)
            )


class ManageState(str, Enum):
    SELECTING_TICKET = "selecting_ticket"
    TICKET = "ticket"
    ASSIGNEES = "assignees"
    ASSIGNING = "assigning"
    UNASSIGNING = "unassigning"
    CLOSED = "closed"


class ManageSession:
    """
    One manager working in one management channel.

    Registered with the session manager like a step. Only the manager
    who opened it can drive it.
    """

    def __init__(self, service: "ManageService", channel_id: int, user_id: int):
        self.service = service
        self.context = service.context
        self.transport = service.context.transport
        self.messages = service.context.messages
        self.settings = service.context.settings
        self.channel_id = channel_id
        self.user_id = user_id
        self.state = ManageState.SELECTING_TICKET
        self.ticket: Optional[Ticket] = None
        self.panel: Optional[MessageHandle] = None

    # -------------------------------------------------------------------------
    # Session handler
    # -------------------------------------------------------------------------

    async def handle(self, event: InboundEvent) -> None:
        if event.is_bot or self.state == ManageState.CLOSED:
            return

        if isinstance(event, MessageReceived):
            if event.author_id != self.user_id:
                return
            if self.state == ManageState.SELECTING_TICKET:
                await self._select(event)
            elif self.state in (ManageState.ASSIGNING, ManageState.UNASSIGNING):
                await self._mentioned(event)

        elif isinstance(event, ReactionAdded):
            if event.user_id != self.user_id or event.message != self.panel:
                return
            await self.transport.remove_reaction(event.message, event.token, event.user_id)
            if self.state == ManageState.TICKET:
                await self._ticket_reaction(event.token)
            elif self.state == ManageState.ASSIGNEES:
                await self._assignees_reaction(event.token)

    async def expire(self) -> None:
        await self.close()

    async def begin(self) -> None:
        self.context.sessions.register(self.channel_id, self)
        await self._show(
            self.context.notifier.card(
                self.messages.format("manage.select_title"),
                self.messages.format("manage.select_description")
            ),
            [],
            lock=False
        )

    async def close(self) -> None:
        if self.state == ManageState.CLOSED:
            return
        self.state = ManageState.CLOSED
        self.context.sessions.deregister(self.channel_id, self)
        self.context.sessions.release(self.channel_id)
        self.service.forget(self)
        await self.transport.delete_channel(self.channel_id)
        logger.info("Management session of %s in channel %s closed", self.user_id, self.channel_id)

    # -------------------------------------------------------------------------
    # Screens
    # -------------------------------------------------------------------------

    async def _select(self, event: MessageReceived) -> None:
        await self._discard(event)
        for channel in await self.transport.resolve_mentioned_channels(event):
            ticket = self.service.tickets.get(channel)
            if ticket is not None:
                self.ticket = ticket
                await self._show_ticket()
                return
        await self.context.notifier.error(self.channel_id, self.messages.format("manage.select_error"))

    async def _show_ticket(self) -> None:
        self.state = ManageState.TICKET
        await self._show(
            await self.service.formatter.summary(self.ticket),
            [
                self.settings.manage_open_emoji,
                self.settings.manage_close_emoji,
                self.settings.manage_assignees_emoji,
                self.settings.manage_exit_emoji,
            ],
            lock=True
        )

    async def _show_assignees(self) -> None:
        self.state = ManageState.ASSIGNEES
        await self._show(
            await self.service.formatter.assignees(self.ticket),
            [
                self.settings.assignees_add_emoji,
                self.settings.assignees_remove_emoji,
                self.settings.assignees_exit_emoji,
            ],
            lock=True
        )

    async def _ask_mentions(self, state: ManageState) -> None:
        self.state = state
        key = "manage.assign_user" if state == ManageState.ASSIGNING else "manage.unassign_user"
        await self._show(
            self.context.notifier.card(self.messages.format("ticket_data.assignees_title"), self.messages.format(key)),
            [],
            lock=False
        )

    async def _ticket_reaction(self, token: str) -> None:
        settings = self.settings
        if token == settings.manage_open_emoji:
            await self._set_open(True)
        elif token == settings.manage_close_emoji:
            await self._set_open(False)
        elif token == settings.manage_assignees_emoji:
            await self._show_assignees()
        elif token == settings.manage_exit_emoji:
            await self.close()

    async def _assignees_reaction(self, token: str) -> None:
        settings = self.settings
        if token == settings.assignees_add_emoji:
            await self._ask_mentions(ManageState.ASSIGNING)
        elif token == settings.assignees_remove_emoji:
            await self._ask_mentions(ManageState.UNASSIGNING)
        elif token == settings.assignees_exit_emoji:
            await self._show_ticket()

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def _set_open(self, open: bool) -> None:
        if self.ticket.open == open:
            return
        self.ticket = await self.service.tickets.set_open(self.ticket.channel, open)
        key = "manage.title_open" if open else "manage.title_close"
        await self._announce(self.messages.format(key, USER=await self.transport.describe_user(self.user_id)))
        await self.transport.edit_message(self.panel, await self.service.formatter.summary(self.ticket))

    async def _mentioned(self, event: MessageReceived) -> None:
        await self._discard(event)
        users = await self.transport.resolve_mentioned_users(event)
        if not users:
            await self.context.notifier.error(self.channel_id, self.messages.format("manage.mention_invalid"))
            return

        assigning = self.state == ManageState.ASSIGNING
        manager = await self.transport.describe_user(self.user_id)
        for user in users:
            if assigning:
                changed = await self.service.tickets.assign(self.ticket.channel, user)
                key = "manage.title_assign"
            else:
                changed = await self.service.tickets.unassign(self.ticket.channel, user)
                key = "manage.title_unassign"
            if changed:
                assignee = await self.transport.describe_user(user)
                await self._announce(self.messages.format(key, USER=manager, ASSIGNEE=assignee))
        await self._show_assignees()

    async def _announce(self, title: str) -> None:
        await self.context.notifier.info(self.ticket.channel, title)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _show(self, content: MessageContent, reactions: List[str], lock: bool) -> None:
        """Replace the panel. Reaction screens lock the channel, mention screens don't."""
        if self.panel is not None:
            await self.transport.delete_message(self.panel)
        self.panel = await self.transport.send_message(self.channel_id, content)
        for token in reactions:
            await self.transport.add_reaction(self.panel, token)
        if lock:
            self.context.sessions.acquire(self.channel_id)
        else:
            self.context.sessions.release(self.channel_id)

    async def _discard(self, event: MessageReceived) -> None:
        if self.settings.delete_messages:
            await self.transport.delete_message(event.message)


class ManageService:
    """Opens management sessions after the permission check."""

    def __init__(self, context: StepContext, tickets: TicketService, formatter: TicketFormatter, guard: ManagerGuard):
        self.context = context
        self.tickets = tickets
        self.formatter = formatter
        self.guard = guard
        self._active: Dict[int, ManageSession] = {}

    async def start(self, user_id: int, channel_id: int) -> ManageSession:
        if channel_id in self._active or self.context.sessions.active_session_for(channel_id) is not None:
            raise SessionConflict(f"Channel {channel_id} already has an active session.")
        session = ManageSession(self, channel_id, user_id)
        self._active[channel_id] = session
        await session.begin()
        logger.info("Management session of %s started in channel %s", user_id, channel_id)
        return session

    def active_session(self, channel_id: int) -> Optional[ManageSession]:
        return self._active.get(channel_id)

    def forget(self, session: ManageSession) -> None:
        if self._active.get(session.channel_id) is session:
            del self._active[session.channel_id]

