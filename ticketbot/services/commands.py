"""
Ticket Bot Commands

Two chat commands, matched case-insensitively after the prefix:
- <prefix>ticket         open a ticket channel and start the wizard there
- <prefix>ticket manage  open a management channel (managers only)
"""

import logging
from typing import Optional

from ..config import MessageCatalog, Settings, fill
from ..errors import PermissionDenied, SessionConflict, WizardError
from ..models.events import InboundEvent, MessageReceived
from .manage import ManagerGuard, ManageService
from .notices import Notifier
from .tickets import TicketService, TicketTypeCatalog
from .wizard import WizardService

logger = logging.getLogger(__name__)

TICKET_COMMAND = "ticket"
MANAGE_SUBCOMMAND = "manage"


class CommandRouter:
    """Recognizes commands. Everything else is left to the session manager."""

    def __init__(
        self,
        transport,
        settings: Settings,
        messages: MessageCatalog,
        notifier: Notifier,
        tickets: TicketService,
        catalog: TicketTypeCatalog,
        wizard: WizardService,
        manage: ManageService,
        guard: ManagerGuard
    ):
        self.transport = transport
        self.settings = settings
        self.messages = messages
        self.notifier = notifier
        self.tickets = tickets
        self.catalog = catalog
        self.wizard = wizard
        self.manage = manage
        self.guard = guard

    def parse(self, event: MessageReceived) -> Optional[str]:
        """Return 'ticket' or 'manage' when the message is one of our commands."""
        prefix = self.settings.command_prefix
        text = event.text.strip()
        if not text.lower().startswith(prefix.lower()):
            return None
        words = text[len(prefix):].lower().split()
        if not words or words[0] != TICKET_COMMAND:
            return None
        if len(words) > 1 and words[1] == MANAGE_SUBCOMMAND:
            return MANAGE_SUBCOMMAND
        return TICKET_COMMAND

    async def handle(self, event: InboundEvent) -> bool:
        """Returns True when the event was a command and has been handled."""
        if not isinstance(event, MessageReceived) or event.is_bot:
            return False
        commands_channel = self.settings.bot_commands_channel
        if commands_channel and event.channel_id != commands_channel:
            return False
        command = self.parse(event)
        if command is None:
            return False

        if self.settings.delete_messages:
            await self.transport.delete_message(event.message)
        if command == MANAGE_SUBCOMMAND:
            await self.open_management(event)
        else:
            await self.open_ticket(event)
        return True

    async def open_ticket(self, event: MessageReceived) -> Optional[int]:
        if len(self.catalog) == 0:
            await self.notifier.error(event.channel_id, self.messages.format("ticket.no_types"))
            return None

        name = await self.transport.user_name(event.author_id)
        channel_name = fill(
            self.settings.channel_format,
            NAME=name,
            NAMEDISCRIM=name,
            TICKETDISCRIM=len(self.tickets.by_author(event.author_id)) + 1
        )
        topic = fill(self.settings.channel_topic, NAME=name)
        channel_id = await self.transport.create_channel(channel_name, topic, member_id=event.author_id)
        logger.info("Created ticket channel %s (%s) for %s", channel_name, channel_id, event.author_id)

        try:
            await self.wizard.start(event.author_id, channel_id)
        except SessionConflict:
            await self.notifier.error(channel_id, self.messages.format("ticket.session_busy"))
        except WizardError as e:
            await self.notifier.error(channel_id, str(e))
        return channel_id

    async def open_management(self, event: MessageReceived) -> Optional[int]:
        try:
            await self.guard.require_manager(event.author_id)
        except PermissionDenied as e:
            logger.info("%s tried to manage tickets without permission", event.author_id)
            await self.notifier.error(event.channel_id, str(e))
            return None

        name = await self.transport.user_name(event.author_id)
        channel_name = fill(self.settings.manage_channel_format, NAME=name, NAMEDISCRIM=name)
        channel_id = await self.transport.create_channel(channel_name, member_id=event.author_id)
        await self.manage.start(event.author_id, channel_id)
        return channel_id
