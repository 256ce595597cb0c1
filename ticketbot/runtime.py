"""
Ticket Bot Runtime

Wires settings, transport and services into one object.

    runtime = Runtime(settings, transport)
    await runtime.startup()          # extensions, then the data file
    await runtime.on_event(event)    # every inbound chat event
    await runtime.shutdown()         # save, disable extensions
"""

import logging
from typing import Optional

from .config import MessageCatalog, Settings
from .models.events import InboundEvent
from .services.commands import CommandRouter
from .services.extensions import ExtensionLoader
from .services.manage import ManagerGuard, ManageService
from .services.notices import Notifier
from .services.registry import StepTypeRegistry, default_registry
from .services.rendering import TicketFormatter
from .services.sessions import SessionManager
from .services.steps import StepContext
from .services.store import JsonDocumentStore
from .services.tickets import TicketService, TicketTypeCatalog
from .services.wizard import WizardService

logger = logging.getLogger(__name__)


class Runtime:

    def __init__(
        self,
        settings: Settings,
        transport,
        messages: Optional[MessageCatalog] = None,
        registry: Optional[StepTypeRegistry] = None,
        extensions: Optional[ExtensionLoader] = None
    ):
        self.settings = settings
        self.transport = transport
        self.messages = messages or MessageCatalog.load(settings.messages_file)
        self.registry = registry or default_registry()
        self.extensions = extensions or ExtensionLoader(self.registry, settings.extensions_dir)

        self.store = JsonDocumentStore(settings.data_file, self.registry)
        self.tickets = TicketService(on_change=self.persist)
        self.catalog = TicketTypeCatalog(self.registry, on_change=self.persist)

        self.sessions = SessionManager(transport, idle_timeout=settings.session_idle_timeout)
        self.notifier = Notifier(transport, self.messages, settings)
        self.context = StepContext(
            transport=transport,
            sessions=self.sessions,
            notifier=self.notifier,
            messages=self.messages,
            settings=settings
        )
        self.formatter = TicketFormatter(transport, self.messages, self.registry, self.notifier)
        self.wizard = WizardService(self.context, self.registry, self.catalog, self.tickets, self.formatter)
        self.guard = ManagerGuard(transport, settings, self.messages)
        self.manage = ManageService(self.context, self.tickets, self.formatter, self.guard)
        self.commands = CommandRouter(
            transport,
            settings,
            self.messages,
            self.notifier,
            self.tickets,
            self.catalog,
            self.wizard,
            self.manage,
            self.guard
        )
        self.started = False

    async def startup(self) -> None:
        self.extensions.load_all()
        tickets, ticket_types = await self.store.load()
        self.tickets.load(tickets)
        self.catalog.load(ticket_types)
        self.started = True
        logger.info(
            "Ticket bot ready: %d step types, %d ticket types, %d tickets",
            len(self.registry.all()), len(self.catalog), len(self.tickets)
        )

    async def shutdown(self) -> None:
        if self.started:
            await self.persist()
        await self.notifier.aclose()
        self.extensions.disable_all()
        self.started = False
        logger.info("Ticket bot stopped")

    async def persist(self) -> None:
        await self.store.save(self.tickets.documents(), self.catalog.documents())

    async def on_event(self, event: InboundEvent) -> None:
        """Commands first; anything else goes to the channel's session."""
        if await self.commands.handle(event):
            return
        await self.sessions.dispatch(event)
