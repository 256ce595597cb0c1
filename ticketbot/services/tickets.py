"""
Ticket Bot Ticket Service

Owns the two process-wide tables:
- tickets, keyed by channel (plus a non-unique index by author)
- ticket types, keyed by selector emoji

Each table has ONE asyncio.Lock. Every mutation takes it, changes the
table, then persists through `on_change` before releasing it, so a
mutation and its save are never interleaved with another mutation.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..errors import (
    CatalogError,
    SelectorConflict,
    StepTypeNotFound,
    TicketError,
    TicketNotFound,
    TicketTypeNotFound,
)
from ..models.ticket import Ticket, TicketType
from .registry import StepTypeRegistry

logger = logging.getLogger(__name__)

OnChange = Optional[Callable[[], Awaitable[None]]]


# =============================================================================
# TICKETS
# =============================================================================

class TicketService:
    """
    The ticket table.

    Rules:
    1. Exactly one ticket per channel
    2. Tickets are never deleted; closing only flips `open`
    3. Assigning twice is the same as assigning once
    4. Unassigning a member who is not assigned changes nothing
    """

    def __init__(self, on_change: OnChange = None):
        self.on_change = on_change
        self._tickets: Dict[int, Ticket] = {}
        self._by_author: Dict[int, List[int]] = defaultdict(list)
        self._lock = asyncio.Lock()

    def load(self, tickets: List[Ticket]) -> None:
        """Replace the table with already persisted tickets. Does not persist."""
        self._tickets.clear()
        self._by_author.clear()
        for ticket in tickets:
            if ticket.channel in self._tickets:
                logger.warning("Duplicate ticket for channel %s ignored", ticket.channel)
                continue
            self._index(ticket)

    async def insert(self, ticket: Ticket) -> Ticket:
        async with self._lock:
            if ticket.channel in self._tickets:
                raise TicketError(f"Channel {ticket.channel} already has a ticket.")
            self._index(ticket)
            try:
                await self._changed()
            except Exception:
                self._unindex(ticket)
                raise
        logger.info("Ticket %r created in channel %s by %s", ticket.title, ticket.channel, ticket.author)
        return ticket

    def get(self, channel: int) -> Optional[Ticket]:
        return self._tickets.get(channel)

    def require(self, channel: int) -> Ticket:
        ticket = self._tickets.get(channel)
        if ticket is None:
            raise TicketNotFound(channel)
        return ticket

    def by_author(self, author: int) -> List[Ticket]:
        return [self._tickets[channel] for channel in self._by_author.get(author, [])]

    def all(self, open: Optional[bool] = None) -> List[Ticket]:
        tickets = list(self._tickets.values())
        if open is None:
            return tickets
        return [ticket for ticket in tickets if ticket.open == open]

    def __len__(self) -> int:
        return len(self._tickets)

    async def set_open(self, channel: int, open: bool) -> Ticket:
        async with self._lock:
            ticket = self.require(channel)
            if ticket.open != open:
                ticket.open = open
                await self._changed()
                logger.info("Ticket in channel %s %s", channel, "reopened" if open else "closed")
            return ticket

    async def assign(self, channel: int, user: int) -> bool:
        """Returns True when the member was not assigned yet."""
        async with self._lock:
            ticket = self.require(channel)
            if user in ticket.assignees:
                return False
            ticket.assignees.append(user)
            await self._changed()
            logger.info("Assigned %s to ticket in channel %s", user, channel)
            return True

    async def unassign(self, channel: int, user: int) -> bool:
        """Returns True when the member was assigned."""
        async with self._lock:
            ticket = self.require(channel)
            if user not in ticket.assignees:
                return False
            ticket.assignees.remove(user)
            await self._changed()
            logger.info("Unassigned %s from ticket in channel %s", user, channel)
            return True

    def documents(self) -> List[Dict[str, Any]]:
        return [ticket.to_document() for ticket in self._tickets.values()]

    def _index(self, ticket: Ticket) -> None:
        self._tickets[ticket.channel] = ticket
        self._by_author[ticket.author].append(ticket.channel)

    def _unindex(self, ticket: Ticket) -> None:
        del self._tickets[ticket.channel]
        self._by_author[ticket.author].remove(ticket.channel)

    async def _changed(self) -> None:
        if self.on_change is not None:
            await self.on_change()


# =============================================================================
# TICKET TYPES
# =============================================================================

def validate_ticket_type(ticket_type: TicketType, registry: StepTypeRegistry) -> None:
    """
    Raise when a ticket type could not be run.

    StepTypeNotFound for an unknown step type, CatalogError for options
    the step type refuses.
    """
    for index, step in enumerate(ticket_type.steps, start=1):
        step_type = registry.resolve(step.type)
        try:
            step_type.validate_options(step.options)
        except ValueError as e:
            raise CatalogError(f"Step {index} ({step.title}) of {ticket_type.name}: {e}") from e


class TicketTypeCatalog:
    """
    Ticket types keyed by selector emoji, in insertion order.

    Types are only replaced by an explicit edit. A type whose step types
    stop resolving (extension removed) stays in the catalog but can't be
    used until they resolve again.
    """

    def __init__(self, registry: StepTypeRegistry, on_change: OnChange = None):
        self.registry = registry
        self.on_change = on_change
        self._types: Dict[str, TicketType] = {}
        self._lock = asyncio.Lock()

    def load(self, ticket_types: List[TicketType]) -> None:
        self._types.clear()
        for ticket_type in ticket_types:
            if ticket_type.emoji in self._types:
                logger.warning("Duplicate ticket type emoji %s ignored", ticket_type.emoji)
                continue
            self._types[ticket_type.emoji] = ticket_type

    def validate(self, ticket_type: TicketType) -> None:
        try:
            validate_ticket_type(ticket_type, self.registry)
        except StepTypeNotFound as e:
            raise CatalogError(str(e)) from e

    async def add(self, ticket_type: TicketType) -> TicketType:
        self.validate(ticket_type)
        async with self._lock:
            if ticket_type.emoji in self._types:
                raise SelectorConflict(f"Another ticket type already uses {ticket_type.emoji}.")
            self._types[ticket_type.emoji] = ticket_type
            await self._changed()
        logger.info("Ticket type %s (%s) added", ticket_type.name, ticket_type.emoji)
        return ticket_type

    async def replace(self, emoji: str, ticket_type: TicketType) -> TicketType:
        """Edit the type selected by `emoji`. The new one may use another emoji."""
        self.validate(ticket_type)
        async with self._lock:
            if emoji not in self._types:
                raise TicketTypeNotFound(emoji)
            if ticket_type.emoji != emoji and ticket_type.emoji in self._types:
                raise SelectorConflict(f"Another ticket type already uses {ticket_type.emoji}.")
            # rebuild to keep the edited type in its position
            self._types = {
                (ticket_type.emoji if key == emoji else key): (ticket_type if key == emoji else value)
                for key, value in self._types.items()
            }
            await self._changed()
        logger.info("Ticket type %s (%s) replaced", ticket_type.name, emoji)
        return ticket_type

    def get(self, emoji: str) -> Optional[TicketType]:
        return self._types.get(emoji)

    def require(self, emoji: str) -> TicketType:
        ticket_type = self._types.get(emoji)
        if ticket_type is None:
            raise TicketTypeNotFound(emoji)
        return ticket_type

    def all(self) -> List[TicketType]:
        return list(self._types.values())

    def __len__(self) -> int:
        return len(self._types)

    def unresolved(self, ticket_type: TicketType) -> List[str]:
        """Step type identifiers of `ticket_type` the registry can't resolve."""
        return [step.type for step in ticket_type.steps if step.type not in self.registry]

    def documents(self) -> List[Dict[str, Any]]:
        return [ticket_type.to_document() for ticket_type in self._types.values()]

    async def _changed(self) -> None:
        if self.on_change is not None:
            await self.on_change()
