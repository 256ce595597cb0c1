"""
Ticket Bot Wizard

Creates a ticket by asking its questions one at a time.

States:
    SELECTING_TYPE -> ASKING_TITLE -> ASKING_STEP(i) -> FINALIZING -> DONE

- SELECTING_TYPE is skipped when the catalog holds exactly one type
- ASKING_TITLE is a String step bounded by `ticket_title_max_length`
- ASKING_STEP(i) runs step i of the chosen type; its answer is the
  ONLY thing that starts step i+1
- FINALIZING inserts the ticket, releases the channel and says thanks

Exactly one step instance is active per session. The cursor lives on
the session, so a half-finished session can be inspected at any time.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..errors import SessionConflict, StepTypeNotFound, TicketError, WizardError
from ..models.ticket import StepAnswer, Ticket, TicketType
from .rendering import TicketFormatter
from .registry import StepTypeRegistry
from .steps import SingleSelectStep, StepContext, StepType, StringStep
from .tickets import TicketService, TicketTypeCatalog

logger = logging.getLogger(__name__)


class WizardState(str, Enum):
    SELECTING_TYPE = "selecting_type"
    ASKING_TITLE = "asking_title"
    ASKING_STEP = "asking_step"
    FINALIZING = "finalizing"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass
class WizardSession:
    """One in-progress ticket creation, keyed by (channel_id, session_id)."""
    channel_id: int
    author_id: int
    session_id: str = field(default_factory=lambda: uuid4().hex)
    state: WizardState = WizardState.SELECTING_TYPE
    ticket_type: Optional[TicketType] = None
    cursor: int = 0
    title: Optional[str] = None
    answers: List[StepAnswer] = field(default_factory=list)
    step: Optional[StepType] = None

    @property
    def finished(self) -> bool:
        return self.state in (WizardState.DONE, WizardState.CANCELLED)

    def shell(self) -> Ticket:
        """The ticket as answered so far."""
        return Ticket(
            title=self.title or "",
            author=self.author_id,
            channel=self.channel_id,
            steps=list(self.answers)
        )


class WizardService:
    """Drives wizard sessions. Advanced only by step completions."""

    def __init__(
        self,
        context: StepContext,
        registry: StepTypeRegistry,
        catalog: TicketTypeCatalog,
        tickets: TicketService,
        formatter: TicketFormatter
    ):
        self.context = context
        self.sessions = context.sessions
        self.notifier = context.notifier
        self.messages = context.messages
        self.settings = context.settings
        self.registry = registry
        self.catalog = catalog
        self.tickets = tickets
        self.formatter = formatter
        self._active: Dict[int, WizardSession] = {}

    def active_session(self, channel_id: int) -> Optional[WizardSession]:
        return self._active.get(channel_id)

    # -------------------------------------------------------------------------
    # Start / advance
    # -------------------------------------------------------------------------

    async def start(self, author_id: int, channel_id: int) -> WizardSession:
        if channel_id in self._active or self.sessions.active_session_for(channel_id) is not None:
            raise SessionConflict(f"Channel {channel_id} already has an active session.")
        if len(self.catalog) == 0:
            raise WizardError(self.messages.format("ticket.no_types"))

        session = WizardSession(channel_id=channel_id, author_id=author_id)
        self._active[channel_id] = session
        logger.info("Wizard %s started in channel %s for %s", session.session_id, channel_id, author_id)

        types = self.catalog.all()
        if len(types) == 1:
            await self._select(session, types[0])
        else:
            await self._ask_type(session, types)
        return session

    async def advance(self, session: WizardSession, value: Any) -> None:
        """Record the answer of the active step and move to the next state."""
        if self._active.get(session.channel_id) is not session or session.finished:
            logger.debug("Ignoring answer for stale wizard %s", session.session_id)
            return
        step, session.step = session.step, None

        if session.state == WizardState.SELECTING_TYPE:
            ticket_type = self.catalog.get(value)
            if ticket_type is None:
                # removed while the member was choosing
                await self._unusable(session, str(value))
                return
            await self._select(session, ticket_type)

        elif session.state == WizardState.ASKING_TITLE:
            session.title = value
            session.state = WizardState.ASKING_STEP
            session.cursor = 0
            await self._ask_current(session)

        elif session.state == WizardState.ASKING_STEP:
            definition = session.ticket_type.steps[session.cursor]
            try:
                answer = StepAnswer.capture(definition.title, definition.type, value, step.answer_kind)
            except ValueError as e:
                logger.error("Wizard %s: step %s answered %r: %s", session.session_id, definition.type, value, e)
                await self._fail(session)
                return
            session.answers.append(answer)
            session.cursor += 1
            logger.debug(
                "Wizard %s answered step %d/%d",
                session.session_id, session.cursor, len(session.ticket_type.steps)
            )
            await self._ask_current(session)

    async def _ask_type(self, session: WizardSession, types: List[TicketType]) -> None:
        choices = {
            ticket_type.emoji: self.messages.format(
                "ticket.type_format", NAME=ticket_type.name, DESCRIPTION=ticket_type.description
            )
            for ticket_type in types
        }
        await self._run_step(
            session,
            SingleSelectStep,
            self.messages.format("ticket.type_title"),
            "",
            {"options": choices, "emoji": True}
        )

    async def _select(self, session: WizardSession, ticket_type: TicketType) -> None:
        if self.catalog.unresolved(ticket_type):
            await self._unusable(session, ticket_type.name)
            return
        session.ticket_type = ticket_type
        session.state = WizardState.ASKING_TITLE
        await self._run_step(
            session,
            StringStep,
            self.messages.format("ticket.title_prompt"),
            "",
            {"maximumLength": self.settings.ticket_title_max_length}
        )

    async def _ask_current(self, session: WizardSession) -> None:
        steps = session.ticket_type.steps
        if session.cursor >= len(steps):
            await self._finalize(session)
            return
        definition = steps[session.cursor]
        try:
            step_type = self.registry.resolve(definition.type)
        except StepTypeNotFound:
            logger.warning("Step type %s vanished during wizard %s", definition.type, session.session_id)
            await self._unusable(session, session.ticket_type.name)
            return
        await self._run_step(session, step_type, definition.title, definition.description, definition.options)

    async def _run_step(self, session: WizardSession, step_type, question: str, description: str, options) -> None:
        step = step_type(self.context)
        session.step = step

        async def on_done(value: Any) -> None:
            await self.advance(session, value)

        async def on_cancel() -> None:
            await self._expired(session)

        try:
            await step.begin(session.channel_id, question, description, options, on_done, on_cancel)
        except Exception as e:
            logger.error("Wizard %s could not ask %r: %s", session.session_id, question, e)
            await self._fail(session)
            raise

    async def _finalize(self, session: WizardSession) -> None:
        session.state = WizardState.FINALIZING
        ticket = session.shell()
        try:
            await self.tickets.insert(ticket)
        except TicketError as e:
            logger.error("Wizard %s could not create its ticket: %s", session.session_id, e)
            await self.notifier.error(session.channel_id, str(e))
            self._end(session, WizardState.CANCELLED)
            return
        except Exception as e:
            logger.error("Wizard %s could not save its ticket: %s", session.session_id, e)
            await self._fail(session)
            raise

        self._end(session, WizardState.DONE)
        await self.notifier.info(
            session.channel_id,
            self.messages.format("ticket.end_title"),
            self.messages.format("ticket.end_description")
        )
        await self.context.transport.send_message(session.channel_id, await self.formatter.summary(ticket))
        logger.info("Wizard %s finished, ticket %r created", session.session_id, ticket.title)

    # -------------------------------------------------------------------------
    # Ending early
    # -------------------------------------------------------------------------

    async def cancel(self, channel_id: int) -> bool:
        """Abandon the channel's wizard. Returns False when there is none."""
        session = self._active.get(channel_id)
        if session is None:
            return False
        self._end(session, WizardState.CANCELLED)
        if session.step is not None:
            await session.step.expire()
            session.step = None
        logger.info("Wizard %s cancelled", session.session_id)
        return True

    async def _expired(self, session: WizardSession) -> None:
        if self._active.get(session.channel_id) is not session:
            return
        self._end(session, WizardState.CANCELLED)
        session.step = None
        await self.notifier.error(session.channel_id, self.messages.format("ticket.expired"))
        logger.info("Wizard %s expired", session.session_id)

    async def _unusable(self, session: WizardSession, name: str) -> None:
        self._end(session, WizardState.CANCELLED)
        await self.notifier.error(session.channel_id, self.messages.format("ticket.type_unusable", NAME=name))
        logger.warning("Wizard %s stopped: ticket type %s is unusable", session.session_id, name)

    async def _fail(self, session: WizardSession) -> None:
        """End the session after an unexpected failure and tell the member."""
        self._end(session, WizardState.CANCELLED)
        session.step = None
        try:
            await self.notifier.error(session.channel_id, self.messages.format("ticket.step_failed"))
        except Exception as e:
            logger.warning("Wizard %s could not report its failure: %s", session.session_id, e)

    def _end(self, session: WizardSession, state: WizardState) -> None:
        session.state = state
        self._active.pop(session.channel_id, None)
        self.sessions.release(session.channel_id)
