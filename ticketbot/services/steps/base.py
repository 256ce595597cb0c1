"""
Ticket Bot Step Type Contract

A step type asks ONE question in ONE channel and turns the member's
input into a typed answer.

Lifecycle of a step instance:
1. begin()   -> prompt rendered, instance registered for the channel
2. handle()  -> every input event goes through on_input(), which
                returns Pending, Done(value) or Rejected(reason)
3. Done      -> cleanup() runs once, then the continuation fires once
   Rejected  -> error notice, step stays active, nothing else changes

Reaction-driven step types lock the channel while active so stray
chatter is deleted; free-text step types must read ordinary messages
and never lock.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, ClassVar, Dict, Optional, Union

from ...config import MessageCatalog, Settings
from ...models.events import (
    InboundEvent,
    MessageContent,
    MessageHandle,
    MessageReceived,
    ReactionAdded,
    ReactionRemoved,
)
from ...models.ticket import AnswerKind
from ..notices import Notifier
from ..sessions import SessionManager

logger = logging.getLogger(__name__)


# =============================================================================
# OUTCOMES
# =============================================================================

@dataclass(frozen=True)
class Pending:
    """Input consumed, answer not complete yet."""
    pass


@dataclass(frozen=True)
class Done:
    value: Any


@dataclass(frozen=True)
class Rejected:
    reason: str


StepOutcome = Union[Pending, Done, Rejected]

PENDING = Pending()


@dataclass
class StepContext:
    """Collaborators shared by every step instance."""
    transport: Any
    sessions: SessionManager
    notifier: Notifier
    messages: MessageCatalog
    settings: Settings


# =============================================================================
# STEP TYPE
# =============================================================================

class StepType(ABC):
    """
    Base class of all step types, built-in or supplied by extensions.

    Subclasses declare their metadata as class attributes and implement
    `ask()` and `on_input()`. `emoji` must be unique across all
    registered step types; `identifier` is what ticket types and
    persisted answers refer to.
    """

    identifier: ClassVar[str]
    display_name: ClassVar[str]
    description: ClassVar[str] = ""
    emoji: ClassVar[str]
    answer_kind: ClassVar[AnswerKind]
    locks_channel: ClassVar[bool] = False

    def __init__(self, context: StepContext):
        self.context = context
        self.transport = context.transport
        self.messages = context.messages
        self.settings = context.settings

        self.channel_id: Optional[int] = None
        self.question = ""
        self.details = ""
        self.options: Dict[str, Any] = {}
        self.prompt: Optional[MessageHandle] = None

        self._on_done: Optional[Callable[[Any], Awaitable[None]]] = None
        self._on_cancel: Optional[Callable[[], Awaitable[None]]] = None
        self._finished = False
        self._cleaned = False

    @classmethod
    def validate_options(cls, options: Dict[str, Any]) -> None:
        """Raise ValueError when `options` cannot configure this step type."""
        pass

    # -------------------------------------------------------------------------
    # Contract
    # -------------------------------------------------------------------------

    async def begin(
        self,
        channel_id: int,
        question: str,
        description: str,
        options: Dict[str, Any],
        on_done: Callable[[Any], Awaitable[None]],
        on_cancel: Optional[Callable[[], Awaitable[None]]] = None
    ) -> MessageHandle:
        """
        Render the prompt and start receiving the channel's events.

        Returns as soon as the prompt is sent; the answer arrives later
        through `on_done`.
        """
        self.channel_id = channel_id
        self.question = question
        self.details = description or ""
        self.options = dict(options or {})
        self._on_done = on_done
        self._on_cancel = on_cancel

        self.context.sessions.register(channel_id, self)
        try:
            self.prompt = await self.ask()
        except Exception:
            self.context.sessions.deregister(channel_id, self)
            raise
        if self.locks_channel:
            self.context.sessions.acquire(channel_id)
        return self.prompt

    async def handle(self, event: InboundEvent) -> None:
        if self._finished or not self.accepts(event):
            return
        outcome = await self.on_input(event)
        if isinstance(outcome, Rejected):
            await self.context.notifier.error(self.channel_id, outcome.reason)
        elif isinstance(outcome, Done):
            await self.finish(outcome.value)

    async def finish(self, value: Any) -> None:
        if self._finished:
            return
        self._finished = True
        await self.cleanup()
        await self._on_done(value)

    async def cleanup(self) -> None:
        """Stop receiving events, release the lock, remove the prompt. Runs once."""
        if self._cleaned:
            return
        self._cleaned = True
        self.context.sessions.deregister(self.channel_id, self)
        if self.locks_channel:
            self.context.sessions.release(self.channel_id)
        if self.settings.delete_messages and self.prompt is not None:
            await self.transport.delete_message(self.prompt)

    async def expire(self) -> None:
        """Abandon the step without an answer (idle timeout or cancellation)."""
        if self._finished:
            return
        self._finished = True
        await self.cleanup()
        if self._on_cancel is not None:
            await self._on_cancel()

    @property
    def finished(self) -> bool:
        return self._finished

    # -------------------------------------------------------------------------
    # To implement
    # -------------------------------------------------------------------------

    @abstractmethod
    async def ask(self) -> MessageHandle:
        """Send the prompt (and its reactions)."""
        ...

    @abstractmethod
    async def on_input(self, event: InboundEvent) -> StepOutcome:
        ...

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def accepts(self, event: InboundEvent) -> bool:
        """Only non-bot input in our channel; reactions only on our prompt."""
        if event.channel_id != self.channel_id or event.is_bot:
            return False
        if isinstance(event, (ReactionAdded, ReactionRemoved)):
            return self.prompt is not None and event.message == self.prompt
        return True

    def option(self, name: str, default: Any = None) -> Any:
        value = self.options.get(name)
        return default if value is None else value

    def body(self, *parts: str) -> str:
        return "\n\n".join(part for part in parts if part)

    def card(self, description: str) -> MessageContent:
        return self.context.notifier.card(self.question, description)

    async def discard_input(self, event: MessageReceived) -> None:
        if self.settings.delete_messages:
            await self.transport.delete_message(event.message)

    async def take_back(self, event: Union[ReactionAdded, ReactionRemoved]) -> None:
        """Remove the member's reaction so the prompt stays clean."""
        await self.transport.remove_reaction(event.message, event.token, event.user_id)


def read_int(options: Dict[str, Any], name: str) -> Optional[int]:
    value = options.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        raise ValueError(f"Option {name!r} must be an integer, got {value!r}")
    return int(value)


def read_number(options: Dict[str, Any], name: str) -> Optional[float]:
    value = options.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Option {name!r} must be a number, got {value!r}")
    return float(value)


def read_bool(options: Dict[str, Any], name: str, default: bool) -> bool:
    value = options.get(name)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"Option {name!r} must be true or false, got {value!r}")
    return value


def read_choices(options: Dict[str, Any]) -> Dict[str, str]:
    choices = options.get("options")
    if not isinstance(choices, dict) or not choices:
        raise ValueError("Option 'options' must map each emoji to its message")
    for token, message in choices.items():
        if not isinstance(message, str):
            raise ValueError(f"Option for {token!r} must be a string, got {message!r}")
    return dict(choices)
