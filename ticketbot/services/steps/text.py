"""
String Step

Free text, taken verbatim from one ordinary message.

Options:
- maximumLength: longest accepted answer, in characters
"""

from typing import Any, Dict

from ...models.events import InboundEvent, MessageHandle, MessageReceived
from ...models.ticket import AnswerKind
from .base import PENDING, Done, Rejected, StepOutcome, StepType, read_int


class StringStep(StepType):
    identifier = "string"
    display_name = "String"
    description = "Free text, optionally limited in length."
    emoji = "🔤"
    answer_kind = AnswerKind.STRING

    @classmethod
    def validate_options(cls, options: Dict[str, Any]) -> None:
        limit = read_int(options, "maximumLength")
        if limit is not None and limit < 1:
            raise ValueError("maximumLength must be at least 1")

    async def ask(self) -> MessageHandle:
        return await self.transport.send_message(self.channel_id, self.card(self.details))

    async def on_input(self, event: InboundEvent) -> StepOutcome:
        if not isinstance(event, MessageReceived):
            return PENDING

        await self.discard_input(event)
        limit = read_int(self.options, "maximumLength")
        if limit is not None and len(event.text) > limit:
            return Rejected(self.messages.format("string.length_error", LENGTH=limit))
        return Done(event.text)
