"""
Boolean Step

Yes/no question answered with one of two reactions.

Options:
- mustBeTrue: only "yes" completes the step
- mustBeFalse: only "no" completes the step
"""

from typing import Any, Dict

from ...models.events import InboundEvent, MessageHandle, ReactionAdded
from ...models.ticket import AnswerKind
from .base import PENDING, Done, Rejected, StepOutcome, StepType, read_bool


class BooleanStep(StepType):
    identifier = "boolean"
    display_name = "Boolean"
    description = "A yes or no question answered with a reaction."
    emoji = "🔘"
    answer_kind = AnswerKind.BOOLEAN
    locks_channel = True

    @classmethod
    def validate_options(cls, options: Dict[str, Any]) -> None:
        must_be_true = read_bool(options, "mustBeTrue", False)
        must_be_false = read_bool(options, "mustBeFalse", False)
        if must_be_true and must_be_false:
            raise ValueError("mustBeTrue and mustBeFalse can't both be set")

    async def ask(self) -> MessageHandle:
        yes, no = self.settings.boolean_yes_emoji, self.settings.boolean_no_emoji
        info = self.messages.format("boolean.info", YES_EMOJI=yes, NO_EMOJI=no)
        prompt = await self.transport.send_message(self.channel_id, self.card(self.body(self.details, info)))
        await self.transport.add_reaction(prompt, yes)
        await self.transport.add_reaction(prompt, no)
        return prompt

    async def on_input(self, event: InboundEvent) -> StepOutcome:
        if not isinstance(event, ReactionAdded):
            return PENDING

        await self.take_back(event)
        if event.token == self.settings.boolean_yes_emoji:
            answer = True
        elif event.token == self.settings.boolean_no_emoji:
            answer = False
        else:
            return PENDING

        if self.option("mustBeTrue", False) and not answer:
            return Rejected(self.messages.format("boolean.must_be_true"))
        if self.option("mustBeFalse", False) and answer:
            return Rejected(self.messages.format("boolean.must_be_false"))
        return Done(answer)
