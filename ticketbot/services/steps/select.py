"""
Select Steps

Choices offered as one reaction per option.

Options (both step types):
- options: {emoji: message}, in display order
- emoji: store the reaction token instead of the option's message

MultiSelect also takes:
- maximumLength: most options that can be picked
- allowEmptyList: finishing with nothing picked is allowed (default true)

Which of several near-simultaneous reactions wins is decided by event
arrival order, not by option order. Callers must not rely on it.
"""

from typing import Any, Dict, List

from ...models.events import InboundEvent, MessageContent, MessageHandle, ReactionAdded, ReactionRemoved
from ...models.ticket import AnswerKind
from .base import (
    PENDING,
    Done,
    Rejected,
    StepContext,
    StepOutcome,
    StepType,
    read_bool,
    read_choices,
    read_int,
)


class SelectStep(StepType):
    """Shared rendering of the option list."""

    locks_channel = True

    @classmethod
    def validate_options(cls, options: Dict[str, Any]) -> None:
        read_choices(options)
        read_bool(options, "emoji", False)

    @property
    def choices(self) -> Dict[str, str]:
        return self.options.get("options") or {}

    def answer_for(self, token: str) -> str:
        if self.option("emoji", False):
            return token
        return self.choices[token]

    def render(self, info: str) -> MessageContent:
        lines = [self.messages.format("select.options")]
        lines.extend(
            self.messages.format("select.option", EMOTE=token, MESSAGE=message)
            for token, message in self.choices.items()
        )
        return self.card(self.body(self.details, "\n".join(lines), info))

    async def add_choice_reactions(self, prompt: MessageHandle) -> None:
        for token in self.choices:
            await self.transport.add_reaction(prompt, token)


class SingleSelectStep(SelectStep):
    identifier = "single_select"
    display_name = "Single Select"
    description = "Pick exactly one of the configured options."
    emoji = "☝️"
    answer_kind = AnswerKind.STRING

    async def ask(self) -> MessageHandle:
        prompt = await self.transport.send_message(
            self.channel_id, self.render(self.messages.format("select.one_info"))
        )
        await self.add_choice_reactions(prompt)
        return prompt

    async def on_input(self, event: InboundEvent) -> StepOutcome:
        if not isinstance(event, ReactionAdded):
            return PENDING
        await self.take_back(event)
        if event.token not in self.choices:
            return PENDING
        return Done(self.answer_for(event.token))


class MultiSelectStep(SelectStep):
    identifier = "multi_select"
    display_name = "Multi Select"
    description = "Pick any number of the configured options."
    emoji = "☑️"
    answer_kind = AnswerKind.STRING_LIST

    def __init__(self, context: StepContext):
        super().__init__(context)
        self.picked: List[str] = []

    @classmethod
    def validate_options(cls, options: Dict[str, Any]) -> None:
        super().validate_options(options)
        limit = read_int(options, "maximumLength")
        if limit is not None and limit < 1:
            raise ValueError("maximumLength must be at least 1")
        read_bool(options, "allowEmptyList", True)

    async def ask(self) -> MessageHandle:
        end = self.settings.multi_select_end_emoji
        prompt = await self.transport.send_message(
            self.channel_id, self.render(self.messages.format("select.multi_info", EMOTE=end))
        )
        await self.add_choice_reactions(prompt)
        await self.transport.add_reaction(prompt, end)
        return prompt

    async def on_input(self, event: InboundEvent) -> StepOutcome:
        if isinstance(event, ReactionAdded):
            if event.token == self.settings.multi_select_end_emoji:
                return await self._end(event)
            if event.token in self.choices:
                return await self._pick(event)
            await self.take_back(event)
        elif isinstance(event, ReactionRemoved):
            if event.token in self.picked:
                self.picked.remove(event.token)
        return PENDING

    async def _pick(self, event: ReactionAdded) -> StepOutcome:
        if event.token in self.picked:
            return PENDING
        limit = read_int(self.options, "maximumLength")
        if limit is not None and len(self.picked) + 1 > limit:
            await self.take_back(event)
            return Rejected(self.messages.format("select.multi_length_error", LENGTH=limit))
        self.picked.append(event.token)
        return PENDING

    async def _end(self, event: ReactionAdded) -> StepOutcome:
        if not self.picked and not read_bool(self.options, "allowEmptyList", True):
            await self.take_back(event)
            return Rejected(self.messages.format("select.multi_empty_error"))
        return Done([self.answer_for(token) for token in self.picked])
