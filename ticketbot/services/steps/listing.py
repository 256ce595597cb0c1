"""
List Step

Collects several ordinary messages into an ordered list of strings.
The prompt is edited after every change so it always shows the items.

Reactions:
- delete-last: drop the most recent item
- end: finish with the items collected so far

Options:
- maximumLength: most items accepted
- allowEmptyList: finishing with no items is allowed (default true)
"""

from typing import Any, Dict, List

from ...models.events import InboundEvent, MessageContent, MessageHandle, MessageReceived, ReactionAdded
from ...models.ticket import AnswerKind
from .base import PENDING, Done, Rejected, StepContext, StepOutcome, StepType, read_bool, read_int


class ListStep(StepType):
    identifier = "list"
    display_name = "List"
    description = "Several text answers collected one message at a time."
    emoji = "📜"
    answer_kind = AnswerKind.STRING_LIST

    def __init__(self, context: StepContext):
        super().__init__(context)
        self.items: List[str] = []

    @classmethod
    def validate_options(cls, options: Dict[str, Any]) -> None:
        limit = read_int(options, "maximumLength")
        if limit is not None and limit < 1:
            raise ValueError("maximumLength must be at least 1")
        read_bool(options, "allowEmptyList", True)

    def render(self) -> MessageContent:
        info = self.messages.format(
            "list.info",
            DELETE_LAST_EMOJI=self.settings.list_delete_last_emoji,
            END_EMOJI=self.settings.list_end_emoji
        )
        if self.items:
            lines = "\n".join(
                self.messages.format("list.item", INDEX=index, ITEM=item)
                for index, item in enumerate(self.items, start=1)
            )
        else:
            lines = self.messages.format("list.empty")
        items = self.messages.format("list.items", ITEMS=lines)
        return self.card(self.body(self.details, items, info))

    async def ask(self) -> MessageHandle:
        prompt = await self.transport.send_message(self.channel_id, self.render())
        await self.transport.add_reaction(prompt, self.settings.list_delete_last_emoji)
        await self.transport.add_reaction(prompt, self.settings.list_end_emoji)
        return prompt

    async def on_input(self, event: InboundEvent) -> StepOutcome:
        if isinstance(event, MessageReceived):
            return await self._add(event)
        if isinstance(event, ReactionAdded):
            await self.take_back(event)
            if event.token == self.settings.list_delete_last_emoji:
                return await self._delete_last()
            if event.token == self.settings.list_end_emoji:
                return self._end()
        return PENDING

    async def _add(self, event: MessageReceived) -> StepOutcome:
        await self.discard_input(event)
        limit = read_int(self.options, "maximumLength")
        if limit is not None and len(self.items) + 1 > limit:
            return Rejected(self.messages.format("list.length_error", LENGTH=limit))
        self.items.append(event.text)
        await self.transport.edit_message(self.prompt, self.render())
        return PENDING

    async def _delete_last(self) -> StepOutcome:
        if not self.items:
            return Rejected(self.messages.format("list.delete_last_empty_error"))
        self.items.pop()
        await self.transport.edit_message(self.prompt, self.render())
        return PENDING

    def _end(self) -> StepOutcome:
        if not self.items and not read_bool(self.options, "allowEmptyList", True):
            return Rejected(self.messages.format("list.empty_error"))
        return Done(list(self.items))
