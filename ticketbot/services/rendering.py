"""
Ticket Bot Rendering

Turns a Ticket into the cards shown to staff: the summary (title,
author, channel, open flag, every answer, assignees) and the assignee
list of the management screen.
"""

from typing import List

from ..config import MessageCatalog
from ..models.events import MessageContent
from ..models.ticket import AnswerValue, Ticket
from .notices import Notifier
from .registry import StepTypeRegistry


class TicketFormatter:

    def __init__(self, transport, messages: MessageCatalog, registry: StepTypeRegistry, notifier: Notifier):
        self.transport = transport
        self.messages = messages
        self.registry = registry
        self.notifier = notifier

    def answer_text(self, value: AnswerValue) -> str:
        if isinstance(value, bool):
            return self.messages.format("ticket_data.open_yes" if value else "ticket_data.open_no")
        if isinstance(value, list):
            return ", ".join(value) if value else self.messages.format("ticket_data.none")
        return str(value)

    def step_type_name(self, identifier: str) -> str:
        step_type = self.registry.get(identifier)
        return step_type.display_name if step_type is not None else identifier

    async def assignee_lines(self, ticket: Ticket) -> str:
        if not ticket.assignees:
            return self.messages.format("ticket_data.none")
        lines: List[str] = []
        for index, user in enumerate(ticket.assignees, start=1):
            name = await self.transport.describe_user(user)
            lines.append(self.messages.format("ticket_data.assignee", INDEX=index, NAME=name))
        return "\n".join(lines)

    async def summary(self, ticket: Ticket) -> MessageContent:
        steps = "\n".join(
            self.messages.format(
                "ticket_data.step",
                INDEX=index,
                STEPTITLE=answer.title,
                STEPTYPE=self.step_type_name(answer.type),
                STEPANSWER=self.answer_text(answer.answer)
            )
            for index, answer in enumerate(ticket.steps, start=1)
        ) or self.messages.format("ticket_data.none")

        description = self.messages.format(
            "ticket_data.description",
            AUTHOR=await self.transport.describe_user(ticket.author),
            CHANNEL=await self.transport.describe_channel(ticket.channel),
            OPEN=self.messages.format("ticket_data.open_yes" if ticket.open else "ticket_data.open_no"),
            STEPS=steps,
            ASSIGNEES=await self.assignee_lines(ticket)
        )
        return self.notifier.card(self.messages.format("ticket_data.title", TITLE=ticket.title), description)

    async def assignees(self, ticket: Ticket) -> MessageContent:
        return self.notifier.card(
            self.messages.format("ticket_data.assignees_title"),
            await self.assignee_lines(ticket)
        )
