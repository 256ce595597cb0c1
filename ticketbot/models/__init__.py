"""
Ticket Bot Models

Templates (TicketType, StepDefinition), answers (Ticket, StepAnswer)
and the transport-facing event types.
"""

from .ticket import (
    # Answer values
    AnswerKind,
    AnswerValue,
    kind_of,
    coerce_answer,

    # Templates
    StepDefinition,
    TicketType,

    # Tickets
    StepAnswer,
    Ticket,
)
from .events import (
    MessageHandle,
    MessageContent,
    MessageReceived,
    ReactionAdded,
    ReactionRemoved,
    InboundEvent,
)

__all__ = [
    "AnswerKind", "AnswerValue", "kind_of", "coerce_answer",
    "StepDefinition", "TicketType", "StepAnswer", "Ticket",
    "MessageHandle", "MessageContent", "MessageReceived",
    "ReactionAdded", "ReactionRemoved", "InboundEvent",
]
