"""
Ticket Bot Ticket Model

Templates vs. answers:
1. TicketType = reusable template, identified by its selector emoji
2. StepDefinition = one templated question of a TicketType
3. StepAnswer = the typed answer captured for one question of one Ticket
4. Ticket = the aggregate, keyed by the channel it lives in

A Ticket does NOT remember the TicketType that produced it. Editing or
removing a type must never break existing tickets, and there is no way
to map an old answer onto a changed question anyway.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
    model_validator,
)


# =============================================================================
# ANSWER VALUES
# =============================================================================

class AnswerKind(str, Enum):
    """Closed set of value kinds a step can produce. Persisted as `answerType`."""
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    STRING_LIST = "list"


AnswerValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr, List[StrictStr]]


def kind_of(value: Any) -> AnswerKind:
    """Tag a python value with its AnswerKind."""
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return AnswerKind.BOOLEAN
    if isinstance(value, int):
        return AnswerKind.INTEGER
    if isinstance(value, float):
        return AnswerKind.FLOAT
    if isinstance(value, str):
        return AnswerKind.STRING
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return AnswerKind.STRING_LIST
    raise ValueError(f"Unsupported answer value: {value!r}")


def coerce_answer(kind: AnswerKind, raw: Any) -> AnswerValue:
    """
    Recover the typed value from its wire form.

    The wire value alone is ambiguous (3 may be an integer or a float,
    1 may be a boolean), so the kind tag decides.
    """
    if kind == AnswerKind.BOOLEAN:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, int) and raw in (0, 1):
            return bool(raw)
    elif kind == AnswerKind.INTEGER:
        if isinstance(raw, int) and not isinstance(raw, bool):
            return raw
        if isinstance(raw, float) and raw.is_integer():
            return int(raw)
    elif kind == AnswerKind.FLOAT:
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return float(raw)
    elif kind == AnswerKind.STRING:
        if isinstance(raw, str):
            return raw
    elif kind == AnswerKind.STRING_LIST:
        if isinstance(raw, (list, tuple)) and all(isinstance(v, str) for v in raw):
            return list(raw)
    raise ValueError(f"Answer {raw!r} is not a valid {kind.value}")


# =============================================================================
# TEMPLATE MODELS
# =============================================================================

class StepDefinition(BaseModel):
    """
    One question of a TicketType.

    `type` is a step-type identifier resolved through the registry;
    `options` is opaque here and only interpreted by that step type.
    """
    title: str
    description: str = ""
    type: str
    options: Dict[str, Any] = Field(default_factory=dict)


class TicketType(BaseModel):
    """
    A reusable ticket template.

    Before creating a ticket, the member picks a type by reacting with
    its `emoji`, which must be unique across the catalog.
    """
    name: str
    description: str = ""
    emoji: str
    steps: List[StepDefinition] = Field(default_factory=list)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


# =============================================================================
# TICKET MODELS
# =============================================================================

class StepAnswer(BaseModel):
    """
    The answer a member gave to one step.

    `title` is copied at capture time and never re-resolved, so later
    edits of the TicketType do not rewrite history.
    """
    model_config = ConfigDict(populate_by_name=True)

    title: str
    type: str
    answer: AnswerValue
    answer_type: AnswerKind = Field(alias="answerType")

    @model_validator(mode="before")
    @classmethod
    def _recover_answer(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "answer" not in data:
            return data
        data = dict(data)
        kind = data.pop("answerType", None) or data.pop("answer_type", None)
        kind = AnswerKind(kind) if kind is not None else kind_of(data["answer"])
        data["answerType"] = kind
        data["answer"] = coerce_answer(kind, data["answer"])
        return data

    @classmethod
    def capture(
        cls,
        title: str,
        step_type: str,
        value: AnswerValue,
        kind: Optional[AnswerKind] = None
    ) -> "StepAnswer":
        """
        Record an answer.

        With `kind` (the step type's declared answer kind) the value is
        coerced to it, so 3 from a float step is stored as 3.0. Raises
        ValueError when the value can't be that kind.
        """
        if kind is None:
            kind = kind_of(value)
        else:
            value = coerce_answer(kind, value)
        return cls(title=title, type=step_type, answer=value, answerType=kind)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Ticket(BaseModel):
    """
    The core ticket entity.

    `channel` doubles as primary key: exactly one ticket per channel.
    `assignees` behaves like a set (no duplicates); order is only kept
    so persistence stays stable.
    """
    title: str
    author: int
    channel: int
    open: bool = True
    assignees: List[int] = Field(default_factory=list)
    steps: List[StepAnswer] = Field(default_factory=list)

    @field_validator("assignees")
    @classmethod
    def _unique_assignees(cls, value: List[int]) -> List[int]:
        return list(dict.fromkeys(value))

    def to_document(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "author": self.author,
            "channel": self.channel,
            "open": self.open,
            "assignees": list(self.assignees),
            "steps": [step.to_document() for step in self.steps],
        }
