"""
Numeric Steps

Integer and Double read one number from an ordinary message.

Options (both inclusive, both optional):
- min
- max

A bound that is not configured does not restrict the answer. Input that
does not parse is deleted even when `delete_messages` is off.
"""

import math
import re
from typing import Any, ClassVar, Dict, Optional, Union

from ...models.events import InboundEvent, MessageHandle, MessageReceived
from ...models.ticket import AnswerKind
from .base import PENDING, Done, Rejected, StepOutcome, StepType, read_int, read_number

INTEGER_PATTERN = re.compile(r"[+-]?\d+")
DOUBLE_PATTERN = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")

Number = Union[int, float]


class NumericStep(StepType):
    """Shared parse and range logic. Subclasses pick the number type."""

    message_prefix: ClassVar[str]

    @classmethod
    def read_bound(cls, options: Dict[str, Any], name: str) -> Optional[Number]:
        raise NotImplementedError

    @classmethod
    def validate_options(cls, options: Dict[str, Any]) -> None:
        low = cls.read_bound(options, "min")
        high = cls.read_bound(options, "max")
        if low is not None and high is not None and low > high:
            raise ValueError(f"min ({low}) is greater than max ({high})")

    def parse(self, text: str) -> Optional[Number]:
        raise NotImplementedError

    async def ask(self) -> MessageHandle:
        return await self.transport.send_message(self.channel_id, self.card(self.details))

    async def on_input(self, event: InboundEvent) -> StepOutcome:
        if not isinstance(event, MessageReceived):
            return PENDING

        value = self.parse(event.text.strip())
        if value is None:
            await self.transport.delete_message(event.message)
            return Rejected(self.messages.format(f"{self.message_prefix}.format_error"))

        await self.discard_input(event)
        low = self.read_bound(self.options, "min")
        high = self.read_bound(self.options, "max")
        if low is not None and value < low:
            return Rejected(self.messages.format(f"{self.message_prefix}.min_error", MIN=low))
        if high is not None and value > high:
            return Rejected(self.messages.format(f"{self.message_prefix}.max_error", MAX=high))
        return Done(value)


class IntegerStep(NumericStep):
    identifier = "integer"
    display_name = "Integer"
    description = "A whole number, optionally bounded by min and max."
    emoji = "🔢"
    answer_kind = AnswerKind.INTEGER
    message_prefix = "integer"

    @classmethod
    def read_bound(cls, options: Dict[str, Any], name: str) -> Optional[int]:
        return read_int(options, name)

    def parse(self, text: str) -> Optional[int]:
        if not INTEGER_PATTERN.fullmatch(text):
            return None
        return int(text)


class DoubleStep(NumericStep):
    identifier = "double"
    display_name = "Double"
    description = "A decimal number, optionally bounded by min and max."
    emoji = "💯"
    answer_kind = AnswerKind.FLOAT
    message_prefix = "double"

    @classmethod
    def read_bound(cls, options: Dict[str, Any], name: str) -> Optional[float]:
        return read_number(options, name)

    def parse(self, text: str) -> Optional[float]:
        if not DOUBLE_PATTERN.fullmatch(text):
            return None
        value = float(text)
        # huge exponents overflow to inf
        if not math.isfinite(value):
            return None
        return value
