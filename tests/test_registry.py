"""Step type registry."""

import pytest

from ticketbot.errors import RegistryError, StepTypeNotFound
from ticketbot.models import AnswerKind
from ticketbot.services.registry import StepTypeRegistry
from ticketbot.services.steps import BUILTIN_STEP_TYPES, PENDING, StringStep, StepType


class ColorStep(StepType):
    identifier = "color"
    display_name = "Color"
    emoji = "🎨"
    answer_kind = AnswerKind.STRING

    async def ask(self):
        return await self.transport.send_message(self.channel_id, self.card("Pick a color"))

    async def on_input(self, event):
        return PENDING


def test_default_registry_has_builtins(registry):
    identifiers = [step_type.identifier for step_type in registry.all()]
    assert identifiers == ["boolean", "integer", "double", "string", "list", "single_select", "multi_select"]
    assert len({step_type.emoji for step_type in BUILTIN_STEP_TYPES}) == 7


def test_resolve(registry):
    assert registry.resolve("string") is StringStep
    assert "string" in registry
    with pytest.raises(StepTypeNotFound) as info:
        registry.resolve("color")
    assert info.value.identifier == "color"
    assert str(info.value) == "Couldn't find step type of color."


def test_extension_step_types(registry):
    registry.register(ColorStep, owner="palette")
    assert registry.resolve("color") is ColorStep
    assert registry.by_emoji("🎨") is ColorStep
    assert registry.owner_of("color") == "palette"
    assert registry.owner_of("string") is None

    assert registry.unregister_owner("palette") == ["color"]
    assert registry.get("color") is None


def test_duplicate_identifier(registry):
    class Shadow(ColorStep):
        identifier = "string"
        emoji = "🕶️"

    with pytest.raises(RegistryError):
        registry.register(Shadow, owner="x")


def test_duplicate_emoji(registry):
    class Clash(ColorStep):
        identifier = "clash"
        emoji = StringStep.emoji

    with pytest.raises(RegistryError):
        registry.register(Clash, owner="x")


def test_missing_metadata():
    class Nameless(ColorStep):
        display_name = ""

    with pytest.raises(RegistryError):
        StepTypeRegistry().register_builtin(Nameless)
