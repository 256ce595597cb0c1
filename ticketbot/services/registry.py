"""
Ticket Bot Step Type Registry

Identifier -> step type class. Built-ins are registered at startup;
extensions merge theirs in when they are enabled and are removed again
when disabled.

Resolution order: built-ins first, then extension step types.
"""

import logging
from typing import Dict, List, Optional, Type

from ..errors import RegistryError, StepTypeNotFound
from .steps import BUILTIN_STEP_TYPES, StepType

logger = logging.getLogger(__name__)


class StepTypeRegistry:
    """
    Registry of step types.

    Both the identifier and the selector emoji of a step type must be
    unique across all registered step types.
    """

    def __init__(self):
        self._builtins: Dict[str, Type[StepType]] = {}
        self._extensions: Dict[str, Type[StepType]] = {}
        self._owners: Dict[str, str] = {}

    def register_builtin(self, step_type: Type[StepType]) -> None:
        self._check(step_type)
        self._builtins[step_type.identifier] = step_type
        logger.debug("Registered built-in step type %s", step_type.identifier)

    def register(self, step_type: Type[StepType], owner: str) -> None:
        """Register an extension-supplied step type on behalf of `owner`."""
        self._check(step_type)
        self._extensions[step_type.identifier] = step_type
        self._owners[step_type.identifier] = owner
        logger.info("Extension %s registered step type %s", owner, step_type.identifier)

    def unregister_owner(self, owner: str) -> List[str]:
        """Drop every step type registered by `owner`. Returns their identifiers."""
        removed = [identifier for identifier, who in self._owners.items() if who == owner]
        for identifier in removed:
            del self._extensions[identifier]
            del self._owners[identifier]
        if removed:
            logger.info("Removed step types of %s: %s", owner, ", ".join(removed))
        return removed

    def resolve(self, identifier: str) -> Type[StepType]:
        step_type = self.get(identifier)
        if step_type is None:
            raise StepTypeNotFound(identifier)
        return step_type

    def get(self, identifier: str) -> Optional[Type[StepType]]:
        return self._builtins.get(identifier) or self._extensions.get(identifier)

    def by_emoji(self, token: str) -> Optional[Type[StepType]]:
        for step_type in self.all():
            if step_type.emoji == token:
                return step_type
        return None

    def owner_of(self, identifier: str) -> Optional[str]:
        return self._owners.get(identifier)

    def all(self) -> List[Type[StepType]]:
        return list(self._builtins.values()) + list(self._extensions.values())

    def __contains__(self, identifier: str) -> bool:
        return self.get(identifier) is not None

    def _check(self, step_type: Type[StepType]) -> None:
        for attribute in ("identifier", "display_name", "emoji", "answer_kind"):
            if not getattr(step_type, attribute, None):
                raise RegistryError(f"{step_type.__name__} has no {attribute}")
        if step_type.identifier in self:
            raise RegistryError(f"Step type {step_type.identifier} is already registered.")
        clash = self.by_emoji(step_type.emoji)
        if clash is not None:
            raise RegistryError(
                f"Step type {step_type.identifier} uses emoji {step_type.emoji} "
                f"of {clash.identifier}."
            )


def default_registry() -> StepTypeRegistry:
    """Registry holding the seven built-in step types."""
    registry = StepTypeRegistry()
    for step_type in BUILTIN_STEP_TYPES:
        registry.register_builtin(step_type)
    return registry
