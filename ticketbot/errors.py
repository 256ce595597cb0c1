"""
Ticket Bot Errors

Input validation problems are NOT exceptions: step types report them as
a Rejected outcome and the member gets a notice. Everything here is a
configuration, resolution, permission or state error.
"""


class TicketBotError(Exception):
    """Base class for all ticket bot errors."""
    pass


class StepTypeNotFound(TicketBotError):
    """Raised when a step-type identifier resolves to nothing."""

    def __init__(self, identifier: str):
        super().__init__(f"Couldn't find step type of {identifier}.")
        self.identifier = identifier


class RegistryError(TicketBotError):
    """Raised when a step type clashes with one already registered."""
    pass


class ExtensionError(TicketBotError):
    """Raised when an extension cannot be loaded or enabled."""
    pass


class SessionConflict(TicketBotError):
    """Raised when a channel already has an active session."""
    pass


class WizardError(TicketBotError):
    """Raised when a ticket cannot be created interactively."""
    pass


class TicketError(TicketBotError):
    """Raised when ticket table rules are violated."""
    pass


class CatalogError(TicketBotError):
    """Raised when a ticket type is invalid or clashes with another."""
    pass


class PermissionDenied(TicketBotError):
    """Raised when a member lacks the management role."""
    pass


class TicketNotFound(TicketError):
    """Raised when no ticket lives in the given channel."""

    def __init__(self, channel: int):
        super().__init__(f"No ticket in channel {channel}.")
        self.channel = channel


class TicketTypeNotFound(CatalogError):
    """Raised when no ticket type uses the given selector emoji."""

    def __init__(self, emoji: str):
        super().__init__(f"No ticket type uses {emoji}.")
        self.emoji = emoji


class SelectorConflict(CatalogError):
    """Raised when a selector emoji is already taken by another ticket type."""
    pass


class StoreError(TicketBotError):
    """Raised when the data document can't be read at all."""
    pass
