"""
Ticket Bot Services

Core logic: step types and their registry, channel sessions, the
ticket wizard, the ticket tables and management.
"""

from .commands import CommandRouter
from .extensions import Extension, ExtensionLoader, ExtensionMeta
from .manage import ManagerGuard, ManageService, ManageSession, ManageState
from .notices import Notifier
from .registry import StepTypeRegistry, default_registry
from .rendering import TicketFormatter
from .sessions import SessionManager
from .steps import BUILTIN_STEP_TYPES, Done, Pending, Rejected, StepContext, StepType
from .store import JsonDocumentStore
from .tickets import TicketService, TicketTypeCatalog, validate_ticket_type
from .wizard import WizardService, WizardSession, WizardState

__all__ = [
    # Step types
    "StepType", "StepContext", "Done", "Pending", "Rejected", "BUILTIN_STEP_TYPES",

    # Registry and extensions
    "StepTypeRegistry", "default_registry",
    "Extension", "ExtensionMeta", "ExtensionLoader",

    # Sessions
    "SessionManager", "Notifier",

    # Wizard
    "WizardService", "WizardSession", "WizardState",

    # Tickets
    "TicketService", "TicketTypeCatalog", "validate_ticket_type",
    "TicketFormatter", "JsonDocumentStore",

    # Management
    "CommandRouter", "ManagerGuard", "ManageService", "ManageSession", "ManageState",
]
