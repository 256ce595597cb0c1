"""
Ticket Bot Configuration

Two layers:
- Settings: process configuration from the environment / .env
- MessageCatalog: user-facing message templates with {PLACEHOLDER}s
"""

import json
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


# =============================================================================
# SETTINGS
# =============================================================================

class Settings(BaseSettings):
    # Connection
    token: str = ""
    guild_id: int = 0
    command_prefix: str = "!"
    bot_commands_channel: int = 0  # 0 = listen everywhere

    # Channels
    ticket_category_id: int = 0
    channel_format: str = "ticket-{NAMEDISCRIM}-{TICKETDISCRIM}"
    manage_channel_format: str = "manage-{NAMEDISCRIM}"
    channel_topic: str = "Ticket of {NAME}"
    allowed_role_ids: List[int] = Field(default_factory=list)
    manager_role: str = "Ticket Bot Manager"

    # Files
    data_file: Path = Path("data.json")
    messages_file: Optional[Path] = None
    extensions_dir: Path = Path("extensions")

    # Behaviour
    delete_messages: bool = True
    delete_error_messages: bool = True
    error_message_delay: float = 5.0
    ticket_title_max_length: int = 100
    session_idle_timeout: Optional[float] = None  # None = sessions never expire

    # Appearance
    accent_color: str = "#5865F2"
    error_color: str = "#ED4245"

    # Reaction tokens
    boolean_yes_emoji: str = "✅"
    boolean_no_emoji: str = "❌"
    list_end_emoji: str = "✅"
    list_delete_last_emoji: str = "⬅️"
    multi_select_end_emoji: str = "➡️"
    manage_open_emoji: str = "🔓"
    manage_close_emoji: str = "🔒"
    manage_assignees_emoji: str = "👥"
    manage_exit_emoji: str = "❌"
    assignees_add_emoji: str = "➕"
    assignees_remove_emoji: str = "➖"
    assignees_exit_emoji: str = "↩️"

    # HTTP API
    api_enabled: bool = False
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="TICKETBOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


# =============================================================================
# MESSAGE TEMPLATES
# =============================================================================

DEFAULT_MESSAGES: Dict[str, str] = {
    "error.title": "Error",

    # Ticket creation
    "ticket.type_title": "Select a ticket type",
    "ticket.type_format": "**{NAME}**: {DESCRIPTION}",
    "ticket.title_prompt": "What is the title of your ticket?",
    "ticket.end_title": "Ticket created",
    "ticket.end_description": "Thank you! A staff member will be with you shortly.",
    "ticket.no_types": "No ticket types have been configured yet.",
    "ticket.type_unusable": "The ticket type {NAME} can't be used right now, please contact staff.",
    "ticket.session_busy": "A session is already running in this channel.",
    "ticket.expired": "This session expired due to inactivity.",
    "ticket.step_failed": "Something went wrong while creating your ticket, please contact staff.",

    # Step types
    "boolean.info": "React with {YES_EMOJI} for yes or {NO_EMOJI} for no.",
    "boolean.must_be_true": "You must answer yes to continue.",
    "boolean.must_be_false": "You must answer no to continue.",
    "integer.format_error": "Please enter a whole number.",
    "integer.min_error": "The number must be at least {MIN}.",
    "integer.max_error": "The number must be at most {MAX}.",
    "double.format_error": "Please enter a number.",
    "double.min_error": "The number must be at least {MIN}.",
    "double.max_error": "The number must be at most {MAX}.",
    "string.length_error": "Your answer can't be longer than {LENGTH} characters.",
    "list.items": "**Items:**\n{ITEMS}",
    "list.item": "{INDEX}. {ITEM}",
    "list.empty": "*Empty*",
    "list.info": (
        "Send a message to add an item. React with {DELETE_LAST_EMOJI} to remove "
        "the last item and with {END_EMOJI} when you're done."
    ),
    "list.length_error": "You can't add more than {LENGTH} items.",
    "list.empty_error": "The list can't be empty.",
    "list.delete_last_empty_error": "There is nothing to remove.",
    "select.options": "**Options:**",
    "select.option": "{EMOTE} {MESSAGE}",
    "select.one_info": "React with one of the options above.",
    "select.multi_info": "React with every option that applies, then with {EMOTE} to continue.",
    "select.multi_empty_error": "Please select at least one option.",
    "select.multi_length_error": "You can't select more than {LENGTH} options.",

    # Management
    "manage.permission_error": "You need the {ROLE} role to manage tickets.",
    "manage.select_title": "Select a ticket",
    "manage.select_description": "Mention the channel of the ticket you want to manage.",
    "manage.select_error": "That channel doesn't belong to a ticket.",
    "manage.assign_user": "Mention the members to assign.",
    "manage.unassign_user": "Mention the members to unassign.",
    "manage.mention_invalid": "Please mention at least one member.",
    "manage.title_open": "{USER} reopened this ticket.",
    "manage.title_close": "{USER} closed this ticket.",
    "manage.title_assign": "{USER} assigned {ASSIGNEE} to this ticket.",
    "manage.title_unassign": "{USER} unassigned {ASSIGNEE} from this ticket.",

    # Ticket summary
    "ticket_data.title": "{TITLE}",
    "ticket_data.description": (
        "**Author:** {AUTHOR}\n**Channel:** {CHANNEL}\n**Open:** {OPEN}\n\n"
        "**Steps:**\n{STEPS}\n**Assignees:**\n{ASSIGNEES}"
    ),
    "ticket_data.open_yes": "Yes",
    "ticket_data.open_no": "No",
    "ticket_data.step": "{INDEX}. **{STEPTITLE}** ({STEPTYPE}): {STEPANSWER}",
    "ticket_data.assignees_title": "Assignees",
    "ticket_data.assignee": "{INDEX}. {NAME}",
    "ticket_data.none": "*None*",
}

_PLACEHOLDER = re.compile(r"\{([A-Z_]+)\}")


def fill(template: str, **placeholders: object) -> str:
    """Substitute {PLACEHOLDER}s; unknown ones are left as-is."""

    def substitute(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name in placeholders:
            return str(placeholders[name])
        return match.group(0)

    return _PLACEHOLDER.sub(substitute, template)


class MessageCatalog:
    """
    Key -> template lookup with placeholder substitution.

    Placeholders look like {NAME}. Unknown placeholders are left as-is
    so a template typo shows up in chat instead of crashing a session.
    """

    def __init__(self, overrides: Optional[Mapping[str, str]] = None):
        self._templates: Dict[str, str] = dict(DEFAULT_MESSAGES)
        if overrides:
            self._templates.update(overrides)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]]) -> "MessageCatalog":
        if path is None:
            return cls()
        path = Path(path)
        if not path.exists():
            logger.info("No message overrides at %s, using defaults", path)
            return cls()
        with path.open("r", encoding="utf-8") as f:
            overrides = json.load(f)
        logger.info("Loaded %d message overrides from %s", len(overrides), path)
        return cls(overrides)

    def template(self, key: str) -> str:
        return self._templates[key]

    def format(self, key: str, **placeholders: object) -> str:
        return fill(self._templates[key], **placeholders)
