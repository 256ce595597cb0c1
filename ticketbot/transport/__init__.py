"""
Ticket Bot Channel Transport

Everything that touches the chat platform goes through a ChannelTransport:
sending/editing/deleting messages, reactions, mention resolution, channel
creation and member lookups. The core never deals with rate limits,
pagination or the connection lifecycle.
"""

import re
from abc import ABC, abstractmethod
from typing import List, Optional

from ..models.events import MessageContent, MessageHandle, MessageReceived

USER_MENTION = re.compile(r"<@!?(\d+)>")
CHANNEL_MENTION = re.compile(r"<#(\d+)>")


class ChannelTransport(ABC):
    """Abstract chat platform. All calls may suspend; none may block."""

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    @abstractmethod
    async def send_message(self, channel_id: int, content: MessageContent) -> MessageHandle:
        ...

    @abstractmethod
    async def edit_message(self, handle: MessageHandle, content: MessageContent) -> None:
        ...

    @abstractmethod
    async def delete_message(self, handle: MessageHandle) -> None:
        ...

    # -------------------------------------------------------------------------
    # Reactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_reaction(self, handle: MessageHandle, token: str) -> None:
        ...

    @abstractmethod
    async def remove_reaction(self, handle: MessageHandle, token: str, user_id: int) -> None:
        ...

    # -------------------------------------------------------------------------
    # Mentions
    # -------------------------------------------------------------------------

    async def resolve_mentioned_users(self, event: MessageReceived) -> List[int]:
        """Users mentioned in a message, in order of appearance, without duplicates."""
        return list(dict.fromkeys(int(m) for m in USER_MENTION.findall(event.text)))

    async def resolve_mentioned_channels(self, event: MessageReceived) -> List[int]:
        """Channels mentioned in a message, in order of appearance, without duplicates."""
        return list(dict.fromkeys(int(m) for m in CHANNEL_MENTION.findall(event.text)))

    # -------------------------------------------------------------------------
    # Channels and members
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_channel(
        self,
        name: str,
        topic: Optional[str] = None,
        member_id: Optional[int] = None
    ) -> int:
        """
        Create a text channel and return its id.

        When `member_id` is given the channel is private to that member
        (plus the configured staff roles).
        """
        ...

    @abstractmethod
    async def delete_channel(self, channel_id: int) -> None:
        ...

    @abstractmethod
    async def member_role_names(self, user_id: int) -> List[str]:
        ...

    @abstractmethod
    async def is_guild_owner(self, user_id: int) -> bool:
        ...

    @abstractmethod
    async def user_name(self, user_id: int) -> str:
        """Account name with discriminator, e.g. 'dreta6665'. Used in channel names."""
        ...

    @abstractmethod
    async def describe_user(self, user_id: int) -> str:
        """How the user is shown in cards (a mention where the platform has them)."""
        ...

    @abstractmethod
    async def describe_channel(self, channel_id: int) -> str:
        ...


__all__ = ["ChannelTransport", "USER_MENTION", "CHANNEL_MENTION"]
