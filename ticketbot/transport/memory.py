"""
In-memory Channel Transport.

Keeps every call in plain python structures. Used by the test suite
and for running the engine without a chat platform.
"""

import itertools
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..models.events import (
    MessageContent,
    MessageHandle,
    MessageReceived,
    ReactionAdded,
    ReactionRemoved,
)
from . import ChannelTransport


@dataclass
class MemoryChannel:
    channel_id: int
    name: str
    topic: Optional[str] = None
    member_id: Optional[int] = None


@dataclass
class MemoryUser:
    user_id: int
    name: str
    roles: List[str] = field(default_factory=list)


class InMemoryTransport(ChannelTransport):
    """Recording transport. Message and channel ids come from one counter."""

    def __init__(self, owner_id: Optional[int] = None, first_id: int = 1000):
        self.owner_id = owner_id
        self._ids = itertools.count(first_id)

        self.messages: Dict[MessageHandle, MessageContent] = {}
        self.history: List[Tuple[MessageHandle, MessageContent]] = []
        self.edits: List[Tuple[MessageHandle, MessageContent]] = []
        self.deleted: List[MessageHandle] = []
        self.reactions: Dict[MessageHandle, List[str]] = {}
        self.removed_reactions: List[Tuple[MessageHandle, str, int]] = []

        self.channels: Dict[int, MemoryChannel] = {}
        self.deleted_channels: List[int] = []
        self.users: Dict[int, MemoryUser] = {}

    # -------------------------------------------------------------------------
    # ChannelTransport
    # -------------------------------------------------------------------------

    async def send_message(self, channel_id: int, content: MessageContent) -> MessageHandle:
        handle = MessageHandle(channel_id=channel_id, message_id=next(self._ids))
        self.messages[handle] = content
        self.history.append((handle, content))
        return handle

    async def edit_message(self, handle: MessageHandle, content: MessageContent) -> None:
        self.messages[handle] = content
        self.edits.append((handle, content))

    async def delete_message(self, handle: MessageHandle) -> None:
        self.messages.pop(handle, None)
        self.deleted.append(handle)

    async def add_reaction(self, handle: MessageHandle, token: str) -> None:
        self.reactions.setdefault(handle, []).append(token)

    async def remove_reaction(self, handle: MessageHandle, token: str, user_id: int) -> None:
        self.removed_reactions.append((handle, token, user_id))

    async def create_channel(
        self,
        name: str,
        topic: Optional[str] = None,
        member_id: Optional[int] = None
    ) -> int:
        channel_id = next(self._ids)
        self.channels[channel_id] = MemoryChannel(channel_id, name, topic, member_id)
        return channel_id

    async def delete_channel(self, channel_id: int) -> None:
        self.channels.pop(channel_id, None)
        self.deleted_channels.append(channel_id)

    async def member_role_names(self, user_id: int) -> List[str]:
        user = self.users.get(user_id)
        return list(user.roles) if user else []

    async def is_guild_owner(self, user_id: int) -> bool:
        return self.owner_id is not None and user_id == self.owner_id

    async def user_name(self, user_id: int) -> str:
        user = self.users.get(user_id)
        return user.name if user else f"user{user_id}"

    async def describe_user(self, user_id: int) -> str:
        user = self.users.get(user_id)
        return user.name if user else str(user_id)

    async def describe_channel(self, channel_id: int) -> str:
        channel = self.channels.get(channel_id)
        return channel.name if channel else str(channel_id)

    # -------------------------------------------------------------------------
    # Helpers for driving the engine
    # -------------------------------------------------------------------------

    def add_user(self, user_id: int, name: str, roles: Optional[List[str]] = None) -> MemoryUser:
        user = MemoryUser(user_id, name, list(roles or []))
        self.users[user_id] = user
        return user

    def message(self, channel_id: int, author_id: int, text: str, is_bot: bool = False) -> MessageReceived:
        """Build an inbound message event with a fresh message id."""
        handle = MessageHandle(channel_id=channel_id, message_id=next(self._ids))
        return MessageReceived(
            channel_id=channel_id,
            message=handle,
            author_id=author_id,
            text=text,
            is_bot=is_bot,
        )

    def reaction(self, handle: MessageHandle, token: str, user_id: int, is_bot: bool = False) -> ReactionAdded:
        return ReactionAdded(
            channel_id=handle.channel_id,
            message=handle,
            token=token,
            user_id=user_id,
            is_bot=is_bot,
        )

    def unreaction(self, handle: MessageHandle, token: str, user_id: int, is_bot: bool = False) -> ReactionRemoved:
        return ReactionRemoved(
            channel_id=handle.channel_id,
            message=handle,
            token=token,
            user_id=user_id,
            is_bot=is_bot,
        )

    def sent_to(self, channel_id: int) -> List[Tuple[MessageHandle, MessageContent]]:
        """Everything ever sent to a channel, oldest first (deleted ones included)."""
        return [(h, c) for h, c in self.history if h.channel_id == channel_id]

    def last_sent(self, channel_id: int) -> Tuple[MessageHandle, MessageContent]:
        return self.sent_to(channel_id)[-1]
