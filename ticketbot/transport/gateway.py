"""
Discord Channel Transport.

DiscordTransport turns core calls into REST calls; TicketBotClient turns
gateway events into core events. Only raw reaction events are used so
reactions on messages outside the cache are seen too.
"""

import logging
from typing import Dict, List, Optional

import discord

from ..config import Settings
from ..models.events import (
    InboundEvent,
    MessageContent,
    MessageHandle,
    MessageReceived,
    ReactionAdded,
    ReactionRemoved,
)
from . import ChannelTransport

logger = logging.getLogger(__name__)


class DiscordTransport(ChannelTransport):

    def __init__(self, client: discord.Client, settings: Settings):
        self.client = client
        self.settings = settings

    @property
    def guild(self) -> discord.Guild:
        guild = self.client.get_guild(self.settings.guild_id)
        if guild is None:
            raise RuntimeError(f"Bot is not a member of guild {self.settings.guild_id}")
        return guild

    def _channel(self, channel_id: int) -> discord.TextChannel:
        channel = self.client.get_channel(channel_id)
        if not isinstance(channel, discord.TextChannel):
            raise RuntimeError(f"Channel {channel_id} is not a text channel")
        return channel

    def _message(self, handle: MessageHandle) -> discord.PartialMessage:
        return self._channel(handle.channel_id).get_partial_message(handle.message_id)

    def _embed(self, content: MessageContent) -> discord.Embed:
        color = discord.Color.from_str(content.color) if content.color else None
        return discord.Embed(title=content.title or None, description=content.description or None, color=color)

    async def _member(self, user_id: int) -> Optional[discord.Member]:
        member = self.guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await self.guild.fetch_member(user_id)
        except discord.NotFound:
            return None

    # -------------------------------------------------------------------------
    # Messages and reactions
    # -------------------------------------------------------------------------

    async def send_message(self, channel_id: int, content: MessageContent) -> MessageHandle:
        message = await self._channel(channel_id).send(embed=self._embed(content))
        return MessageHandle(channel_id=channel_id, message_id=message.id)

    async def edit_message(self, handle: MessageHandle, content: MessageContent) -> None:
        try:
            await self._message(handle).edit(embed=self._embed(content))
        except discord.HTTPException as e:
            logger.warning("Could not edit message %s: %s", handle.message_id, e)

    async def delete_message(self, handle: MessageHandle) -> None:
        try:
            await self._message(handle).delete()
        except discord.NotFound:
            pass
        except discord.HTTPException as e:
            logger.warning("Could not delete message %s: %s", handle.message_id, e)

    async def add_reaction(self, handle: MessageHandle, token: str) -> None:
        try:
            await self._message(handle).add_reaction(token)
        except discord.HTTPException as e:
            logger.warning("Could not add %s to message %s: %s", token, handle.message_id, e)

    async def remove_reaction(self, handle: MessageHandle, token: str, user_id: int) -> None:
        try:
            await self._message(handle).remove_reaction(token, discord.Object(id=user_id))
        except discord.HTTPException as e:
            logger.warning("Could not remove %s from message %s: %s", token, handle.message_id, e)

    # -------------------------------------------------------------------------
    # Channels and members
    # -------------------------------------------------------------------------

    def _overwrites(self, member: Optional[discord.Member]) -> Dict[discord.abc.Snowflake, discord.PermissionOverwrite]:
        guild = self.guild
        overwrites: Dict[discord.abc.Snowflake, discord.PermissionOverwrite] = {
            guild.default_role: discord.PermissionOverwrite(view_channel=False),
            guild.me: discord.PermissionOverwrite(
                view_channel=True, send_messages=True, manage_messages=True, add_reactions=True
            ),
        }
        for role_id in self.settings.allowed_role_ids:
            role = guild.get_role(role_id)
            if role is not None:
                overwrites[role] = discord.PermissionOverwrite(view_channel=True, send_messages=True)
        if member is not None:
            overwrites[member] = discord.PermissionOverwrite(view_channel=True, send_messages=True)
        return overwrites

    async def create_channel(
        self,
        name: str,
        topic: Optional[str] = None,
        member_id: Optional[int] = None
    ) -> int:
        guild = self.guild
        category = guild.get_channel(self.settings.ticket_category_id)
        if not isinstance(category, discord.CategoryChannel):
            category = None
        member = await self._member(member_id) if member_id is not None else None
        channel = await guild.create_text_channel(
            name,
            category=category,
            topic=topic,
            overwrites=self._overwrites(member)
        )
        return channel.id

    async def delete_channel(self, channel_id: int) -> None:
        try:
            await self._channel(channel_id).delete()
        except discord.HTTPException as e:
            logger.warning("Could not delete channel %s: %s", channel_id, e)

    async def member_role_names(self, user_id: int) -> List[str]:
        member = await self._member(user_id)
        return [role.name for role in member.roles] if member else []

    async def is_guild_owner(self, user_id: int) -> bool:
        return self.guild.owner_id == user_id

    async def user_name(self, user_id: int) -> str:
        member = await self._member(user_id)
        if member is None:
            return str(user_id)
        # accounts migrated to unique usernames report discriminator "0"
        if member.discriminator and member.discriminator != "0":
            return f"{member.name}{member.discriminator}"
        return member.name

    async def describe_user(self, user_id: int) -> str:
        return f"<@{user_id}>"

    async def describe_channel(self, channel_id: int) -> str:
        return f"<#{channel_id}>"


class TicketBotClient(discord.Client):
    """
    Gateway client feeding the runtime.

    The runtime is attached after construction because the transport
    needs the client first.
    """

    def __init__(self, settings: Settings):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        super().__init__(intents=intents)
        self.settings = settings
        self.runtime = None

    async def setup_hook(self) -> None:
        await self.runtime.startup()

    async def close(self) -> None:
        if self.runtime is not None and self.runtime.started:
            await self.runtime.shutdown()
        await super().close()

    async def on_ready(self) -> None:
        logger.info("Logged in as %s", self.user)

    def _ours(self, guild_id: Optional[int]) -> bool:
        return guild_id is not None and guild_id == self.settings.guild_id

    async def _deliver(self, event: InboundEvent) -> None:
        try:
            await self.runtime.on_event(event)
        except Exception:
            logger.exception("Failed to handle %s in channel %s", type(event).__name__, event.channel_id)

    async def on_message(self, message: discord.Message) -> None:
        if message.guild is None or not self._ours(message.guild.id):
            return
        await self._deliver(MessageReceived(
            channel_id=message.channel.id,
            message=MessageHandle(channel_id=message.channel.id, message_id=message.id),
            author_id=message.author.id,
            text=message.content,
            is_bot=message.author.bot
        ))

    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        if not self._ours(payload.guild_id):
            return
        is_bot = payload.user_id == self.user.id or (payload.member is not None and payload.member.bot)
        await self._deliver(ReactionAdded(
            channel_id=payload.channel_id,
            message=MessageHandle(channel_id=payload.channel_id, message_id=payload.message_id),
            token=str(payload.emoji),
            user_id=payload.user_id,
            is_bot=is_bot
        ))

    async def on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        if not self._ours(payload.guild_id):
            return
        await self._deliver(ReactionRemoved(
            channel_id=payload.channel_id,
            message=MessageHandle(channel_id=payload.channel_id, message_id=payload.message_id),
            token=str(payload.emoji),
            user_id=payload.user_id,
            is_bot=payload.user_id == self.user.id
        ))
