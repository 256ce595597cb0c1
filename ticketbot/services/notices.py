"""
Ticket Bot Notices

Every user-visible outcome is a card in the same channel:
- error notices (red), optionally self-deleting after a delay
- info notices (accent colour)
"""

import asyncio
import logging
from typing import Optional, Set

from ..config import MessageCatalog, Settings
from ..models.events import MessageContent, MessageHandle

logger = logging.getLogger(__name__)


class Notifier:
    """
    Sends formatted notices through the transport.

    Delayed deletions run as background tasks so the caller never
    waits for them.
    """

    def __init__(self, transport, messages: MessageCatalog, settings: Settings):
        self.transport = transport
        self.messages = messages
        self.settings = settings
        self._pending: Set[asyncio.Task] = set()

    def card(self, title: str, description: str = "", color: Optional[str] = None) -> MessageContent:
        return MessageContent(
            title=title,
            description=description,
            color=color or self.settings.accent_color
        )

    async def info(self, channel_id: int, title: str, description: str = "") -> MessageHandle:
        return await self.transport.send_message(channel_id, self.card(title, description))

    async def error(self, channel_id: int, text: str) -> MessageHandle:
        """
        Send an error notice.

        Deleted after `error_message_delay` seconds when
        `delete_error_messages` is enabled.
        """
        handle = await self.transport.send_message(
            channel_id,
            self.card(self.messages.format("error.title"), text, self.settings.error_color)
        )
        if self.settings.delete_error_messages:
            self.delete_later(handle, self.settings.error_message_delay)
        return handle

    def delete_later(self, handle: MessageHandle, delay: float) -> None:
        task = asyncio.create_task(self._delete_after(handle, delay))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _delete_after(self, handle: MessageHandle, delay: float) -> None:
        await asyncio.sleep(delay)
        await self.transport.delete_message(handle)

    async def aclose(self) -> None:
        """Cancel deletions that have not fired yet."""
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()
