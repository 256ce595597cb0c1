"""
Ticket Bot Event Model

What flows between the core and the chat platform:
- MessageHandle: reference to a message the transport sent or received
- MessageContent: the rendered payload (an embed-like card)
- Inbound events: message received, reaction added, reaction removed
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


class MessageHandle(BaseModel):
    """Opaque reference to one message in one channel."""
    model_config = ConfigDict(frozen=True)

    channel_id: int
    message_id: int


class MessageContent(BaseModel):
    """A rendered card: title, body and accent colour (hex, e.g. '#5865F2')."""
    title: str = ""
    description: str = ""
    color: Optional[str] = None


# =============================================================================
# INBOUND EVENTS
# =============================================================================

class MessageReceived(BaseModel):
    channel_id: int
    message: MessageHandle
    author_id: int
    text: str
    is_bot: bool = False


class ReactionAdded(BaseModel):
    channel_id: int
    message: MessageHandle
    token: str
    user_id: int
    is_bot: bool = False


class ReactionRemoved(BaseModel):
    channel_id: int
    message: MessageHandle
    token: str
    user_id: int
    is_bot: bool = False


InboundEvent = Union[MessageReceived, ReactionAdded, ReactionRemoved]
