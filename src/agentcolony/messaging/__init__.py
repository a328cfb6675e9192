"""Per-agent and broadcast mailboxes."""

from agentcolony.messaging.bus import MessageBus
from agentcolony.messaging.schema import Message, MessageContext, MessageType

__all__ = [
    "Message",
    "MessageBus",
    "MessageContext",
    "MessageType",
]
