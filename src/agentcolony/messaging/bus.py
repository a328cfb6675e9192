"""Append-only mailboxes on the shared record store.

Layout under the coordination root:
  messages/<agent>/<message-id>.yaml       direct mailbox of <agent>
  messages/broadcast/<message-id>.yaml     broadcast mailbox (to == "all")
  messages/<sender>/sent/<message-id>.yaml sender's outbox copy

Every message is a new, uniquely named entry, so writers never contend and
no locking is needed. Reads are non-destructive: consumers track what they
have already seen themselves.
"""

from __future__ import annotations

import itertools
import threading
import uuid
from collections.abc import Callable
from datetime import datetime

from agentcolony.errors import CorruptRecord, DuplicateId, RecordExists, ValidationError
from agentcolony.logging import get_logger
from agentcolony.messaging.schema import Message, MessageContext, MessageType
from agentcolony.store import RecordStore
from agentcolony.tasks.schema import BROADCAST, utc_now, validate_agent_id

log = get_logger("messaging")

MESSAGES_LOG = "messages"
BROADCAST_MAILBOX = "broadcast"
SENT_MAILBOX = "sent"


class MessageBus:
    """Per-agent and broadcast mailboxes."""

    def __init__(self, records: RecordStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._records = records
        self._clock = clock
        # Random per-bus token; separates processes writing as the same sender.
        self._writer = uuid.uuid4().hex[:12]
        self._sequence = itertools.count(1)
        self._sequence_lock = threading.Lock()

    # =========================================================================
    # Writing
    # =========================================================================

    def new_message(
        self,
        sender: str,
        recipient: str,
        content: str,
        message_type: MessageType | str = MessageType.INFO,
        context: MessageContext | None = None,
    ) -> Message:
        """Build a message with a fresh id; does not write it."""
        validate_agent_id(sender, "sender")
        if recipient != BROADCAST:
            validate_agent_id(recipient, "recipient")
        if not content or not content.strip():
            raise ValidationError("message content must not be empty")
        if isinstance(message_type, str):
            message_type = MessageType.parse(message_type)

        now = self._clock()
        with self._sequence_lock:
            seq = next(self._sequence)
        ns = int(now.timestamp()) * 1_000_000_000 + now.microsecond * 1000
        return Message(
            id=f"{sender}-{ns}-{self._writer}-{seq:06d}",
            sender=sender,
            recipient=recipient,
            content=content,
            message_type=message_type,
            timestamp=now,
            context=context or MessageContext(),
        )

    def append(self, message: Message) -> Message:
        """Write a message to its recipient's mailbox (or the broadcast one).

        Raises:
            DuplicateId: A message with this id is already in that mailbox
        """
        mailbox = BROADCAST_MAILBOX if message.is_broadcast else message.recipient
        data = message.to_dict()
        # Outbox copy first: once the recipient can see the message, append succeeds.
        for log_name in (f"{message.sender}/{SENT_MAILBOX}", mailbox):
            try:
                self._records.append(f"{MESSAGES_LOG}/{log_name}", message.id, data)
            except RecordExists:
                raise DuplicateId(f"message '{message.id}' already exists") from None

        log.debug("message %s: %s -> %s", message.id, message.sender, message.recipient)
        return message

    def send(
        self,
        sender: str,
        recipient: str,
        content: str,
        message_type: MessageType | str = MessageType.INFO,
        context: MessageContext | None = None,
    ) -> Message:
        return self.append(self.new_message(sender, recipient, content, message_type, context))

    def broadcast(
        self,
        sender: str,
        content: str,
        message_type: MessageType | str = MessageType.INFO,
        context: MessageContext | None = None,
    ) -> Message:
        return self.send(sender, BROADCAST, content, message_type, context)

    # =========================================================================
    # Reading
    # =========================================================================

    def read(self, agent_id: str) -> list[Message]:
        """Direct and broadcast messages for an agent, oldest first."""
        validate_agent_id(agent_id)
        messages = self._mailbox(agent_id) + self._mailbox(BROADCAST_MAILBOX)
        messages.sort(key=Message.sort_key)
        return messages

    def sent(self, agent_id: str) -> list[Message]:
        """Messages written by an agent, oldest first."""
        validate_agent_id(agent_id)
        messages = self._mailbox(f"{agent_id}/{SENT_MAILBOX}")
        messages.sort(key=Message.sort_key)
        return messages

    def read_all(self) -> list[Message]:
        """Every message in every mailbox, once each, oldest first."""
        by_id: dict[str, Message] = {}
        for mailbox in self._records.logs(MESSAGES_LOG):
            for message in self._mailbox(mailbox):
                by_id.setdefault(message.id, message)
            if mailbox != BROADCAST_MAILBOX:
                for message in self._mailbox(f"{mailbox}/{SENT_MAILBOX}"):
                    by_id.setdefault(message.id, message)
        return sorted(by_id.values(), key=Message.sort_key)

    def _mailbox(self, mailbox: str) -> list[Message]:
        messages = []
        for entry in self._records.read_log(f"{MESSAGES_LOG}/{mailbox}"):
            try:
                messages.append(Message.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                raise CorruptRecord(f"invalid message in {mailbox}: {e}") from e
        return messages
