"""Inbound chat events."""

from dataclasses import dataclass, field
from typing import Any

# IOTQQ message type tag for plain text
TEXT_MSG = "TextMsg"


@dataclass(frozen=True)
class GroupMessage:
    """A message posted in a group."""

    group_id: int
    group_name: str
    sender_id: int
    sender_nick: str
    content: str
    msg_type: str = TEXT_MSG
    msg_seq: int = 0  # Sequence/nonce pair identifies the message for retraction
    msg_random: int = 0

    @property
    def is_text(self) -> bool:
        return self.msg_type == TEXT_MSG

    def __str__(self) -> str:
        return f"[{self.group_name}({self.group_id})] <{self.sender_nick}({self.sender_id})> {self.content}"


@dataclass(frozen=True)
class PrivateMessage:
    """A direct message sent to the bot."""

    sender_id: int
    content: str
    msg_type: str = TEXT_MSG

    @property
    def is_text(self) -> bool:
        return self.msg_type == TEXT_MSG

    def __str__(self) -> str:
        return f"<{self.sender_id}> {self.content}"


@dataclass(frozen=True)
class OtherEvent:
    """Any other bridge event (joins, recalls, system notices)."""

    name: str
    payload: dict[str, Any] = field(default_factory=dict)


InboundEvent = GroupMessage | PrivateMessage | OtherEvent
