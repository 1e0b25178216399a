"""Chat gateway interface consumed by the router."""

from dataclasses import dataclass, field
from typing import Any, Protocol


class GatewayError(Exception):
    """Sending or retracting a message failed at the transport level."""


@dataclass
class GatewayResult:
    """Outcome of a gateway call as reported by the chat platform."""

    ret: int | None = 0  # Provider status code; None when the response carried none
    msg: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.ret in (0, None)

    def __str__(self) -> str:
        return f"Ret={self.ret} Msg={self.msg!r}"


class ChatGateway(Protocol):
    """Outbound side of the chat transport."""

    async def send_message(self, to_user: int, content: str, group_id: int = 0) -> GatewayResult:
        ...

    async def retract_message(self, group_id: int, msg_seq: int, msg_random: int) -> GatewayResult:
        ...
