"""IOTQQ websocket packet parsing."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from censor_bot.core.events import GroupMessage, OtherEvent, PrivateMessage


class PacketError(Exception):
    """A bridge packet did not have the expected shape."""


class GroupMsgData(BaseModel):
    """``CurrentPacket.Data`` of an ``OnGroupMsgs`` packet."""

    model_config = ConfigDict(extra="ignore")

    from_group_id: int = Field(alias="FromGroupId")
    from_group_name: str = Field(default="", alias="FromGroupName")
    from_user_id: int = Field(alias="FromUserId")
    from_nick_name: str = Field(default="", alias="FromNickName")
    content: str = Field(default="", alias="Content")
    msg_type: str = Field(alias="MsgType")
    msg_seq: int = Field(default=0, alias="MsgSeq")
    msg_random: int = Field(default=0, alias="MsgRandom")


class FriendMsgData(BaseModel):
    """``CurrentPacket.Data`` of an ``OnFriendMsgs`` packet."""

    model_config = ConfigDict(extra="ignore")

    from_uin: int = Field(alias="FromUin")
    content: str = Field(default="", alias="Content")
    msg_type: str = Field(alias="MsgType")


def _packet_data(packet: Any) -> dict[str, Any]:
    try:
        data = packet["CurrentPacket"]["Data"]
    except (KeyError, TypeError) as e:
        raise PacketError(f"Missing CurrentPacket.Data: {e!r}") from e
    if not isinstance(data, dict):
        raise PacketError(f"CurrentPacket.Data is not an object: {data!r}")
    return data


def parse_group_packet(packet: Any) -> GroupMessage:
    """Parse an ``OnGroupMsgs`` packet."""
    try:
        data = GroupMsgData.model_validate(_packet_data(packet))
    except ValidationError as e:
        raise PacketError(f"Malformed group message: {e}") from e

    return GroupMessage(
        group_id=data.from_group_id,
        group_name=data.from_group_name,
        sender_id=data.from_user_id,
        sender_nick=data.from_nick_name,
        content=data.content,
        msg_type=data.msg_type,
        msg_seq=data.msg_seq,
        msg_random=data.msg_random,
    )


def parse_friend_packet(packet: Any) -> PrivateMessage:
    """Parse an ``OnFriendMsgs`` packet."""
    try:
        data = FriendMsgData.model_validate(_packet_data(packet))
    except ValidationError as e:
        raise PacketError(f"Malformed friend message: {e}") from e

    return PrivateMessage(sender_id=data.from_uin, content=data.content, msg_type=data.msg_type)


def parse_event_packet(packet: Any) -> OtherEvent:
    """Parse an ``OnEvents`` packet. Never fails; unknown shapes keep the raw payload."""
    name = "OnEvents"
    payload: dict[str, Any] = packet if isinstance(packet, dict) else {"raw": packet}
    try:
        data = _packet_data(packet)
    except PacketError:
        return OtherEvent(name=name, payload=payload)

    event_msg = data.get("EventMsg")
    if isinstance(event_msg, dict) and event_msg.get("MsgType"):
        name = str(event_msg["MsgType"])
    return OtherEvent(name=name, payload=data)
