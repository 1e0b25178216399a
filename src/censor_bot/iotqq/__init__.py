"""IOTQQ bridge adapters."""

from censor_bot.iotqq.client import EventStream, IOTQQGateway
from censor_bot.iotqq.packets import PacketError

__all__ = ["EventStream", "IOTQQGateway", "PacketError"]
