"""Tests for the IOTQQ bridge packets and clients."""

import asyncio
from typing import Any

import pytest
from aiohttp import web

from censor_bot.config import HTTPConfig, IOTQQConfig
from censor_bot.core.events import GroupMessage, OtherEvent, PrivateMessage
from censor_bot.core.gateway import GatewayError, GatewayResult
from censor_bot.iotqq import EventStream, IOTQQGateway, PacketError
from censor_bot.iotqq.packets import parse_event_packet, parse_friend_packet, parse_group_packet

GROUP_PACKET = {
    "CurrentPacket": {
        "WebConnId": "abc",
        "Data": {
            "FromGroupId": 555,
            "FromGroupName": "Test Group",
            "FromUserId": 12345,
            "FromNickName": "spammer",
            "Content": "buy cheap followers now",
            "MsgType": "TextMsg",
            "MsgTime": 1588000000,
            "MsgSeq": 42,
            "MsgRandom": 777,
            "RedBaginfo": None,
        },
    },
    "CurrentQQ": 10000,
}

FRIEND_PACKET = {
    "CurrentPacket": {
        "Data": {"FromUin": 10001, "ToUin": 10000, "MsgType": "TextMsg", "MsgSeq": 1, "Content": "白名单"},
    },
    "CurrentQQ": 10000,
}


class TestPackets:
    """Tests for websocket packet parsing."""

    def test_group_packet(self):
        event = parse_group_packet(GROUP_PACKET)
        assert event == GroupMessage(
            group_id=555,
            group_name="Test Group",
            sender_id=12345,
            sender_nick="spammer",
            content="buy cheap followers now",
            msg_type="TextMsg",
            msg_seq=42,
            msg_random=777,
        )
        assert event.is_text

    def test_group_picture(self):
        packet = {"CurrentPacket": {"Data": {**GROUP_PACKET["CurrentPacket"]["Data"], "MsgType": "PicMsg"}}}
        assert not parse_group_packet(packet).is_text

    def test_friend_packet(self):
        assert parse_friend_packet(FRIEND_PACKET) == PrivateMessage(sender_id=10001, content="白名单")

    @pytest.mark.parametrize("packet", [None, {}, {"CurrentPacket": {}}, {"CurrentPacket": {"Data": "x"}}])
    def test_missing_data(self, packet: Any):
        with pytest.raises(PacketError):
            parse_group_packet(packet)

    def test_missing_required_field(self):
        packet = {"CurrentPacket": {"Data": {"FromGroupId": 1, "MsgType": "TextMsg"}}}
        with pytest.raises(PacketError, match="Malformed group message"):
            parse_group_packet(packet)

    def test_event_packet_name(self):
        packet = {"CurrentPacket": {"Data": {"EventData": {"UserID": 1}, "EventMsg": {"MsgType": "ON_EVENT_GROUP_JOIN"}}}}
        event = parse_event_packet(packet)
        assert event.name == "ON_EVENT_GROUP_JOIN"
        assert event.payload["EventData"] == {"UserID": 1}

    def test_event_packet_never_fails(self):
        assert parse_event_packet("garbage") == OtherEvent(name="OnEvents", payload={"raw": "garbage"})
        assert parse_event_packet({"x": 1}).name == "OnEvents"


class TestGatewayResult:
    def test_ok(self):
        assert GatewayResult(ret=0).ok
        assert GatewayResult(ret=None).ok
        assert not GatewayResult(ret=1001).ok


class FakeBridge:
    """Minimal LuaApiCaller endpoint served by aiohttp."""

    def __init__(self, response: Any = None, status: int = 200):
        self.response = {"Ret": 0, "Msg": ""} if response is None else response
        self.status = status
        self.requests: list[dict[str, Any]] = []
        self._runner: web.AppRunner | None = None

    async def handle(self, request: web.Request) -> web.Response:
        body = await request.json() if request.method == "POST" else None
        self.requests.append({"method": request.method, "query": dict(request.query), "body": body})
        if self.status != 200:
            return web.Response(status=self.status)
        return web.json_response(self.response)

    async def start(self) -> str:
        app = web.Application()
        app.router.add_route("*", "/v1/LuaApiCaller", self.handle)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, "127.0.0.1", 0)
        await site.start()
        host, port = self._runner.addresses[0][:2]
        return f"http://{host}:{port}/v1"

    async def stop(self) -> None:
        await self._runner.cleanup()


class TestIOTQQGateway:
    """Tests for the web API gateway against a local fake bridge."""

    async def make_gateway(self, bridge: FakeBridge) -> IOTQQGateway:
        web_api = await bridge.start()
        return IOTQQGateway(IOTQQConfig(web_api=web_api, login_qq=10000), HTTPConfig(timeout_seconds=5))

    @pytest.mark.asyncio
    async def test_send_message(self):
        bridge = FakeBridge()
        gateway = await self.make_gateway(bridge)
        try:
            result = await gateway.send_message(10001, "report", group_id=555)
        finally:
            await gateway.close()
            await bridge.stop()

        assert result.ok
        [request] = bridge.requests
        assert request["method"] == "POST"
        assert request["query"] == {"qq": "10000", "funcname": "SendMsg", "timeout": "10"}
        assert request["body"] == {
            "toUser": 10001,
            "sendToType": 1,
            "sendMsgType": "TextMsg",
            "content": "report",
            "groupid": 555,
            "atUser": 0,
            "replayInfo": None,
        }

    @pytest.mark.asyncio
    async def test_retract_not_retractable(self):
        bridge = FakeBridge({"Msg": "No message meets the requirements", "Ret": 1001})
        gateway = await self.make_gateway(bridge)
        try:
            result = await gateway.retract_message(555, 42, 777)
        finally:
            await gateway.close()
            await bridge.stop()

        assert not result.ok
        assert result.ret == 1001
        assert bridge.requests[0]["query"]["funcname"] == "RevokeMsg"
        assert bridge.requests[0]["body"] == {"GroupID": 555, "MsgSeq": 42, "MsgRandom": 777}

    @pytest.mark.asyncio
    async def test_get_without_body(self):
        bridge = FakeBridge({"Ret": 0, "Msg": "ok"})
        gateway = await self.make_gateway(bridge)
        try:
            result = await gateway.call_api("GetQQUserList")
        finally:
            await gateway.close()
            await bridge.stop()

        assert bridge.requests[0]["method"] == "GET"
        assert result.msg == "ok"

    @pytest.mark.asyncio
    async def test_missing_ret_is_ok(self):
        bridge = FakeBridge({"Msg": ""})
        gateway = await self.make_gateway(bridge)
        try:
            result = await gateway.send_message(10001, "x")
        finally:
            await gateway.close()
            await bridge.stop()

        assert result.ret is None
        assert result.ok

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        bridge = FakeBridge(status=500)
        gateway = await self.make_gateway(bridge)
        try:
            with pytest.raises(GatewayError, match="HTTP 500"):
                await gateway.send_message(10001, "x")
        finally:
            await gateway.close()
            await bridge.stop()

    @pytest.mark.asyncio
    async def test_non_object_response_raises(self):
        bridge = FakeBridge([1, 2, 3])
        gateway = await self.make_gateway(bridge)
        try:
            with pytest.raises(GatewayError, match="unexpected response"):
                await gateway.send_message(10001, "x")
        finally:
            await gateway.close()
            await bridge.stop()

    @pytest.mark.asyncio
    async def test_connection_refused_raises(self):
        gateway = IOTQQGateway(IOTQQConfig(web_api="http://127.0.0.1:1/v1"), HTTPConfig(timeout_seconds=5))
        try:
            with pytest.raises(GatewayError):
                await gateway.send_message(10001, "x")
        finally:
            await gateway.close()


class TestEventStream:
    """Tests for packet dispatch, without a live websocket."""

    def make_stream(self) -> tuple[EventStream, dict[str, list]]:
        received: dict[str, list] = {"group": [], "private": [], "other": []}

        async def on_group(event):
            received["group"].append(event)

        async def on_private(event):
            received["private"].append(event)

        async def on_other(event):
            received["other"].append(event)

        stream = EventStream(IOTQQConfig(login_qq=10000), on_group, on_private, on_other)
        return stream, received

    @pytest.mark.asyncio
    async def test_dispatches_by_event_type(self):
        stream, received = self.make_stream()

        await stream._handle_group(GROUP_PACKET)
        await stream._handle_friend(FRIEND_PACKET)
        await stream._handle_event({"CurrentPacket": {"Data": {"EventMsg": {"MsgType": "ON_EVENT_GROUP_EXIT"}}}})
        await asyncio.sleep(0)
        await asyncio.gather(*stream._tasks)

        assert [e.sender_id for e in received["group"]] == [12345]
        assert [e.sender_id for e in received["private"]] == [10001]
        assert [e.name for e in received["other"]] == ["ON_EVENT_GROUP_EXIT"]

    @pytest.mark.asyncio
    async def test_malformed_packets_dropped(self):
        stream, received = self.make_stream()

        await stream._handle_group({"CurrentPacket": {}})
        await stream._handle_friend(None)

        assert stream._tasks == set()
        assert received["group"] == []
        assert received["private"] == []
