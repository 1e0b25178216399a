"""IOTQQ bridge client: web API gateway and websocket event stream."""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

import aiohttp
import socketio

from censor_bot.config import HTTPConfig, IOTQQConfig
from censor_bot.core.events import TEXT_MSG, GroupMessage, OtherEvent, PrivateMessage
from censor_bot.core.gateway import GatewayError, GatewayResult
from censor_bot.core.logging import get_session_stats
from censor_bot.iotqq.packets import (
    PacketError,
    parse_event_packet,
    parse_friend_packet,
    parse_group_packet,
)

logger = logging.getLogger(__name__)

# SendMsg sendToType values
SEND_TO_FRIEND = 1
SEND_TO_GROUP = 2


class IOTQQGateway:
    """Sends and retracts messages through the IOTQQ ``LuaApiCaller`` web API."""

    def __init__(self, config: IOTQQConfig, http: HTTPConfig | None = None):
        self._config = config
        self._http = http or HTTPConfig()
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._http.timeout_seconds)
            connector = aiohttp.TCPConnector(ssl=self._http.verify_ssl)
            auth = None
            if self._config.web_api_user:
                password = (
                    self._config.web_api_password.get_secret_value()
                    if self._config.web_api_password
                    else ""
                )
                auth = aiohttp.BasicAuth(self._config.web_api_user, password)
            self._session = aiohttp.ClientSession(timeout=timeout, connector=connector, auth=auth)
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def call_api(self, funcname: str, body: dict[str, Any] | None = None) -> GatewayResult:
        """Call a bridge function. POSTs ``body`` as JSON, or GETs when there is none.

        Raises:
            GatewayError: On transport failures or a non-JSON response
        """
        url = self._config.web_api.rstrip("/") + "/LuaApiCaller"
        params = {
            "qq": str(self._config.login_qq),
            "funcname": funcname,
            "timeout": str(self._config.call_timeout),
        }
        session = await self._get_session()
        try:
            if body is None:
                request = session.get(url, params=params, proxy=self._http.proxy)
            else:
                request = session.post(url, params=params, json=body, proxy=self._http.proxy)
            async with request as response:
                if response.status != 200:
                    raise GatewayError(f"{funcname}: HTTP {response.status}: {response.reason}")
                data = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise GatewayError(f"{funcname} failed: {e}") from e
        except TimeoutError as e:
            raise GatewayError(f"{funcname} timed out after {self._http.timeout_seconds}s") from e
        except ValueError as e:
            raise GatewayError(f"{funcname}: invalid JSON response: {e}") from e

        get_session_stats().increment_api_call(f"iotqq.{funcname}")

        if not isinstance(data, dict):
            raise GatewayError(f"{funcname}: unexpected response {data!r}")
        ret = data.get("Ret")
        return GatewayResult(ret=ret if isinstance(ret, int) else None, msg=str(data.get("Msg") or ""), raw=data)

    async def send_message(self, to_user: int, content: str, group_id: int = 0) -> GatewayResult:
        """Send a private text message."""
        return await self.call_api(
            "SendMsg",
            {
                "toUser": to_user,
                "sendToType": SEND_TO_FRIEND,
                "sendMsgType": TEXT_MSG,
                "content": content,
                "groupid": group_id,
                "atUser": 0,
                "replayInfo": None,
            },
        )

    async def retract_message(self, group_id: int, msg_seq: int, msg_random: int) -> GatewayResult:
        """Recall a group message."""
        return await self.call_api(
            "RevokeMsg",
            {"GroupID": group_id, "MsgSeq": msg_seq, "MsgRandom": msg_random},
        )


GroupHandler = Callable[[GroupMessage], Coroutine[Any, Any, None]]
PrivateHandler = Callable[[PrivateMessage], Coroutine[Any, Any, None]]
OtherHandler = Callable[[OtherEvent], Coroutine[Any, Any, None]]


class EventStream:
    """Receives IOTQQ events over Socket.IO.

    Every packet is parsed and handed to its handler in a background task,
    so a slow event never holds up the next one.
    """

    def __init__(
        self,
        config: IOTQQConfig,
        on_group: GroupHandler,
        on_private: PrivateHandler,
        on_other: OtherHandler,
    ):
        self._config = config
        self._on_group = on_group
        self._on_private = on_private
        self._on_other = on_other
        self._tasks: set[asyncio.Task] = set()
        self._sio = socketio.AsyncClient(reconnection=True)
        self._sio.on("connect", self._handle_connect)
        self._sio.on("disconnect", self._handle_disconnect)
        self._sio.on("OnGroupMsgs", self._handle_group)
        self._sio.on("OnFriendMsgs", self._handle_friend)
        self._sio.on("OnEvents", self._handle_event)

    async def connect(self) -> None:
        """Connect to the bridge websocket."""
        logger.info(f"Connecting to {self._config.ws_api}...")
        await self._sio.connect(self._config.ws_api, transports=["websocket"])

    async def run_forever(self) -> None:
        """Run until the connection is closed for good."""
        await self._sio.wait()

    async def disconnect(self) -> None:
        await self._sio.disconnect()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _handle_connect(self) -> None:
        logger.info("WebSocket connected")
        # Must be sent on every (re)connect, otherwise no events are delivered
        await self._sio.emit(
            "GetWebConn",
            str(self._config.login_qq),
            callback=lambda data: logger.info(f"GetWebConn response: {data}"),
        )

    async def _handle_disconnect(self, *args: Any) -> None:
        logger.info("WebSocket disconnected")

    async def _handle_group(self, packet: Any) -> None:
        logger.debug(f"Group packet: {packet}")
        try:
            event = parse_group_packet(packet)
        except PacketError as e:
            logger.warning(f"Dropping group packet: {e}")
            return
        self._spawn(self._on_group(event))

    async def _handle_friend(self, packet: Any) -> None:
        logger.debug(f"Friend packet: {packet}")
        try:
            event = parse_friend_packet(packet)
        except PacketError as e:
            logger.warning(f"Dropping friend packet: {e}")
            return
        self._spawn(self._on_private(event))

    async def _handle_event(self, packet: Any) -> None:
        self._spawn(self._on_other(parse_event_packet(packet)))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
