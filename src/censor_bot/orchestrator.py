"""Main orchestrator tying all components together."""

import asyncio
import logging

import uvicorn

from censor_bot.classifier import BaiduTextCensor
from censor_bot.config import Config, get_protected_ids
from censor_bot.core import (
    DEFAULT_COMMANDS,
    CommandRegistry,
    DecisionEngine,
    EventRouter,
    PolicyStore,
    SettingsFile,
)
from censor_bot.core.logging import get_session_stats
from censor_bot.debug.server import create_app
from censor_bot.iotqq import EventStream, IOTQQGateway
from censor_bot.tracing import TraceStore

logger = logging.getLogger(__name__)

# Traces kept in the database after startup pruning
TRACE_RETENTION = 5000


class Orchestrator:
    """Builds every component from config and runs the event loop."""

    def __init__(self, config: Config, debug_server: bool = True):
        """Initialize the orchestrator with all components.

        Args:
            config: Application configuration
            debug_server: Start the debug HTTP server alongside the bot
        """
        self._config = config
        self._debug_server = debug_server and config.debug.enabled

        if not config.iotqq.report_qq or not config.iotqq.login_qq:
            raise ValueError("iotqq.login_qq and iotqq.report_qq must be set")

        # Policy: defaults, then the saved settings file
        self._settings_file = SettingsFile(config.moderation.settings_path)
        self._commands = CommandRegistry(DEFAULT_COMMANDS)
        self._policy = PolicyStore(
            self._commands.specs,
            sink=self._settings_file,
            protected_ids=get_protected_ids(config),
        )
        self._policy.load_from(self._settings_file.load())

        self._classifier = BaiduTextCensor(config.baidu, config.http)
        self._engine = DecisionEngine(
            self._classifier,
            revoke_signatures=config.moderation.revoke_signatures,
            not_retractable_code=config.moderation.not_retractable_code,
        )
        self._gateway = IOTQQGateway(config.iotqq, config.http)

        self._trace_store = TraceStore(config.debug.trace_db_path)
        self._trace_store.prune(keep_last=TRACE_RETENTION)

        self._router = EventRouter(
            engine=self._engine,
            commands=self._commands,
            store=self._policy,
            gateway=self._gateway,
            operator_id=config.iotqq.report_qq,
            trace_store=self._trace_store,
        )
        self._stream = EventStream(
            config.iotqq,
            on_group=self._router.on_group_event,
            on_private=self._router.on_private_event,
            on_other=self._router.on_other_event,
        )
        self._server_task: asyncio.Task | None = None

        logger.info(f"Orchestrator initialized with policy {self._policy.to_persistable()}")

    @property
    def policy(self) -> PolicyStore:
        return self._policy

    async def start(self) -> None:
        """Start the debug server and the bridge connection, then run forever."""
        if self._debug_server:
            app = create_app(trace_store=self._trace_store, policy_store=self._policy)
            server_config = uvicorn.Config(
                app,
                host=self._config.debug.host,
                port=self._config.debug.port,
                log_level="warning",
            )
            server = uvicorn.Server(server_config)
            self._server_task = asyncio.create_task(server.serve())
            logger.info(
                f"Debug server started on http://{self._config.debug.host}:{self._config.debug.port}"
            )

        try:
            await self._stream.connect()
            logger.info("Connected! Running forever...")
            await self._stream.run_forever()
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Release network and database resources."""
        logger.info(f"SESSION_STATS: {get_session_stats().summary_line()}")
        await self._stream.disconnect()
        await self._gateway.close()
        await self._classifier.close()
        if self._server_task:
            self._server_task.cancel()
        self._trace_store.close()
