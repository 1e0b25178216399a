"""Inbound event routing."""

import logging

from censor_bot.core.commands import CommandRegistry
from censor_bot.core.decision import Action, DecisionEngine
from censor_bot.core.events import GroupMessage, OtherEvent, PrivateMessage
from censor_bot.core.gateway import ChatGateway, GatewayError
from censor_bot.core.logging import get_session_stats
from censor_bot.core.policy import PolicyStore
from censor_bot.tracing import TraceContext, TraceStore

logger = logging.getLogger(__name__)

# How often to log session stats (every N group messages)
STATS_LOG_INTERVAL = 50


class EventRouter:
    """Dispatches inbound events and sequences the outbound calls.

    Group text goes to the DecisionEngine, operator commands go to the
    CommandRegistry, everything else is only logged. The entry points never
    raise: failures are logged and scoped to the event being handled.
    """

    def __init__(
        self,
        engine: DecisionEngine,
        commands: CommandRegistry,
        store: PolicyStore,
        gateway: ChatGateway,
        operator_id: int,
        trace_store: TraceStore | None = None,
    ):
        self._engine = engine
        self._commands = commands
        self._store = store
        self._gateway = gateway
        self._operator_id = operator_id
        self._trace_store = trace_store

    async def on_group_event(self, event: GroupMessage) -> None:
        """Handle a group message."""
        try:
            await self._handle_group(event)
        except Exception:
            logger.exception(f"Error handling group message from {event.sender_id} in {event.group_id}")

    async def on_private_event(self, event: PrivateMessage) -> None:
        """Handle a private message."""
        try:
            await self._handle_private(event)
        except Exception:
            logger.exception(f"Error handling private message from {event.sender_id}")

    async def on_other_event(self, event: OtherEvent) -> None:
        """Log any other bridge event."""
        logger.debug(f"EVENT: {event.name} {event.payload}")

    async def _handle_group(self, event: GroupMessage) -> None:
        logger.debug(f"MSG_RECEIVED: {event}")

        stats = get_session_stats()
        stats.increment("messages_received")
        if stats.messages_received % STATS_LOG_INTERVAL == 0:
            logger.info(f"SESSION_STATS: {stats.summary_line()}")

        if not event.is_text:
            logger.debug(f"Skipping non-text group message ({event.msg_type})")
            return

        policy = self._store.state
        trace = None
        if self._trace_store is not None:
            trace = TraceContext(
                group_id=event.group_id,
                sender_id=event.sender_id,
                content=event.content,
                policy_snapshot=policy.to_dict(),
            )

        try:
            action = await self._engine.evaluate(event, policy, trace=trace)
            if action is not None:
                await self._carry_out(event, action, trace)
        finally:
            if trace is not None:
                self._save_trace(trace)

    async def _carry_out(
        self, event: GroupMessage, action: Action, trace: TraceContext | None
    ) -> None:
        # Notify first so the operator hears about it even if retraction fails
        if action.notify:
            await self._notify(event, action, trace)
        if action.retract:
            await self._retract(event, trace)

    async def _notify(
        self, event: GroupMessage, action: Action, trace: TraceContext | None
    ) -> None:
        stats = get_session_stats()
        try:
            result = await self._gateway.send_message(
                self._operator_id, action.reason_text, group_id=event.group_id
            )
        except GatewayError as e:
            logger.error(f"Failed to notify operator about {event.sender_id}: {e}")
            stats.increment("notifications_failed")
            if trace:
                trace.add_step("notify", {"to": self._operator_id}, {"error": str(e)}, "Failed")
            return

        if trace:
            trace.add_step("notify", {"to": self._operator_id}, {"ok": result.ok, "ret": result.ret}, str(result))

        if not result.ok:
            stats.increment("notifications_failed")
            logger.warning(f"Notification about {event.sender_id} rejected: {result}")
            return

        stats.increment("notifications_sent")
        logger.info(f"Notified operator: {result}")

    async def _retract(self, event: GroupMessage, trace: TraceContext | None) -> None:
        stats = get_session_stats()
        inputs = {"group_id": event.group_id, "msg_seq": event.msg_seq, "msg_random": event.msg_random}
        try:
            result = await self._gateway.retract_message(
                event.group_id, event.msg_seq, event.msg_random
            )
        except GatewayError as e:
            logger.error(f"Failed to retract message from {event.sender_id}: {e}")
            stats.increment("retractions_failed")
            if trace:
                trace.add_step("retract", inputs, {"ok": False, "error": str(e)}, "Failed")
            return

        if trace:
            trace.add_step("retract", inputs, {"ok": result.ok, "ret": result.ret}, str(result))

        if result.ok:
            stats.increment("retractions")
            logger.info(f"Retracted message from {event.sender_id} in {event.group_id}")
            return

        stats.increment("retractions_failed")
        logger.warning(f"Retraction of message from {event.sender_id} rejected: {result}")
        learned = await self._engine.learn_from_retraction(event, result, self._store)
        if trace and self._engine.is_not_retractable(result):
            trace.add_step(
                "learn",
                {"sender_id": event.sender_id},
                {"whitelisted": learned},
                "Whitelisted sender" if learned else "Already whitelisted",
            )

    async def _handle_private(self, event: PrivateMessage) -> None:
        if event.sender_id != self._operator_id or not event.is_text:
            logger.debug(f"Ignoring private message from {event.sender_id} ({event.msg_type})")
            return

        logger.info(f"COMMAND: {event.content!r}")
        reply = await self._commands.handle(event.content, self._store)

        try:
            await self._gateway.send_message(event.sender_id, reply)
        except GatewayError as e:
            logger.error(f"Failed to reply to operator: {e}")
            return
        logger.debug(f"Replied to operator: {reply!r}")

    def _save_trace(self, trace: TraceContext) -> None:
        try:
            self._trace_store.save(trace)
        except Exception:
            logger.exception(f"Failed to save trace {trace.id}")
