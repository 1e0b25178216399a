"""Moderation decisions for classified group messages."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from censor_bot.core.events import GroupMessage
from censor_bot.core.gateway import GatewayResult
from censor_bot.core.logging import get_session_stats, log_timing
from censor_bot.core.policy import PolicyState, PolicyStore

if TYPE_CHECKING:
    from censor_bot.tracing import TraceContext

logger = logging.getLogger(__name__)

# Reason substrings that mark a high-confidence category ("malicious promotion")
DEFAULT_REVOKE_SIGNATURES = ("恶意推广",)

# IOTQQ RevokeMsg: {"Msg": "No message meets the requirements", "Ret": 1001}
NOT_RETRACTABLE_CODE = 1001


class ComplianceLevel(Enum):
    """Three-tier classification outcome, plus anything we don't recognize."""

    COMPLIANT = "合规"
    SUSPECTED = "疑似"
    NON_COMPLIANT = "不合规"
    UNKNOWN = "unknown"

    @classmethod
    def from_conclusion(cls, conclusion: str | None) -> "ComplianceLevel":
        """Map a service conclusion string, falling back to UNKNOWN."""
        for level in cls:
            if level.value == conclusion and level is not cls.UNKNOWN:
                return level
        return cls.UNKNOWN


ACTIONABLE_LEVELS = (ComplianceLevel.SUSPECTED, ComplianceLevel.NON_COMPLIANT)


@dataclass
class Verdict:
    """Result of classifying one message."""

    level: ComplianceLevel
    reason: str | None = None

    def __str__(self) -> str:
        if self.reason:
            return f"{self.level.name}({self.reason})"
        return self.level.name


@dataclass
class Action:
    """What to do about a flagged message."""

    notify: bool
    retract: bool
    reason_text: str


class ClassifierError(Exception):
    """The remote moderation call failed."""


class ModerationClassifier(Protocol):
    """Remote content classification service."""

    async def classify(self, text: str) -> Verdict:
        ...


def compose_report(message: GroupMessage, verdict: Verdict, retract: bool) -> str:
    """Human-readable report sent to the operator."""
    return (
        f"{message.sender_nick}({message.sender_id})发表于"
        f"{message.group_name}({message.group_id})的内容不合规。"
        f"原因：{verdict.reason or verdict.level.value}；原文：\n{message.content}"
        f"\n处理方式：{'撤回' if retract else '无'}"
    )


class DecisionEngine:
    """Turns a verdict plus the current policy into an Action.

    Exemptions (short text, whitelisted sender) are checked before the
    classifier is called, so exempt messages never cost a remote call.
    Retraction requires all of:
    - the revoke switch is on
    - the verdict is non-compliant, or suspected with more_sensitive on
    - censor_all is on, or the reason matches a revoke signature
    """

    def __init__(
        self,
        classifier: ModerationClassifier,
        revoke_signatures: Sequence[str] = DEFAULT_REVOKE_SIGNATURES,
        not_retractable_code: int = NOT_RETRACTABLE_CODE,
    ):
        self._classifier = classifier
        self._revoke_signatures = tuple(revoke_signatures)
        self._not_retractable_code = not_retractable_code

    @property
    def revoke_signatures(self) -> tuple[str, ...]:
        return self._revoke_signatures

    def exemption(self, message: GroupMessage, policy: PolicyState) -> str | None:
        """Return why a message is exempt from classification, or None."""
        if len(message.content) < policy.min_length:
            return "too_short"
        if message.sender_id in policy.whitelist:
            return "whitelisted"
        return None

    def matches_signature(self, reason: str | None) -> bool:
        if not reason:
            return False
        return any(signature in reason for signature in self._revoke_signatures)

    def decide(
        self, message: GroupMessage, verdict: Verdict, policy: PolicyState
    ) -> Action | None:
        """Map a verdict to an Action under the given policy."""
        if verdict.level not in ACTIONABLE_LEVELS:
            if verdict.level is ComplianceLevel.UNKNOWN:
                logger.warning(f"Unrecognized verdict for {message.sender_id}, taking no action")
            return None

        severe_enough = verdict.level is ComplianceLevel.NON_COMPLIANT or (
            verdict.level is ComplianceLevel.SUSPECTED and policy.more_sensitive
        )
        in_scope = policy.censor_all or self.matches_signature(verdict.reason)
        retract = policy.revoke and severe_enough and in_scope

        return Action(
            notify=True,
            retract=retract,
            reason_text=compose_report(message, verdict, retract),
        )

    async def evaluate(
        self,
        message: GroupMessage,
        policy: PolicyState,
        trace: "TraceContext | None" = None,
    ) -> Action | None:
        """Classify a group message and decide what to do.

        Returns:
            The Action to carry out, or None when nothing should happen
        """
        stats = get_session_stats()

        exemption = self.exemption(message, policy)
        if exemption is not None:
            logger.debug(f"Skipping {message.sender_id}: {exemption}")
            stats.increment("exempt")
            if trace:
                trace.add_step(
                    stage="exemption",
                    inputs={"length": len(message.content), "min_length": policy.min_length},
                    outputs={"exempt": True},
                    decision=f"Exempt: {exemption}",
                )
            return None

        try:
            with log_timing(logger, "Classification"):
                verdict = await self._classifier.classify(message.content)
        except ClassifierError as e:
            logger.error(f"Classification failed for {message.sender_id}, taking no action: {e}")
            stats.increment("classifier_errors")
            if trace:
                trace.add_step(
                    stage="classifier",
                    inputs={"text": message.content},
                    outputs={"error": str(e)},
                    decision="Failed: no action",
                )
            return None

        stats.increment("classified")
        action = self.decide(message, verdict, policy)

        preview = message.content[:80] + "..." if len(message.content) > 80 else message.content
        if action is None:
            logger.info(f"VERDICT: '{preview}' -> {verdict} | no action")
        else:
            stats.increment("flagged")
            logger.info(
                f"VERDICT: '{preview}' -> {verdict} | notify={action.notify} retract={action.retract}"
            )

        if trace:
            trace.add_step(
                stage="classifier",
                inputs={"text": message.content},
                outputs={"level": verdict.level.name, "reason": verdict.reason},
                decision=str(verdict),
            )
            trace.add_step(
                stage="decision",
                inputs={"policy": policy.to_dict(), "signatures": list(self._revoke_signatures)},
                outputs={
                    "notify": action.notify if action else False,
                    "retract": action.retract if action else False,
                },
                decision="No action" if action is None else ("Retract" if action.retract else "Report"),
            )

        return action

    def is_not_retractable(self, result: GatewayResult) -> bool:
        return result.ret == self._not_retractable_code

    async def learn_from_retraction(
        self, message: GroupMessage, result: GatewayResult, store: PolicyStore
    ) -> bool:
        """Whitelist a sender whose message could not be retracted.

        Only the platform's "not retractable" status triggers this; any
        other failure is left alone.

        Returns:
            True if the sender was added to the whitelist
        """
        if not self.is_not_retractable(result):
            return False

        logger.info(f"Message from {message.sender_id} not retractable ({result}), whitelisting sender")
        added = await store.whitelist_add(message.sender_id)
        if added:
            get_session_stats().increment("whitelist_learned")
        return added
