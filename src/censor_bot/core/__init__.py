"""Core moderation logic."""

from .commands import DEFAULT_COMMANDS, CommandRegistry, CommandSpec
from .decision import (
    Action,
    ClassifierError,
    ComplianceLevel,
    DecisionEngine,
    ModerationClassifier,
    Verdict,
)
from .events import GroupMessage, InboundEvent, OtherEvent, PrivateMessage
from .gateway import ChatGateway, GatewayError, GatewayResult
from .policy import PersistenceSink, PolicyState, PolicyStore
from .router import EventRouter
from .settings_store import PersistenceError, SettingsFile

__all__ = [
    "Action",
    "ChatGateway",
    "ClassifierError",
    "CommandRegistry",
    "CommandSpec",
    "ComplianceLevel",
    "DEFAULT_COMMANDS",
    "DecisionEngine",
    "EventRouter",
    "GatewayError",
    "GatewayResult",
    "GroupMessage",
    "InboundEvent",
    "ModerationClassifier",
    "OtherEvent",
    "PersistenceError",
    "PersistenceSink",
    "PolicyState",
    "PolicyStore",
    "PrivateMessage",
    "SettingsFile",
    "Verdict",
]
