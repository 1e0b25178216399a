"""Trace context and step data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4


@dataclass
class TraceStep:
    """A single step in the moderation trace."""

    stage: str
    inputs: dict[str, Any]
    outputs: dict[str, Any]
    decision: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "stage": self.stage,
            "timestamp": self.timestamp.isoformat(),
            "inputs": self.inputs,
            "outputs": self.outputs,
            "decision": self.decision,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TraceStep":
        """Deserialize from dictionary."""
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        elif timestamp is None:
            timestamp = datetime.now()

        return cls(
            stage=data["stage"],
            timestamp=timestamp,
            inputs=data.get("inputs", {}),
            outputs=data.get("outputs", {}),
            decision=data.get("decision", ""),
            details=data.get("details", {}),
        )


@dataclass
class TraceContext:
    """Record of how one group message was handled."""

    group_id: int
    sender_id: int
    content: str
    policy_snapshot: dict[str, Any]
    id: str = field(default_factory=lambda: str(uuid4()))
    started_at: datetime = field(default_factory=datetime.now)
    steps: list[TraceStep] = field(default_factory=list)

    def add_step(
        self,
        stage: str,
        inputs: dict[str, Any],
        outputs: dict[str, Any],
        decision: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Append a step to the trace."""
        self.steps.append(
            TraceStep(
                stage=stage,
                inputs=inputs,
                outputs=outputs,
                decision=decision,
                details=details or {},
            )
        )

    def step(self, stage: str) -> TraceStep | None:
        """First step recorded for a stage, if any."""
        return next((s for s in self.steps if s.stage == stage), None)

    @property
    def outcome(self) -> str:
        """Summarize the trace as a single outcome label."""
        if self.step("exemption"):
            return "exempt"
        learn = self.step("learn")
        if learn and learn.outputs.get("whitelisted"):
            return "learned"
        retract = self.step("retract")
        if retract:
            return "retracted" if retract.outputs.get("ok") else "retract_failed"
        decision = self.step("decision")
        if decision:
            return "reported" if decision.outputs.get("notify") else "compliant"
        if self.step("classifier"):
            return "error"
        return "pending"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "started_at": self.started_at.isoformat(),
            "group_id": self.group_id,
            "sender_id": self.sender_id,
            "content": self.content,
            "policy_snapshot": self.policy_snapshot,
            "steps": [step.to_dict() for step in self.steps],
            "outcome": self.outcome,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TraceContext":
        """Deserialize from dictionary."""
        started_at = data.get("started_at")
        if isinstance(started_at, str):
            started_at = datetime.fromisoformat(started_at)
        elif started_at is None:
            started_at = datetime.now()

        ctx = cls(
            id=data["id"],
            started_at=started_at,
            group_id=data["group_id"],
            sender_id=data["sender_id"],
            content=data.get("content", ""),
            policy_snapshot=data.get("policy_snapshot", {}),
        )
        ctx.steps = [TraceStep.from_dict(s) for s in data.get("steps", [])]
        return ctx
