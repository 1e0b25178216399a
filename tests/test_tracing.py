"""Tests for tracing data model and storage."""

from datetime import datetime
from pathlib import Path

import pytest

from censor_bot.tracing import TraceContext, TraceStep, TraceStore


def make_trace(group_id: int = 555, content: str = "buy cheap followers now") -> TraceContext:
    return TraceContext(
        group_id=group_id,
        sender_id=12345,
        content=content,
        policy_snapshot={"revoke": True, "min_length": 8},
    )


class TestTraceStep:
    """Tests for TraceStep dataclass."""

    def test_create_basic_step(self):
        """Test creating a basic trace step."""
        step = TraceStep(
            stage="classifier",
            inputs={"text": "hello"},
            outputs={"level": "COMPLIANT"},
            decision="COMPLIANT",
        )
        assert step.stage == "classifier"
        assert step.details == {}
        assert step.timestamp is not None

    def test_from_dict(self):
        """Test deserialization from dict."""
        data = {
            "stage": "retract",
            "timestamp": "2025-01-01T12:00:00",
            "inputs": {"msg_seq": 42},
            "outputs": {"ok": False, "ret": 1001},
            "decision": "Ret=1001",
        }
        step = TraceStep.from_dict(data)
        assert step.stage == "retract"
        assert step.outputs["ret"] == 1001
        assert step.timestamp.year == 2025
        assert step.details == {}


class TestTraceContext:
    """Tests for TraceContext."""

    def test_create_context(self):
        ctx = make_trace()
        assert ctx.id is not None
        assert ctx.steps == []
        assert ctx.outcome == "pending"

    def test_to_dict_and_back(self):
        """Test round-trip serialization."""
        ctx = make_trace()
        ctx.add_step("classifier", {"text": "x"}, {"level": "NON_COMPLIANT"}, "NON_COMPLIANT")

        d = ctx.to_dict()
        restored = TraceContext.from_dict(d)

        assert d["outcome"] == "error"
        assert restored.id == ctx.id
        assert restored.group_id == 555
        assert restored.policy_snapshot == {"revoke": True, "min_length": 8}
        assert [s.stage for s in restored.steps] == ["classifier"]

    @pytest.mark.parametrize(
        "steps, expected",
        [
            ([("exemption", {"exempt": True})], "exempt"),
            ([("classifier", {}), ("decision", {"notify": False})], "compliant"),
            ([("classifier", {}), ("decision", {"notify": True})], "reported"),
            ([("decision", {"notify": True}), ("retract", {"ok": True})], "retracted"),
            ([("decision", {"notify": True}), ("retract", {"ok": False})], "retract_failed"),
            ([("retract", {"ok": False}), ("learn", {"whitelisted": True})], "learned"),
            ([("retract", {"ok": False}), ("learn", {"whitelisted": False})], "retract_failed"),
        ],
    )
    def test_outcome(self, steps, expected):
        ctx = make_trace()
        for stage, outputs in steps:
            ctx.add_step(stage, {}, outputs, "")
        assert ctx.outcome == expected


class TestTraceStore:
    """Tests for the SQLite trace store."""

    @pytest.fixture
    def store(self, tmp_path: Path) -> TraceStore:
        store = TraceStore(tmp_path / "traces.db")
        yield store
        store.close()

    def test_save_and_get(self, store: TraceStore):
        ctx = make_trace()
        ctx.add_step("exemption", {}, {"exempt": True}, "Exempt: whitelisted")
        store.save(ctx)

        loaded = store.get(ctx.id)
        assert loaded is not None
        assert loaded.content == ctx.content
        assert loaded.outcome == "exempt"

    def test_get_missing(self, store: TraceStore):
        assert store.get("nonexistent") is None

    def test_recent_filters(self, store: TraceStore):
        exempt = make_trace(group_id=1)
        exempt.add_step("exemption", {}, {"exempt": True}, "")
        reported = make_trace(group_id=2)
        reported.add_step("decision", {}, {"notify": True}, "Report")
        store.save(exempt)
        store.save(reported)

        assert len(store.recent()) == 2
        assert [t.id for t in store.recent(group_id=1)] == [exempt.id]
        assert [t.id for t in store.recent(outcome="reported")] == [reported.id]
        assert len(store.recent(limit=1)) == 1

    def test_content_preview_truncated(self, store: TraceStore):
        store.save(make_trace(content="x" * 300))
        [summary] = store.recent()
        assert summary.content_preview == "x" * 100

    def test_prune(self, store: TraceStore):
        for minute in range(5):
            ctx = make_trace()
            ctx.started_at = datetime(2025, 1, 1, 12, minute)
            store.save(ctx)
        deleted = store.prune(keep_last=2)
        assert deleted == 3
        assert len(store.recent()) == 2

    def test_outcome_counts(self, store: TraceStore):
        for group_id, stage in [(1, "exemption"), (1, "exemption"), (2, "exemption")]:
            ctx = make_trace(group_id=group_id)
            ctx.add_step(stage, {}, {"exempt": True}, "")
            store.save(ctx)
        store.save(make_trace(group_id=1))

        assert store.outcome_counts() == {"exempt": 3, "pending": 1}
        assert store.outcome_counts(group_id=2) == {"exempt": 1}

    def test_prune_below_limit(self, store: TraceStore):
        store.save(make_trace())
        assert store.prune(keep_last=10) == 0
