"""FastAPI debug server for browsing moderation traces and live policy."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException
from fastapi.responses import RedirectResponse

from censor_bot.core.logging import get_session_stats
from censor_bot.core.policy import PolicyStore
from censor_bot.tracing import TraceStore

logger = logging.getLogger(__name__)


def create_app(
    trace_store: TraceStore,
    policy_store: PolicyStore | None = None,
) -> FastAPI:
    """Create the debug server FastAPI app.

    Args:
        trace_store: The trace store for retrieving saved traces.
        policy_store: Optional policy store, exposed read-only.

    Returns:
        A configured FastAPI application.
    """
    app = FastAPI(title="Censor-Bot Debug")

    @app.get("/", response_class=RedirectResponse)
    async def root():
        """Redirect root to traces list."""
        return RedirectResponse(url="/traces", status_code=307)

    @app.get("/traces")
    async def traces_list(
        group_id: int | None = None,
        outcome: str | None = None,
        limit: int = 50,
    ):
        """List recent traces with optional filtering."""
        traces = trace_store.recent(limit=limit, group_id=group_id, outcome=outcome)
        return {"traces": [t.to_dict() for t in traces]}

    @app.get("/traces/{trace_id}")
    async def trace_detail(trace_id: str):
        """Full detail of a single trace."""
        trace = trace_store.get(trace_id)
        if trace is None:
            raise HTTPException(status_code=404, detail="Trace not found")
        return trace.to_dict()

    @app.get("/policy")
    async def policy():
        """Current moderation policy."""
        if policy_store is None:
            raise HTTPException(status_code=503, detail="Policy store not configured")
        return policy_store.to_persistable()

    @app.get("/stats")
    async def stats(group_id: int | None = None):
        """Session counters plus stored trace outcomes."""
        return {
            "session": get_session_stats().summary(),
            "outcomes": trace_store.outcome_counts(group_id=group_id),
        }

    return app
