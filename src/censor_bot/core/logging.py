"""Logging utilities for censor-bot."""

import json
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Generator

# Classifier debug mode flag
_classifier_debug: bool = False
_classifier_debug_lock = Lock()


def set_classifier_debug(enabled: bool) -> None:
    """Enable or disable classifier debug logging."""
    global _classifier_debug
    with _classifier_debug_lock:
        _classifier_debug = enabled


def is_classifier_debug() -> bool:
    """Check if classifier debug logging is enabled."""
    with _classifier_debug_lock:
        return _classifier_debug


# Dedicated logger for classifier debug output
_classifier_logger = logging.getLogger("censor_bot.classifier_debug")


def log_classifier_call(
    operation: str,
    text: str,
    response: dict[str, Any] | None = None,
    error: str | None = None,
) -> None:
    """Log a classifier request and its raw response when classifier debug is enabled."""
    if not is_classifier_debug():
        return

    parts = [
        f"\n{'='*80}",
        f"CLASSIFIER CALL: {operation}",
        f"{'='*80}",
        f"\n--- TEXT ---\n{text}",
    ]

    if response is not None:
        parts.append(f"\n--- RESPONSE ---\n{json.dumps(response, indent=2, ensure_ascii=False, default=str)}")

    if error:
        parts.append(f"\n--- ERROR ---\n{error}")

    parts.append(f"{'='*80}\n")

    _classifier_logger.info("\n".join(parts))


@dataclass
class SessionStats:
    """Cumulative statistics for a session.

    Thread-safe counters for tracking moderation activity.
    """

    messages_received: int = 0
    exempt: int = 0
    classified: int = 0
    classifier_errors: int = 0
    flagged: int = 0
    notifications_sent: int = 0
    notifications_failed: int = 0
    retractions: int = 0
    retractions_failed: int = 0
    whitelist_learned: int = 0
    commands_handled: int = 0
    api_calls: dict[str, int] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def increment(self, stat: str, amount: int = 1) -> None:
        """Increment a stat counter."""
        with self._lock:
            if hasattr(self, stat) and stat != "_lock":
                current = getattr(self, stat)
                if isinstance(current, int):
                    setattr(self, stat, current + amount)

    def increment_api_call(self, name: str) -> None:
        """Track a call to a remote API."""
        with self._lock:
            self.api_calls[name] = self.api_calls.get(name, 0) + 1

    def summary(self) -> dict[str, Any]:
        """Return a summary of all stats."""
        with self._lock:
            return {
                "received": self.messages_received,
                "exempt": self.exempt,
                "classified": self.classified,
                "classifier_errors": self.classifier_errors,
                "flagged": self.flagged,
                "flag_rate": f"{100 * self.flagged / max(1, self.classified):.0f}%",
                "notified": self.notifications_sent,
                "retracted": self.retractions,
                "learned": self.whitelist_learned,
                "commands": self.commands_handled,
                "api_calls": dict(self.api_calls),
            }

    def summary_line(self) -> str:
        """Return a single-line summary for logging."""
        with self._lock:
            flag_pct = 100 * self.flagged / max(1, self.classified)

            return (
                f"received={self.messages_received} exempt={self.exempt} "
                f"classified={self.classified} flag_rate={flag_pct:.0f}% "
                f"retracted={self.retractions} learned={self.whitelist_learned}"
            )


# Global session stats instance
_session_stats: SessionStats | None = None
_stats_lock = Lock()


def get_session_stats() -> SessionStats:
    """Get the global session stats instance."""
    global _session_stats
    with _stats_lock:
        if _session_stats is None:
            _session_stats = SessionStats()
        return _session_stats


def reset_session_stats() -> None:
    """Reset session stats (mainly for testing)."""
    global _session_stats
    with _stats_lock:
        _session_stats = SessionStats()


@contextmanager
def log_timing(
    logger: logging.Logger, operation: str
) -> Generator[None, None, None]:
    """Context manager for timing operations.

    Logs at DEBUG level on completion.

    Example:
        with log_timing(logger, "Text censor"):
            verdict = await classifier.classify(text)
        # Logs: "Text censor completed in 123.45ms"
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"{operation} completed in {elapsed_ms:.2f}ms")
