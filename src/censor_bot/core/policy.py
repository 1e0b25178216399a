"""Moderation policy state and its single owner."""

import asyncio
import copy
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from censor_bot.core.settings_store import PersistenceError

if TYPE_CHECKING:
    from censor_bot.core.commands import CommandSpec

logger = logging.getLogger(__name__)


class PersistenceSink(Protocol):
    """Durable copy of the policy, written after every mutation."""

    def save(self, data: dict[str, Any]) -> None:
        ...


def _to_ids(values: Any, default: Iterable[int]) -> set[int]:
    if not isinstance(values, (list, tuple, set)):
        logger.warning(f"Invalid whitelist setting {values!r}, using {sorted(default)}")
        return set(default)
    ids: set[int] = set()
    for value in values:
        try:
            ids.add(int(value))
        except (TypeError, ValueError):
            logger.warning(f"Dropping invalid whitelist entry: {value!r}")
    return ids


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid integer setting {value!r}, using {default}")
        return default


def _to_switch(value: Any, default: bool) -> bool:
    if not isinstance(value, bool):
        logger.warning(f"Invalid switch setting {value!r}, using {default}")
        return default
    return value


@dataclass
class PolicyState:
    """Mutable moderation policy."""

    whitelist: set[int] = field(default_factory=set)
    revoke: bool = True
    censor_all: bool = False
    more_sensitive: bool = False
    min_length: int = 8

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "whitelist": sorted(self.whitelist),
            "revoke": self.revoke,
            "censor_all": self.censor_all,
            "more_sensitive": self.more_sensitive,
            "min_length": self.min_length,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PolicyState":
        """Deserialize from dictionary. Absent keys keep the dataclass defaults."""
        defaults = cls()
        return cls(
            whitelist=_to_ids(data.get("whitelist", defaults.whitelist), defaults.whitelist),
            revoke=_to_switch(data.get("revoke", defaults.revoke), defaults.revoke),
            censor_all=_to_switch(data.get("censor_all", defaults.censor_all), defaults.censor_all),
            more_sensitive=_to_switch(data.get("more_sensitive", defaults.more_sensitive), defaults.more_sensitive),
            min_length=_to_int(data.get("min_length", defaults.min_length), defaults.min_length),
        )


class PolicyStore:
    """Owns the single PolicyState instance.

    All mutations go through ``set`` or ``whitelist_add``; they are serialized
    with a lock and followed by a synchronous write to the persistence sink.
    A failed write is logged and reported through the return value, but the
    in-memory change stays. The next successful mutation writes the whole
    state again.
    """

    def __init__(
        self,
        specs: Sequence["CommandSpec"],
        sink: PersistenceSink | None = None,
        protected_ids: Iterable[int] = (),
    ):
        self._specs = {spec.key: spec for spec in specs}
        self._sink = sink
        self._protected = frozenset(uid for uid in protected_ids if uid)
        self._lock = asyncio.Lock()
        self._state = PolicyState()
        self.load_from({})

    @property
    def state(self) -> PolicyState:
        return self._state

    @property
    def protected_ids(self) -> frozenset[int]:
        return self._protected

    def defaults(self) -> dict[str, Any]:
        """Default value of every registered setting."""
        return {key: copy.deepcopy(spec.default_value) for key, spec in self._specs.items()}

    def get(self, key: str) -> Any:
        """Current value of a setting."""
        if key not in self._specs:
            raise KeyError(f"Unknown setting: {key}")
        return getattr(self._state, key)

    def to_persistable(self) -> dict[str, Any]:
        return self._state.to_dict()

    def load_from(self, data: dict[str, Any]) -> None:
        """Replace the state with ``data`` merged over the defaults.

        Unknown keys are ignored, missing keys keep their defaults.
        """
        merged = self.defaults()
        unknown = []
        for key, value in data.items():
            if key in self._specs:
                merged[key] = value
            else:
                unknown.append(key)
        if unknown:
            logger.debug(f"Ignoring unknown settings: {', '.join(sorted(unknown))}")

        self._state = PolicyState.from_dict(merged)
        self._restore_protected()

    async def set(self, key: str, raw: str) -> bool:
        """Apply raw command input to a setting and persist.

        Returns:
            True if the new state was written to the sink
        """
        spec = self._specs.get(key)
        if spec is None:
            raise KeyError(f"Unknown setting: {key}")

        async with self._lock:
            spec.apply(self._state, raw)
            self._restore_protected(warn=True)
            logger.info(f"POLICY: {key} <- {raw!r} (now {spec.render(getattr(self._state, key))})")
            return self._persist()

    async def whitelist_add(self, user_id: int) -> bool:
        """Add a user to the whitelist and persist.

        Returns:
            True if the user was not whitelisted before
        """
        async with self._lock:
            if user_id in self._state.whitelist:
                logger.debug(f"{user_id} already whitelisted")
                return False
            self._state.whitelist.add(user_id)
            logger.info(f"POLICY: whitelisted {user_id}")
            self._persist()
            return True

    def _restore_protected(self, warn: bool = False) -> None:
        missing = self._protected - self._state.whitelist
        if missing:
            if warn:
                logger.warning(f"Protected ids cannot leave the whitelist: {sorted(missing)}")
            self._state.whitelist |= missing

    def _persist(self) -> bool:
        if self._sink is None:
            return True
        try:
            self._sink.save(self.to_persistable())
        except PersistenceError as e:
            logger.error(f"Policy change kept in memory only: {e}")
            return False
        return True
