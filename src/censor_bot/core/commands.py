"""Operator command protocol over private chat.

Each runtime setting is described by an immutable ``CommandSpec``. The first
word of its display name is the command keyword. Sending the keyword alone
reports the current value; sending it with an argument changes the setting.
Anything else gets the help listing.
"""

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from censor_bot.core.logging import get_session_stats
from censor_bot.core.policy import PolicyState, PolicyStore

logger = logging.getLogger(__name__)

ON_TOKEN = "开"
OFF_TOKEN = "关"

HELP_HEADER = "命令列表："


def parse_switch(raw: str) -> bool:
    """Only the exact "on" token enables a switch; anything else disables it."""
    return raw == ON_TOKEN


def render_switch(value: bool) -> str:
    return ON_TOKEN if value else OFF_TOKEN


def coerce_int(raw: str) -> int:
    """Best-effort integer parsing.

    Decimals truncate toward zero. Non-numeric input coerces to 0.
    """
    try:
        value = float(raw.strip())
    except ValueError:
        return 0
    if math.isnan(value) or math.isinf(value):
        return 0
    return int(value)


@dataclass(frozen=True)
class CommandSpec:
    """Descriptor for one operator-mutable setting."""

    key: str  # PolicyState attribute
    display_name: str  # "<keyword> <argument hint>"
    default_value: Any
    render: Callable[[Any], str]
    apply: Callable[[PolicyState, str], None]

    @property
    def keyword(self) -> str:
        return self.display_name.split()[0]


def _set_switch(key: str) -> Callable[[PolicyState, str], None]:
    def apply(state: PolicyState, raw: str) -> None:
        setattr(state, key, parse_switch(raw))

    return apply


def _toggle_whitelist(state: PolicyState, raw: str) -> None:
    # Membership toggle, not a plain setter
    user_id = coerce_int(raw)
    if user_id in state.whitelist:
        state.whitelist.discard(user_id)
    else:
        state.whitelist.add(user_id)


def _set_min_length(state: PolicyState, raw: str) -> None:
    state.min_length = coerce_int(raw)


def _render_whitelist(value: set[int]) -> str:
    return ",".join(str(uid) for uid in sorted(value))


DEFAULT_COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec("whitelist", "白名单 QQ号", [], _render_whitelist, _toggle_whitelist),
    CommandSpec("revoke", "执行撤回 开/关", True, render_switch, _set_switch("revoke")),
    CommandSpec("censor_all", "审查所有 开/关", False, render_switch, _set_switch("censor_all")),
    CommandSpec("more_sensitive", "处理疑似 开/关", False, render_switch, _set_switch("more_sensitive")),
    CommandSpec("min_length", "文本长度 数字", 8, str, _set_min_length),
)


class CommandRegistry:
    """Parses operator command text and applies it to a PolicyStore."""

    def __init__(self, specs: Sequence[CommandSpec] = DEFAULT_COMMANDS):
        by_keyword: dict[str, CommandSpec] = {}
        for spec in specs:
            if spec.keyword in by_keyword:
                raise ValueError(
                    f"Duplicate command keyword {spec.keyword!r} "
                    f"({by_keyword[spec.keyword].key} and {spec.key})"
                )
            by_keyword[spec.keyword] = spec
        self._specs = tuple(specs)
        self._by_keyword = by_keyword

    @property
    def specs(self) -> tuple[CommandSpec, ...]:
        return self._specs

    def find(self, keyword: str) -> CommandSpec | None:
        """Exact, case-sensitive keyword lookup."""
        return self._by_keyword.get(keyword)

    def help_text(self) -> str:
        lines = [spec.display_name for spec in self._specs]
        return HELP_HEADER + "\n" + "\n".join(lines)

    async def handle(self, text: str, store: PolicyStore) -> str:
        """Handle one command message and return the reply text.

        Never raises for bad input: unknown keywords degrade to the help
        listing and bad arguments are coerced by the setting's apply.
        """
        parts = text.split()
        spec = self.find(parts[0]) if parts else None
        if spec is None:
            logger.debug(f"Unrecognized command {text!r}, replying with help")
            return self.help_text()

        get_session_stats().increment("commands_handled")

        if len(parts) < 2:
            value = spec.render(store.get(spec.key))
            return f"{spec.keyword} - 当前设定值为{value}"

        persisted = await store.set(spec.key, parts[1])
        reply = f"{spec.keyword} - 设定修改成功"
        if not persisted:
            reply += "（保存失败，重启后将丢失）"
        return reply
