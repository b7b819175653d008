"""Per-call execution context passed from the dispatcher into a tool.

Carries request-scoped state between the dispatcher and the tool it runs:
- Upstream call outcomes, folded into telemetry once the call completes
- Free-form tool state such as the cache lookup result

Example:
    >>> ctx = Context(tool_name="get-file")
    >>> ctx["cache"] = "hit"
    >>> ctx.get("cache")
    'hit'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ...tools.http import CallOutcome


@dataclass(slots=True)
class Context:
    """Execution context for a single tool call."""

    tool_name: str = ""
    outcomes: list[CallOutcome] = field(default_factory=list)
    data: dict[str, object] = field(default_factory=dict)

    def record(self, outcome: CallOutcome) -> CallOutcome:
        """Remember an upstream call outcome; returns it for chaining."""
        self.outcomes.append(outcome)
        return outcome

    def __getitem__(self, key: str) -> object:
        return self.data[key]

    def __setitem__(self, key: str, value: object) -> None:
        self.data[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self.data

    def get(self, key: str, default: object = None) -> object:
        return self.data.get(key, default)
