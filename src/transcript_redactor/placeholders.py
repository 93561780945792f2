"""Placeholder assigner — scoped mapping from raw values to placeholders.

Design goals:
  - Deterministic: same raw value always maps to the same placeholder in a scope
  - Collision-free: a placeholder never stands for two raw values
  - Fast: dict lookups only, no scanning

One assigner per scope (a session by default, a batch if the caller asks
for it).  Not thread-safe; never share one between concurrent sessions.
"""

from __future__ import annotations
from collections import defaultdict

from .errors import PlaceholderCollisionError
from .types import RedactionCategory


# Placeholder format <PREFIX_N>; the dashboard highlights /<[A-Z_]+_\d+>/
_TOKEN_FMT = "<{prefix}_{idx}>"

DEFAULT_PREFIXES: dict[RedactionCategory, str] = {
    RedactionCategory.SECRETS: "SECRET",
    RedactionCategory.PII: "PII",
    RedactionCategory.PATHS: "PATH",
    RedactionCategory.HIGH_ENTROPY: "HIGH_ENTROPY",
    RedactionCategory.CUSTOM: "CUSTOM",
}


class PlaceholderAssigner:
    """Raw value → placeholder store for one scope."""

    __slots__ = ("_by_value", "_by_placeholder", "_counters", "_prefix_owner")

    def __init__(self) -> None:
        self._by_value: dict[tuple[RedactionCategory, str], str] = {}
        self._by_placeholder: dict[str, tuple[RedactionCategory, str]] = {}
        self._counters: dict[RedactionCategory, int] = defaultdict(int)
        self._prefix_owner: dict[str, RedactionCategory] = {}

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def assign(
        self,
        category: RedactionCategory,
        raw_value: str,
        prefix: str | None = None,
    ) -> str:
        """Return the placeholder for ``raw_value``, allocating one if new.

        The numeric suffix counts per category, so the first secret is
        ``_1`` whichever secret rule caught it.
        """
        key = (category, raw_value)
        if key in self._by_value:
            return self._by_value[key]

        prefix = prefix or DEFAULT_PREFIXES[category]
        owner = self._prefix_owner.setdefault(prefix, category)
        if owner is not category:
            raise PlaceholderCollisionError(
                f"prefix {prefix!r} already used for {owner.value}, not {category.value}"
            )

        self._counters[category] += 1
        placeholder = _TOKEN_FMT.format(prefix=prefix, idx=self._counters[category])
        if placeholder in self._by_placeholder:
            raise PlaceholderCollisionError(f"{placeholder} already assigned")

        self._by_value[key] = placeholder
        self._by_placeholder[placeholder] = key
        return placeholder

    def lookup(self, placeholder: str) -> str | None:
        """Raw value behind a placeholder (debugging only; never exported)."""
        entry = self._by_placeholder.get(placeholder)
        return entry[1] if entry else None

    def lookup_value(self, category: RedactionCategory, raw_value: str) -> str | None:
        return self._by_value.get((category, raw_value))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._by_placeholder)

    def count(self, category: RedactionCategory) -> int:
        """Distinct raw values seen for a category."""
        return self._counters.get(category, 0)

    def dump(self) -> dict[str, str]:
        """Copy of the placeholder → raw mapping (for debugging)."""
        return {p: raw for p, (_, raw) in self._by_placeholder.items()}
