"""Field schema stripper — structural reduction of a session document.

Field paths use dot notation for object keys and a ``[]`` suffix for
"every element of this array":

    session.start_time
    tool_usages[].tool_name
    messages[].message.content[].text

Only object keys are fields.  Stripping deletes a field outright; it is
destructive and irreversible, unlike redaction which substitutes
placeholders.
"""

from __future__ import annotations
import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from .types import Profile

HOOK_KEYS = frozenset({"session", "tool_usages"})

# agent name → source-type prefix used by the dashboard
_TRANSCRIPT_PREFIX = {
    "claude": "cc",
    "claude-code": "cc",
    "claude_code": "cc",
    "codex": "codex",
    "gemini": "gemini",
    "opencode": "opencode",
}

SourceClassifier = Callable[[str], str]


def normalize_path(path: str) -> str:
    return path.replace("[]", "")


def top_level_key(path: str) -> str:
    return path.split(".", 1)[0].split("[", 1)[0]


def source_classifier(agent: str) -> SourceClassifier:
    """Map a top-level key to its originating source type for ``agent``.

    Hook data (``session``, ``tool_usages``) is ``cc_hook``; everything
    else is the agent's transcript.
    """
    prefix = _TRANSCRIPT_PREFIX.get((agent or "").lower())
    transcript = f"{prefix}_transcript" if prefix else "unknown"

    def classify(key: str) -> str:
        return "cc_hook" if key in HOOK_KEYS else transcript

    return classify


def _unknown_source(key: str) -> str:
    return "unknown"


class FieldMatcher:
    """Decides whether a discovered path is kept by a set of profile paths."""

    __slots__ = ("_exact", "_normalized", "_everything")

    def __init__(self, kept_fields: Iterable[str]) -> None:
        kept = set(kept_fields)
        self._everything = "*" in kept
        self._exact = frozenset(kept)
        self._normalized = tuple(sorted({normalize_path(k) for k in kept if k != "*"}))

    def __call__(self, path: str) -> bool:
        if self._everything or path in self._exact:
            return True
        norm = normalize_path(path)
        return any(norm == k or norm.startswith(k + ".") for k in self._normalized)


@dataclass(slots=True)
class FieldGroup:
    kept: list[str] = field(default_factory=list)
    stripped: list[str] = field(default_factory=list)

    @property
    def present(self) -> list[str]:
        return sorted(set(self.kept) | set(self.stripped))

    def to_dict(self) -> dict[str, list[str]]:
        return {"kept": list(self.kept), "stripped": list(self.stripped)}


@dataclass(slots=True)
class FieldStripResult:
    document: Any
    kept: set[str] = field(default_factory=set)
    stripped: set[str] = field(default_factory=set)
    by_source: dict[str, FieldGroup] = field(default_factory=dict)

    @property
    def present(self) -> set[str]:
        return self.kept | self.stripped


# ── Discovery ────────────────────────────────────────────────────────

def _child_path(path: str, key: Any) -> str:
    return f"{path}.{key}" if path else str(key)


def _collect(node: Any, path: str, out: dict[str, None]) -> None:
    if isinstance(node, dict):
        for key, value in node.items():
            child = _child_path(path, key)
            out.setdefault(child)
            _collect(value, child, out)
    elif isinstance(node, list):
        for item in node:
            _collect(item, f"{path}[]", out)


def discover_fields(document: Any) -> list[str]:
    """All field paths in ``document``, in first-seen order."""
    seen: dict[str, None] = {}
    _collect(document, "", seen)
    return list(seen)


def select_fields(discovered: Iterable[str], profile: Profile) -> list[str]:
    """The subset of ``discovered`` a profile keeps (no document needed)."""
    keep = FieldMatcher(profile.kept_fields)
    return [f for f in discovered if keep(f)]


# ── Stripping ────────────────────────────────────────────────────────

def _strip_node(
    node: Any,
    path: str,
    keep: FieldMatcher,
    kept: set[str],
    stripped: set[str],
) -> tuple[bool, Any]:
    """Reduce ``node`` to kept fields.  Returns (anything kept, new node)."""
    if isinstance(node, dict):
        out: dict[Any, Any] = {}
        for key, value in node.items():
            child = _child_path(path, key)
            if keep(child):
                # descendants of a kept path are kept too
                below: dict[str, None] = {}
                _collect(value, child, below)
                kept.add(child)
                kept.update(below)
                out[key] = copy.deepcopy(value)
                continue
            any_kept, reduced = _strip_node(value, child, keep, kept, stripped)
            if any_kept:
                kept.add(child)
                out[key] = reduced
            else:
                stripped.add(child)
                below = {}
                _collect(value, child, below)
                stripped.update(below)
        return bool(out), out

    if isinstance(node, list):
        items = []
        any_kept = False
        for item in node:
            if not isinstance(item, (dict, list)):
                continue
            item_kept, reduced = _strip_node(item, f"{path}[]", keep, kept, stripped)
            any_kept = any_kept or item_kept
            items.append(reduced)
        return any_kept, items

    return False, node


def strip(
    document: Any,
    profile: Profile,
    source_of: SourceClassifier | None = None,
) -> FieldStripResult:
    """Remove every field ``profile`` does not keep.

    The input document is never mutated.  A container with at least one
    kept descendant survives, reduced to its kept children, and counts as
    kept.  ``source_of`` maps a top-level key to a source type for the
    per-source report.
    """
    source_of = source_of or _unknown_source
    keep = FieldMatcher(profile.kept_fields)
    kept: set[str] = set()
    stripped: set[str] = set()

    if profile.keeps_everything:
        reduced = copy.deepcopy(document)
        kept.update(discover_fields(document))
    else:
        _, reduced = _strip_node(document, "", keep, kept, stripped)

    # a path reached both ways (array elements of different shapes) is kept
    stripped -= kept

    by_source: dict[str, FieldGroup] = {}
    for path in sorted(kept | stripped):
        group = by_source.setdefault(source_of(top_level_key(path)), FieldGroup())
        (group.kept if path in kept else group.stripped).append(path)

    return FieldStripResult(document=reduced, kept=kept, stripped=stripped, by_source=by_source)


# ── Renaming ─────────────────────────────────────────────────────────

def iter_keys(document: Any) -> Iterable[str]:
    """Every string object key in ``document``, depth first."""
    stack = [document]
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            for key, value in node.items():
                if isinstance(key, str):
                    yield key
                stack.append(value)
        elif isinstance(node, list):
            stack.extend(node)


def rename_fields(result: FieldStripResult, renames: dict[str, str]) -> FieldStripResult:
    """Rewrite the reported field paths with ``renames`` (raw key → new key).

    The document is left alone.  Longer keys are replaced first so a key
    that contains another one is renamed whole.
    """
    order = sorted(renames, key=len, reverse=True)

    def rename(path: str) -> str:
        for raw in order:
            if raw in path:
                path = path.replace(raw, renames[raw])
        return path

    kept = {rename(p) for p in result.kept}
    stripped = {rename(p) for p in result.stripped} - kept
    by_source = {
        source: FieldGroup(
            kept=sorted({rename(p) for p in group.kept}),
            stripped=sorted({rename(p) for p in group.stripped} - kept),
        )
        for source, group in result.by_source.items()
    }
    return FieldStripResult(document=result.document, kept=kept, stripped=stripped, by_source=by_source)
