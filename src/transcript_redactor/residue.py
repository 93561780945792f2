"""Residue checker — second pass over already redacted output.

Uses its own small set of high-confidence rules, never the permissive
high-entropy one.  It runs on the serialized document, so it also sees
text spanning leaf boundaries that the detector never visits.  A hit
means the primary pass missed something.
"""

from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Iterable

from .types import RedactionCategory

_S = RedactionCategory.SECRETS
_P = RedactionCategory.PII
_F = RedactionCategory.PATHS

# (label, category, regex); labels end up in user-facing warnings
_RESIDUE_SPECS: list[tuple[str, RedactionCategory, str]] = [
    ("private key block", _S, r"-----BEGIN (?:[A-Z]+ )*PRIVATE KEY-----"),
    ("AWS access key", _S, r"(?<![A-Z0-9])(?:AKIA|ASIA)[A-Z0-9]{16}(?![A-Z0-9])"),
    ("GitHub token", _S, r"(?<![A-Za-z0-9])(?:gh[pousr]_[A-Za-z0-9]{30,}|github_pat_[A-Za-z0-9_]{20,})"),
    ("API key token (sk-)", _S, r"(?<![A-Za-z0-9])sk-[A-Za-z0-9_\-]{20,}"),
    ("HuggingFace token", _S, r"(?<![A-Za-z0-9])hf_[A-Za-z0-9]{30,}"),
    ("Slack token", _S, r"(?<![A-Za-z0-9])xox[abposr]-[A-Za-z0-9\-]{10,}"),
    ("JWT token", _S, r"eyJ[A-Za-z0-9_\-]{10,}\.eyJ[A-Za-z0-9_\-]{10,}\.[A-Za-z0-9_\-]{10,}"),
    ("email address", _P, r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9\-]+(?:\.[A-Za-z0-9\-]+)*\.[A-Za-z]{2,}"),
    ("macOS home directory", _F, r"(?<![\w.])/Users/(?!Shared\b)[^/\s\"'<>:\\]+"),
    ("Linux home directory", _F, r"(?<![\w.])/home/[^/\s\"'<>:\\]+"),
    ("Windows home directory", _F, r"(?i)\b[A-Za-z]:\\{1,2}Users\\{1,2}[^\\/\s\"'<>:]+"),
]

_RESIDUE_RULES: list[tuple[str, RedactionCategory, re.Pattern[str]]] = [
    (label, category, re.compile(regex)) for label, category, regex in _RESIDUE_SPECS
]

RESIDUE_CATEGORIES = frozenset(category for _, category, _ in _RESIDUE_SPECS)


def _counts(text: str, categories: frozenset[RedactionCategory]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for label, category, pattern in _RESIDUE_RULES:
        if category not in categories:
            continue
        n = sum(1 for _ in pattern.finditer(text))
        if n:
            counts[label] = counts.get(label, 0) + n
    return counts


def _format(label: str, n: int) -> str:
    plural = "occurrence" if n == 1 else "occurrences"
    return f"Possible {label} remains after redaction ({n} {plural})"


def check_residue(
    redacted_text: str,
    categories: Iterable[RedactionCategory] | None = None,
) -> list[str]:
    """Warnings for sensitive patterns still present in ``redacted_text``.

    ``categories`` limits the check to what the caller asked to redact;
    a category the caller switched off is a choice, not a miss.
    """
    if not redacted_text:
        return []
    wanted = frozenset(categories) if categories is not None else RESIDUE_CATEGORIES
    return [_format(label, n) for label, n in _counts(redacted_text, wanted).items()]


def is_blocked(warnings: list[str], threshold: int = 0) -> bool:
    """Export is blocked once the warning count exceeds ``threshold``."""
    return len(warnings) > threshold


@dataclass(slots=True)
class ResidueResult:
    warnings: list[str] = field(default_factory=list)
    blocked: bool = False

    @property
    def clean(self) -> bool:
        return not self.blocked and not self.warnings


def check_residue_many(
    texts: Iterable[str],
    categories: Iterable[RedactionCategory] | None = None,
    threshold: int = 0,
) -> ResidueResult:
    """Check several strings at once; counts are summed per finding."""
    wanted = frozenset(categories) if categories is not None else RESIDUE_CATEGORIES
    totals: dict[str, int] = {}
    for text in texts:
        if not text:
            continue
        for label, n in _counts(text, wanted).items():
            totals[label] = totals.get(label, 0) + n
    warnings = [_format(label, n) for label, n in totals.items()]
    return ResidueResult(warnings=warnings, blocked=is_blocked(warnings, threshold))
