"""Quality score for a session preview.

A cheap, deterministic 0–10 heuristic shown next to each prepared
session so contributors can spot near-empty or heavily redacted ones.
"""

from __future__ import annotations
import re

_WORD_RE = re.compile(r"[A-Za-z]{2,}")
_PLACEHOLDER_RE = re.compile(r"<[A-Z_]+_\d+>")


def score_text(text: str, *, target_length: int = 500) -> float:
    if not text:
        return 0.0
    words = [w.lower() for w in _WORD_RE.findall(text)]

    # substance: up to 4 points for reaching the target length
    score = 4.0 * min(len(text) / target_length, 1.0)
    # variety: up to 3 points, repetitive text scores low
    if words:
        score += 3.0 * len(set(words)) / len(words)
    # conversation and tool structure
    if {"user", "assistant"} & set(words):
        score += 1.5
    if "tool" in text.lower():
        score += 1.5
    # heavy redaction leaves little to learn from
    score -= min(0.25 * len(_PLACEHOLDER_RE.findall(text)), 2.0)

    return round(max(0.0, min(score, 10.0)), 2)
