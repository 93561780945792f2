"""Pattern library — ordered regex rules per category.

Rules are compiled once when a PatternLibrary is built and never change
afterwards, so one library can be shared by any number of threads.  A
rule that declares a named group ``value`` only redacts that group
(``token=abc123`` keeps ``token=``).
"""

from __future__ import annotations
import math
import re
from collections import Counter
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Iterable, Sequence

from .errors import InvalidPatternError, PatternLibraryError
from .types import EntityMatch, RedactionCategory

# Shannon entropy (bits/char) a token needs to count as random, and the
# shortest run considered.  Tuned so 24+ char random keys fire while
# identifiers, hashes and paths do not.
ENTROPY_THRESHOLD = 4.0
ENTROPY_MIN_LENGTH = 24

CUSTOM_PREFIX = "CUSTOM"


@dataclass(frozen=True, slots=True)
class PatternRule:
    """One detection rule."""
    name: str
    category: RedactionCategory
    pattern: re.Pattern[str]
    placeholder_prefix: str
    description: str = ""
    validator: Callable[[str], bool] | None = None

    def scan(self, text: str, order: int = 0, source: str = "regex") -> list[EntityMatch]:
        use_group = "value" in self.pattern.groupindex
        matches: list[EntityMatch] = []
        for m in self.pattern.finditer(text):
            if use_group and m.group("value") is not None:
                start, end = m.span("value")
            else:
                start, end = m.span()
            if start == end:
                continue
            value = text[start:end]
            if self.validator is not None and not self.validator(value):
                continue
            matches.append(EntityMatch(
                category=self.category,
                rule_name=self.name,
                prefix=self.placeholder_prefix,
                start=start,
                end=end,
                text=value,
                order=order,
                source=source,
            ))
        return matches


# ── Validators ───────────────────────────────────────────────────────

def shannon_entropy(s: str) -> float:
    """Shannon entropy of ``s`` in bits per character."""
    if not s:
        return 0.0
    length = len(s)
    return -sum((n / length) * math.log2(n / length) for n in Counter(s).values())


_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
_UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{12}$"
)


def looks_random(token: str) -> bool:
    """True if ``token`` is long, mixed and random enough to be a key."""
    if len(token) < ENTROPY_MIN_LENGTH:
        return False
    # paths, dotted names and version strings
    if token.count("/") >= 2 or token.count(".") >= 3:
        return False
    # git hashes, UUIDs
    if _HEX_RE.match(token) or _UUID_RE.match(token):
        return False
    if not (any(c.isupper() for c in token)
            and any(c.islower() for c in token)
            and any(c.isdigit() for c in token)):
        return False
    return shannon_entropy(token) >= ENTROPY_THRESHOLD


def luhn_valid(candidate: str) -> bool:
    digits = [int(c) for c in candidate if c.isdigit()]
    if not 13 <= len(digits) <= 19:
        return False
    total = 0
    for i, d in enumerate(reversed(digits)):
        if i % 2:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


# ── Builtin rules ────────────────────────────────────────────────────

# (name, category, regex, flags, placeholder prefix, description, validator)
_S = RedactionCategory.SECRETS
_P = RedactionCategory.PII
_F = RedactionCategory.PATHS
_H = RedactionCategory.HIGH_ENTROPY

_RULE_SPECS: list[tuple[str, RedactionCategory, str, int, str, str, Callable[[str], bool] | None]] = [
    ("private_key", _S,
     r"-----BEGIN (?:[A-Z]+ )*PRIVATE KEY-----[\s\S]*?-----END (?:[A-Z]+ )*PRIVATE KEY-----",
     0, "PRIVATE_KEY", "PEM private key block", None),

    ("aws_access_key", _S,
     r"\b(?:AKIA|ASIA|ABIA|ACCA)[A-Z0-9]{16}\b",
     0, "AWS_KEY", "AWS access key id", None),

    ("github_token", _S,
     r"\b(?:gh[pousr]_[A-Za-z0-9]{36,}|github_pat_[A-Za-z0-9_]{22,})",
     0, "GITHUB_TOKEN", "GitHub personal/app token", None),

    ("anthropic_api_key", _S,
     r"\bsk-ant-[A-Za-z0-9_\-]{20,}",
     0, "API_KEY", "Anthropic API key", None),

    ("openai_api_key", _S,
     r"\bsk-(?!ant-)(?:proj-)?[A-Za-z0-9_\-]{20,}",
     0, "API_KEY", "OpenAI-style sk- key", None),

    ("huggingface_token", _S,
     r"\bhf_[A-Za-z0-9]{30,}\b",
     0, "API_KEY", "HuggingFace access token", None),

    ("slack_token", _S,
     r"\bxox[abposr]-[A-Za-z0-9\-]{10,}",
     0, "SLACK_TOKEN", "Slack API token", None),

    ("jwt", _S,
     r"\beyJ[A-Za-z0-9_\-]{10,}\.eyJ[A-Za-z0-9_\-]{10,}\.[A-Za-z0-9_\-]{10,}",
     0, "JWT", "JSON Web Token", None),

    ("bearer_token", _S,
     r"\bBearer\s+(?P<value>[A-Za-z0-9\-._~+/]{16,}=*)",
     0, "TOKEN", "Authorization bearer token", None),

    ("url_credentials", _S,
     r"\b[a-zA-Z][a-zA-Z0-9+.\-]*://[^\s/:@]+:(?P<value>[^\s@/]+)@",
     0, "SECRET", "Password embedded in a URL", None),

    # key=value or key: value, only the value is replaced
    ("secret_assignment", _S,
     r"\b(?:api[_\-]?key|apikey|access[_\-]?key|secret(?:[_\-]?key)?|client[_\-]?secret"
     r"|auth[_\-]?token|access[_\-]?token|token|password|passwd|pwd)\b[\"']?\s*[:=]\s*[\"']?"
     r"(?P<value>[^\s\"'`&,;<>(){}\[\]]{6,})",
     re.IGNORECASE, "SECRET", "Secret in key=value form", None),

    ("email", _P,
     r"\b[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}\b",
     0, "EMAIL", "Email address", None),

    # separators required so ids and token counts don't fire
    ("phone", _P,
     r"(?<![\w+\-])(?:\+\d{1,3}[\s.\-])?\(?\d{3}\)?[\s.\-]\d{3}[\s.\-]\d{4}(?![\w\-])",
     0, "PHONE", "Phone number", None),

    ("ssn", _P,
     r"\b(?!000|666|9\d{2})\d{3}-(?!00)\d{2}-(?!0000)\d{4}\b",
     0, "SSN", "US social security number", None),

    ("credit_card", _P,
     r"\b(?:4\d{3}|5[1-5]\d{2}|3[47]\d{2}|6(?:011|5\d{2}))(?:[\s\-]?\d{4}){2}[\s\-]?\d{1,4}\b",
     0, "CREDIT_CARD", "Payment card number (Luhn checked)", luhn_valid),

    ("macos_home", _F,
     r"(?<![\w.])/Users/(?!Shared\b)[^/\s\"'<>:\\]+",
     0, "PATH", "macOS home directory", None),

    ("linux_home", _F,
     r"(?<![\w.])/home/[^/\s\"'<>:\\]+",
     0, "PATH", "Linux home directory", None),

    ("windows_home", _F,
     r"\b[A-Za-z]:\\{1,2}Users\\{1,2}[^\\/\s\"'<>:]+",
     re.IGNORECASE, "PATH", "Windows home directory", None),

    ("high_entropy_token", _H,
     r"(?<![A-Za-z0-9_+/=.\-])[A-Za-z0-9_+/=.\-]{%d,}(?![A-Za-z0-9_+/=.\-])" % ENTROPY_MIN_LENGTH,
     0, "HIGH_ENTROPY", "Random-looking token", looks_random),
]


def _compile_builtin() -> list[PatternRule]:
    rules: list[PatternRule] = []
    for name, category, regex, flags, prefix, description, validator in _RULE_SPECS:
        try:
            compiled = re.compile(regex, flags)
        except re.error as e:
            raise PatternLibraryError(f"builtin rule {name!r} does not compile: {e}") from e
        rules.append(PatternRule(
            name=name,
            category=category,
            pattern=compiled,
            placeholder_prefix=prefix,
            description=description,
            validator=validator,
        ))
    return rules


class PatternLibrary:
    """Immutable, ordered set of rules.  Build once, pass it around."""

    __slots__ = ("_rules", "_by_name")

    def __init__(self, rules: Iterable[PatternRule]) -> None:
        rules = tuple(rules)
        by_name: dict[str, PatternRule] = {}
        prefix_owner: dict[str, RedactionCategory] = {CUSTOM_PREFIX: RedactionCategory.CUSTOM}
        for rule in rules:
            if rule.name in by_name:
                raise PatternLibraryError(f"duplicate rule name {rule.name!r}")
            owner = prefix_owner.setdefault(rule.placeholder_prefix, rule.category)
            if owner is not rule.category:
                raise PatternLibraryError(
                    f"placeholder prefix {rule.placeholder_prefix!r} used by "
                    f"{owner.value} and {rule.category.value}"
                )
            by_name[rule.name] = rule
        self._rules = rules
        self._by_name = by_name

    @classmethod
    def default(cls) -> PatternLibrary:
        return cls(_compile_builtin())

    @property
    def rules(self) -> tuple[PatternRule, ...]:
        return self._rules

    def get(self, name: str) -> PatternRule | None:
        return self._by_name.get(name)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)

    def scan(
        self,
        text: str,
        categories: Iterable[RedactionCategory] | None = None,
    ) -> list[EntityMatch]:
        """All raw matches of the selected categories (overlaps included)."""
        wanted = set(categories) if categories is not None else None
        matches: list[EntityMatch] = []
        for order, rule in enumerate(self._rules):
            if wanted is not None and rule.category not in wanted:
                continue
            matches.extend(rule.scan(text, order=order))
        return matches


# ── Overlap resolution ───────────────────────────────────────────────

def _overlaps(a: EntityMatch, b: EntityMatch) -> bool:
    return a.start < b.end and a.end > b.start


def _visit_key(m: EntityMatch) -> tuple[int, int, int, int]:
    return (m.start, -m.length, m.category.priority, m.order)


def _beats(a: EntityMatch, b: EntityMatch) -> bool:
    if a.category is not b.category:
        return a.category.priority < b.category.priority
    return a.length > b.length


def resolve_overlaps(matches: Sequence[EntityMatch]) -> list[EntityMatch]:
    """Drop overlapping matches.

    Candidates are visited by (start, longest first, priority, rule
    order).  A candidate survives only if it beats every kept match it
    overlaps; those are then discarded.  A candidate that lost only to
    matches evicted later is restored when nothing kept overlaps it.
    """
    if not matches:
        return []
    ordered = sorted(matches, key=_visit_key)
    kept: list[EntityMatch] = []
    dropped: list[EntityMatch] = []
    for cand in ordered:
        rivals = [k for k in kept if _overlaps(cand, k)]
        if all(_beats(cand, k) for k in rivals):
            for k in rivals:
                kept.remove(k)
                dropped.append(k)
            kept.append(cand)
        else:
            dropped.append(cand)
    for cand in sorted(dropped, key=_visit_key):
        if not any(_overlaps(cand, k) for k in kept):
            kept.append(cand)
    return sorted(kept, key=lambda m: m.start)


# ── Custom patterns ──────────────────────────────────────────────────

@lru_cache(maxsize=256)
def compile_custom(pattern: str) -> re.Pattern[str]:
    """Compile a caller-supplied regex, cached by pattern string."""
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        raise InvalidPatternError(pattern, str(e)) from e
    if compiled.fullmatch(""):
        raise InvalidPatternError(pattern, "matches the empty string")
    return compiled


def custom_rules(patterns: Sequence[str]) -> list[PatternRule]:
    """Turn custom regex strings into rules (``custom_1``, ``custom_2``, ...)."""
    return [
        PatternRule(
            name=f"custom_{i}",
            category=RedactionCategory.CUSTOM,
            pattern=compile_custom(p),
            placeholder_prefix=CUSTOM_PREFIX,
            description=p,
        )
        for i, p in enumerate(patterns, start=1)
    ]


@dataclass(slots=True)
class PatternValidation:
    valid: bool
    errors: list[str]
    warnings: list[str]

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}


def validate_pattern(pattern: str) -> PatternValidation:
    """Check a custom regex before it is saved or used."""
    errors: list[str] = []
    warnings: list[str] = []
    if not pattern or not pattern.strip():
        errors.append("pattern is empty")
        return PatternValidation(False, errors, warnings)
    try:
        compile_custom(pattern)
    except InvalidPatternError as e:
        errors.append(e.reason)
        return PatternValidation(False, errors, warnings)
    if len(pattern) < 4:
        warnings.append("very short pattern; expect many false positives")
    if pattern.lstrip("^").startswith((".*", ".+")):
        warnings.append("leading catch-all will redact whole strings")
    return PatternValidation(True, errors, warnings)


# ── Introspection ────────────────────────────────────────────────────

def describe_patterns(library: PatternLibrary) -> list[dict]:
    return [
        {
            "name": r.name,
            "category": r.category.value,
            "placeholder": f"<{r.placeholder_prefix}_n>",
            "description": r.description,
        }
        for r in library
    ]


def run_pattern_tests(
    library: PatternLibrary,
    text: str,
    names: Sequence[str] | None = None,
) -> list[dict]:
    """Run rules against a sample text, one entry per rule (no overlap resolution)."""
    results = []
    for order, rule in enumerate(library):
        if names is not None and rule.name not in names:
            continue
        found = rule.scan(text, order=order)
        results.append({
            "pattern_name": rule.name,
            "match_count": len(found),
            "matches": [m.text for m in found],
        })
    return results
