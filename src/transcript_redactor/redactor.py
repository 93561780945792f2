"""Redactor — the detector pipeline.  Layered: pattern library, custom
patterns, optional NER, then overlap resolution and substitution.

Usage:
    from transcript_redactor import Redactor, PlaceholderAssigner
    from transcript_redactor.config import parse_redaction_config

    redactor = Redactor()                   # reusable, thread-safe after init
    config = parse_redaction_config({})     # everything on
    assigner = PlaceholderAssigner()        # one per session

    result = redactor.detect("token=sk-ABCDEF1234", config, assigner)
    print(result.text)                      # "token=<SECRET_1>"
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from .patterns import PatternLibrary, PatternRule, custom_rules, resolve_overlaps
from .placeholders import PlaceholderAssigner
from .types import EntityMatch, RedactedText, RedactionCategory, RedactionConfig, RedactionEvent


@dataclass
class DetectorSettings:
    """Process-wide detector settings (not per request)."""
    use_presidio: bool = False        # enable the NER layer for pii
    language: str = "en"
    score_threshold: float = 0.35     # minimum confidence for Presidio
    presidio_entities: list[str] | None = None  # None = defaults
    custom_scanners: list[Callable[[str], list[EntityMatch]]] = field(default_factory=list)
    # Allow-list: values that should NEVER be redacted
    allow_list: set[str] = field(default_factory=set)


class Redactor:
    """Layered detector.

    Layer 1: Pattern library (secrets, pii, paths, high-entropy)
    Layer 2: Custom regex from the request (category ``custom``)
    Layer 3: Presidio NER and other scanners from DetectorSettings
    """

    def __init__(
        self,
        library: PatternLibrary | None = None,
        settings: DetectorSettings | None = None,
    ) -> None:
        self.library = library or PatternLibrary.default()
        self.settings = settings or DetectorSettings()

    def find(
        self,
        text: str,
        config: RedactionConfig,
        *,
        extra_rules: list[PatternRule] | None = None,
    ) -> list[EntityMatch]:
        """Detect and resolve overlaps; no substitution."""
        if not text:
            return []
        enabled = config.enabled_categories()
        if extra_rules is None:
            extra_rules = custom_rules(config.custom_regex)

        # --- Layer 1: builtin rules ---
        all_matches = self.library.scan(text, enabled)

        # --- Layer 2: custom patterns ---
        base = len(self.library)
        for i, rule in enumerate(extra_rules):
            all_matches.extend(rule.scan(text, order=base + i, source="custom"))

        # --- Layer 3: NER + scanners ---
        if self.settings.use_presidio and RedactionCategory.PII in enabled:
            from .presidio_layer import scan_presidio
            all_matches.extend(scan_presidio(
                text,
                language=self.settings.language,
                entities=self.settings.presidio_entities,
                score_threshold=self.settings.score_threshold,
            ))
        for scanner in self.settings.custom_scanners:
            all_matches.extend(m for m in scanner(text) if m.category in enabled)

        if self.settings.allow_list:
            all_matches = [m for m in all_matches if m.text not in self.settings.allow_list]

        return resolve_overlaps(all_matches)

    def detect(
        self,
        text: str,
        config: RedactionConfig,
        assigner: PlaceholderAssigner | None = None,
        *,
        field_path: str = "",
        extra_rules: list[PatternRule] | None = None,
    ) -> RedactedText:
        """Redact ``text``, allocating placeholders from ``assigner``.

        Replacement is pure substring substitution, left to right; the
        text between matches is copied untouched.
        """
        if assigner is None:
            assigner = PlaceholderAssigner()
        matches = self.find(text, config, extra_rules=extra_rules)
        if not matches:
            return RedactedText(text=text)

        parts: list[str] = []
        events: list[RedactionEvent] = []
        cursor = 0
        for match in matches:
            placeholder = assigner.assign(match.category, match.text, match.prefix)
            parts.append(text[cursor:match.start])
            parts.append(placeholder)
            cursor = match.end
            events.append(RedactionEvent(
                category=match.category,
                rule_name=match.rule_name,
                placeholder=placeholder,
                original_length=match.length,
                field_path=field_path,
            ))
        parts.append(text[cursor:])
        return RedactedText(text="".join(parts), events=events, matches=matches)

    def redact_object(
        self,
        obj: Any,
        config: RedactionConfig,
        assigner: PlaceholderAssigner | None = None,
    ) -> tuple[Any, list[RedactionEvent]]:
        """Redact every string leaf and every object key of a parsed JSON value.

        Returns a new structure; the input is not mutated.  Numbers,
        booleans and nulls are copied as-is.  Field paths on the events
        use the redacted keys.
        """
        if assigner is None:
            assigner = PlaceholderAssigner()
        extra = custom_rules(config.custom_regex)
        events: list[RedactionEvent] = []

        def redact(text: str, path: str) -> str:
            result = self.detect(text, config, assigner, field_path=path, extra_rules=extra)
            events.extend(result.events)
            return result.text

        def walk(node: Any, path: str) -> Any:
            if isinstance(node, str):
                return redact(node, path)
            if isinstance(node, dict):
                out = {}
                for k, v in node.items():
                    key = redact(k, path) if isinstance(k, str) else k
                    out[key] = walk(v, f"{path}.{key}" if path else str(key))
                return out
            if isinstance(node, list):
                return [walk(item, f"{path}[]") for item in node]
            return node

        return walk(obj, ""), events

    def redact_keys(
        self,
        keys: Iterable[str],
        config: RedactionConfig,
        assigner: PlaceholderAssigner | None = None,
    ) -> dict[str, str]:
        """Map each key that would be redacted to its redacted form.

        Unchanged keys are left out.  With the assigner ``redact_object``
        used, the mapping agrees with the keys in its output.
        """
        if assigner is None:
            assigner = PlaceholderAssigner()
        extra = custom_rules(config.custom_regex)
        renames: dict[str, str] = {}
        for key in keys:
            if key in renames:
                continue
            redacted = self.detect(key, config, assigner, extra_rules=extra).text
            if redacted != key:
                renames[key] = redacted
        return renames
