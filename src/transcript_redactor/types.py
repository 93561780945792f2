"""Core types."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RedactionCategory(str, Enum):
    """Detection category.  Declaration order is overlap priority."""
    SECRETS = "secrets"
    PII = "pii"
    PATHS = "paths"
    HIGH_ENTROPY = "high_entropy"
    CUSTOM = "custom"

    @property
    def priority(self) -> int:
        # 0 is highest
        return _PRIORITY[self]


_PRIORITY = {cat: i for i, cat in enumerate(RedactionCategory)}


class PlaceholderScope(str, Enum):
    SESSION = "session"    # fresh placeholders per session, parallel-safe
    BATCH = "batch"        # one assigner for the whole batch, sequential


@dataclass(frozen=True, slots=True)
class EntityMatch:
    """A single detected span."""
    category: RedactionCategory
    rule_name: str
    prefix: str            # placeholder prefix, e.g. "SECRET", "EMAIL"
    start: int
    end: int
    text: str
    order: int = 0         # rule order, last tie-break
    source: str = "regex"  # "regex" | "custom" | "presidio"

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True, slots=True)
class RedactionEvent:
    category: RedactionCategory
    rule_name: str
    placeholder: str
    original_length: int
    field_path: str = ""   # e.g. "messages[].message.content"


@dataclass(slots=True)
class RedactedText:
    """Result of redacting one text blob."""
    text: str
    events: list[RedactionEvent] = field(default_factory=list)
    matches: list[EntityMatch] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RedactionConfig:
    """Which categories to redact.  Every field is required at the engine
    boundary; ``config.parse_redaction_config`` fills defaults."""
    redact_secrets: bool
    redact_pii: bool
    redact_paths: bool
    enable_high_entropy: bool
    custom_regex: tuple[str, ...]

    def enabled_categories(self) -> list[RedactionCategory]:
        flags = {
            RedactionCategory.SECRETS: self.redact_secrets,
            RedactionCategory.PII: self.redact_pii,
            RedactionCategory.PATHS: self.redact_paths,
            RedactionCategory.HIGH_ENTROPY: self.enable_high_entropy,
            RedactionCategory.CUSTOM: bool(self.custom_regex),
        }
        return [cat for cat in RedactionCategory if flags[cat]]


@dataclass(frozen=True, slots=True)
class Profile:
    """A named set of field paths to keep."""
    id: str
    name: str
    kept_fields: tuple[str, ...]
    is_builtin: bool = False
    description: str = ""
    redaction_config: RedactionConfig | None = None

    @property
    def keeps_everything(self) -> bool:
        return "*" in self.kept_fields


@dataclass(frozen=True, slots=True)
class ContributorMeta:
    """Opaque contributor metadata, passed through untouched."""
    contributor_id: str
    license: str
    ai_preference: str
    rights_statement: str
    rights_confirmed: bool
    reviewed_confirmed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "contributor_id": self.contributor_id,
            "license": self.license,
            "ai_preference": self.ai_preference,
            "rights_statement": self.rights_statement,
            "rights_confirmed": self.rights_confirmed,
            "reviewed_confirmed": self.reviewed_confirmed,
        }


@dataclass(frozen=True, slots=True)
class RawSession:
    """One session as handed over by the caller.

    ``data`` is either the parsed document or its JSON text (str/bytes).
    """
    session_id: str
    source: str                       # agent name: "claude", "codex", ...
    data: Any
    mtime_utc: str | None = None
    source_path_hint: str | None = None


@dataclass(frozen=True, slots=True)
class PreparationConfig:
    redaction: RedactionConfig
    profile: Profile
    contributor: ContributorMeta | None = None
    placeholder_scope: PlaceholderScope = PlaceholderScope.SESSION
    residue_block_threshold: int = 0   # blocked when warnings exceed this
    max_workers: int = 1


@dataclass(slots=True)
class PreparedSession:
    session_id: str
    source: str
    preview_original: str
    preview_redacted: str
    raw_json_original: str
    raw_json: str
    approx_chars: int
    raw_sha256: str                   # of the redacted content
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "source": self.source,
            "preview_original": self.preview_original,
            "preview_redacted": self.preview_redacted,
            "score": self.score,
            "approx_chars": self.approx_chars,
            "raw_sha256": self.raw_sha256,
            "raw_json_original": self.raw_json_original,
            "raw_json": self.raw_json,
        }


@dataclass(slots=True)
class RedactionReport:
    total_redactions: int = 0
    counts_by_category: dict[str, int] = field(default_factory=dict)
    enabled_categories: list[str] = field(default_factory=list)
    residue_warnings: list[str] = field(default_factory=list)
    blocked: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_redactions": self.total_redactions,
            "counts_by_category": dict(self.counts_by_category),
            "enabled_categories": list(self.enabled_categories),
            "residue_warnings": list(self.residue_warnings),
            "blocked": self.blocked,
        }


@dataclass(frozen=True, slots=True)
class RedactionInfo:
    placeholder: str
    category: str
    rule_name: str
    original_length: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "placeholder": self.placeholder,
            "category": self.category,
            "ruleName": self.rule_name,
            "originalLength": self.original_length,
        }


@dataclass(frozen=True, slots=True)
class SessionError:
    session_id: str
    stage: str          # "fetch" | "parse" | "strip" | "redact" | "residue"
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"session_id": self.session_id, "stage": self.stage, "message": self.message}


@dataclass(slots=True)
class PreparationStats:
    total_sessions: int = 0
    total_redactions: int = 0
    total_fields_stripped: int = 0
    average_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalSessions": self.total_sessions,
            "totalRedactions": self.total_redactions,
            "totalFieldsStripped": self.total_fields_stripped,
            "averageScore": self.average_score,
        }


@dataclass(slots=True)
class PreparationResult:
    sessions: list[PreparedSession] = field(default_factory=list)
    redaction_report: RedactionReport = field(default_factory=RedactionReport)
    stripped_fields: list[str] = field(default_factory=list)
    fields_present: list[str] = field(default_factory=list)
    fields_by_source: dict[str, list[str]] = field(default_factory=dict)
    redaction_info_map: dict[str, RedactionInfo] = field(default_factory=dict)
    stats: PreparationStats = field(default_factory=PreparationStats)
    errors: list[SessionError] = field(default_factory=list)
    contributor: ContributorMeta | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wire format consumed by the dashboard."""
        return {
            "sessions": [s.to_dict() for s in self.sessions],
            "redaction_report": self.redaction_report.to_dict(),
            "stripped_fields": list(self.stripped_fields),
            "fields_present": list(self.fields_present),
            "fields_by_source": {k: list(v) for k, v in self.fields_by_source.items()},
            "redaction_info_map": {k: v.to_dict() for k, v in self.redaction_info_map.items()},
            "stats": self.stats.to_dict(),
            "errors": [e.to_dict() for e in self.errors],
            "contributor": self.contributor.to_dict() if self.contributor else None,
        }
