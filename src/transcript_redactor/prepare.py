"""Preparation orchestrator — the per-session pipeline and batch report.

Each session runs linearly, no retries:

    fetch → parse → strip fields → detect & redact → residue check → assemble

A failure in one session becomes a SessionError and never aborts the
batch.  With the default per-session placeholder scope sessions share no
mutable state and can fan out to a thread pool; results always come back
in input order.

Usage:
    preparer = Preparer()
    result = preparer.prepare(raw_sessions, config)
    if result.redaction_report.blocked:
        ...  # surface residue_warnings before allowing export
"""

from __future__ import annotations
import hashlib
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from .errors import SessionInputError
from .fields import FieldStripResult, iter_keys, rename_fields, source_classifier, strip
from .patterns import custom_rules
from .placeholders import PlaceholderAssigner
from .redactor import Redactor
from .residue import RESIDUE_CATEGORIES, check_residue, is_blocked
from .scoring import score_text
from .types import (
    PlaceholderScope,
    PreparationConfig,
    PreparationResult,
    PreparationStats,
    PreparedSession,
    RawSession,
    RedactionEvent,
    RedactionInfo,
    RedactionReport,
    SessionError,
)

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 500

Fetcher = Callable[[str], "RawSession | None"]


def _compact(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def _pretty(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2)


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class SessionOutcome:
    """Everything one session contributes to the batch."""
    session_id: str
    prepared: PreparedSession | None = None
    events: list[RedactionEvent] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    fields: FieldStripResult | None = None
    error: SessionError | None = None


def parse_session_data(raw: RawSession) -> Any:
    """Parse the session payload; raises SessionInputError if unusable."""
    data = raw.data
    if isinstance(data, (bytes, bytearray)):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SessionInputError(raw.session_id, "parse", f"not UTF-8: {e}") from e
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise SessionInputError(raw.session_id, "parse", f"malformed JSON: {e}") from e
        except RecursionError as e:
            raise SessionInputError(raw.session_id, "parse", "document nested too deeply") from e
    if not isinstance(data, (dict, list)):
        raise SessionInputError(
            raw.session_id, "parse", f"expected a JSON object or array, got {type(data).__name__}"
        )
    return data


class Preparer:
    """Runs the pipeline over sessions and aggregates the batch report."""

    def __init__(self, redactor: Redactor | None = None) -> None:
        self.redactor = redactor or Redactor()

    # ------------------------------------------------------------------
    # Single session
    # ------------------------------------------------------------------

    def prepare_session(
        self,
        raw: RawSession,
        config: PreparationConfig,
        assigner: PlaceholderAssigner | None = None,
    ) -> SessionOutcome:
        outcome = SessionOutcome(session_id=raw.session_id)
        assigner = assigner or PlaceholderAssigner()
        try:
            document = parse_session_data(raw)
            try:
                stripped = strip(document, config.profile, source_classifier(raw.source))
            except RecursionError as e:
                raise SessionInputError(raw.session_id, "strip", "document nested too deeply") from e
            try:
                redacted, events = self.redactor.redact_object(
                    stripped.document, config.redaction, assigner
                )
                # reported field paths carry keys, masked with the same placeholders
                renames = self.redactor.redact_keys(iter_keys(document), config.redaction, assigner)
            except RecursionError as e:
                raise SessionInputError(raw.session_id, "redact", "document nested too deeply") from e
        except SessionInputError as e:
            logger.warning("Skipping session %s at %s: %s", e.session_id, e.stage, e.message)
            outcome.error = SessionError(session_id=e.session_id, stage=e.stage, message=e.message)
            return outcome

        if renames:
            stripped = rename_fields(stripped, renames)

        redacted_compact = _compact(redacted)
        enabled = set(config.redaction.enabled_categories()) & RESIDUE_CATEGORIES
        warnings = check_residue(redacted_compact, enabled)

        preview_redacted = redacted_compact[:PREVIEW_CHARS]
        outcome.prepared = PreparedSession(
            session_id=raw.session_id,
            source=raw.source,
            preview_original=_compact(document)[:PREVIEW_CHARS],
            preview_redacted=preview_redacted,
            raw_json_original=_pretty(document),
            raw_json=_pretty(redacted),
            approx_chars=len(redacted_compact),
            raw_sha256=sha256_hex(redacted_compact),
            score=score_text(preview_redacted),
        )
        outcome.events = events
        outcome.warnings = warnings
        outcome.fields = stripped
        return outcome

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def prepare(
        self,
        raw_sessions: Iterable[RawSession],
        config: PreparationConfig,
    ) -> PreparationResult:
        """Prepare a batch.

        Raises InvalidPatternError before touching any session if a
        custom regex is bad.
        """
        raw_sessions = list(raw_sessions)
        custom_rules(config.redaction.custom_regex)

        if config.profile.keeps_everything:
            logger.warning(
                "Profile %r keeps every field, including file contents", config.profile.id
            )

        outcomes = self._run(raw_sessions, config)
        result = self._aggregate(outcomes, config)
        logger.info(
            "Prepared %d/%d sessions: %d redactions, %d errors%s",
            len(result.sessions),
            len(raw_sessions),
            result.redaction_report.total_redactions,
            len(result.errors),
            " (blocked)" if result.redaction_report.blocked else "",
        )
        return result

    def prepare_ids(
        self,
        correlation_ids: Sequence[str],
        fetch: Fetcher,
        config: PreparationConfig,
    ) -> PreparationResult:
        """Fetch sessions through ``fetch`` and prepare them.

        ``fetch`` is the caller's I/O; returning None or raising marks that
        session as failed at the ``fetch`` stage.
        """
        custom_rules(config.redaction.custom_regex)

        raws: list[RawSession] = []
        fetch_errors: list[SessionError] = []
        for cid in correlation_ids:
            try:
                raw = fetch(cid)
            except Exception as e:
                logger.warning("Could not fetch session %s: %s", cid, e)
                fetch_errors.append(SessionError(session_id=cid, stage="fetch", message=str(e)))
                continue
            if raw is None:
                fetch_errors.append(SessionError(session_id=cid, stage="fetch", message="session not found"))
                continue
            raws.append(raw)

        result = self.prepare(raws, config)
        result.errors = fetch_errors + result.errors
        return result

    def _run(self, raw_sessions: list[RawSession], config: PreparationConfig) -> list[SessionOutcome]:
        if config.placeholder_scope is PlaceholderScope.BATCH:
            shared = PlaceholderAssigner()
            return [self.prepare_session(raw, config, shared) for raw in raw_sessions]

        if config.max_workers > 1 and len(raw_sessions) > 1:
            with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
                return list(pool.map(lambda raw: self.prepare_session(raw, config), raw_sessions))

        return [self.prepare_session(raw, config) for raw in raw_sessions]

    def _aggregate(self, outcomes: list[SessionOutcome], config: PreparationConfig) -> PreparationResult:
        enabled = config.redaction.enabled_categories()
        counts = {cat.value: 0 for cat in enabled}
        warnings: list[str] = []
        info_map: dict[str, RedactionInfo] = {}
        stripped: set[str] = set()
        present: set[str] = set()
        by_source: dict[str, set[str]] = {}

        result = PreparationResult(contributor=config.contributor)
        for outcome in outcomes:
            if outcome.error is not None:
                result.errors.append(outcome.error)
                continue
            result.sessions.append(outcome.prepared)
            for event in outcome.events:
                counts[event.category.value] = counts.get(event.category.value, 0) + 1
                # per-session scope reuses placeholders; first session wins
                info_map.setdefault(event.placeholder, RedactionInfo(
                    placeholder=event.placeholder,
                    category=event.category.value,
                    rule_name=event.rule_name,
                    original_length=event.original_length,
                ))
            warnings.extend(f"[{outcome.session_id}] {w}" for w in outcome.warnings)
            stripped |= outcome.fields.stripped
            present |= outcome.fields.present
            for source, group in outcome.fields.by_source.items():
                by_source.setdefault(source, set()).update(group.present)

        total = sum(counts.values())
        blocked = is_blocked(warnings, config.residue_block_threshold)
        if blocked:
            logger.warning("Export blocked: %d residue warning(s)", len(warnings))

        result.redaction_report = RedactionReport(
            total_redactions=total,
            counts_by_category=counts,
            enabled_categories=[cat.value for cat in enabled],
            residue_warnings=warnings,
            blocked=blocked,
        )
        result.stripped_fields = sorted(stripped)
        result.fields_present = sorted(present)
        result.fields_by_source = {k: sorted(v) for k, v in sorted(by_source.items())}
        result.redaction_info_map = info_map
        scores = [s.score for s in result.sessions]
        result.stats = PreparationStats(
            total_sessions=len(result.sessions),
            total_redactions=total,
            total_fields_stripped=len(result.stripped_fields),
            average_score=round(sum(scores) / len(scores), 2) if scores else 0.0,
        )
        return result


def prepare_sessions(
    raw_sessions: Iterable[RawSession],
    config: PreparationConfig,
    redactor: Redactor | None = None,
) -> PreparationResult:
    """Convenience wrapper around ``Preparer(redactor).prepare``."""
    return Preparer(redactor).prepare(raw_sessions, config)
