"""YAML/dict config loader for transcript-redactor.

Supports loading from a YAML file or a plain dict (for embedding in a
larger config), plus parsing of the per-request dicts the dashboard
sends.

Example YAML:

    transcript_redactor:
      use_presidio: false
      language: en
      score_threshold: 0.35
      residue_block_threshold: 0
      placeholder_scope: session     # "session" or "batch"
      max_workers: 4
      allow_list:
        - noreply@example.com
      redaction:
        redact_secrets: true
        redact_pii: true
        redact_paths: true
        enable_high_entropy: true
        custom_regex: []
      profiles:
        - id: team-share
          name: Team share
          kept_fields: [session, messages[].role]
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from .patterns import PatternLibrary
from .prepare import Preparer
from .profiles import DEFAULT_PROFILE_ID, profile_from_fields, resolve_profile
from .redactor import DetectorSettings, Redactor
from .types import (
    ContributorMeta,
    PlaceholderScope,
    PreparationConfig,
    Profile,
    RawSession,
    RedactionConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTRIBUTOR = ContributorMeta(
    contributor_id="anonymous",
    license="CC-BY-4.0",
    ai_preference="train-genai=deny",
    rights_statement="I have the right to share this data.",
    rights_confirmed=False,
    reviewed_confirmed=False,
)


def _pick(data: Mapping[str, Any], snake: str, camel: str, default: Any) -> Any:
    """Read ``snake`` or ``camel`` from ``data``; None counts as missing."""
    for key in (snake, camel):
        value = data.get(key)
        if value is not None:
            return value
    return default


def parse_redaction_config(data: Mapping[str, Any] | None) -> RedactionConfig:
    """Fill defaults for a redaction dict (camelCase or snake_case).

    Every flag defaults to on; ``custom_regex`` defaults to empty.
    """
    data = data or {}
    custom = _pick(data, "custom_regex", "customRegex", [])
    if isinstance(custom, str):
        custom = [custom]
    return RedactionConfig(
        redact_secrets=bool(_pick(data, "redact_secrets", "redactSecrets", True)),
        redact_pii=bool(_pick(data, "redact_pii", "redactPii", True)),
        redact_paths=bool(_pick(data, "redact_paths", "redactPaths", True)),
        enable_high_entropy=bool(_pick(data, "enable_high_entropy", "enableHighEntropy", True)),
        custom_regex=tuple(str(p) for p in custom),
    )


def parse_profile_record(data: Mapping[str, Any]) -> Profile:
    """Build a user profile from a stored ``{id, name, kept_fields}`` record."""
    if "id" not in data:
        raise ValueError("profile record has no 'id'")
    kept = _pick(data, "kept_fields", "keptFields", [])
    redaction = _pick(data, "redaction_config", "redactionConfig", None)
    return Profile(
        id=str(data["id"]),
        name=str(data.get("name", data["id"])),
        kept_fields=tuple(kept),
        is_builtin=False,
        description=str(data.get("description", "")),
        redaction_config=parse_redaction_config(redaction) if redaction is not None else None,
    )


def parse_contributor(data: Mapping[str, Any] | None) -> ContributorMeta:
    data = data or {}
    d = DEFAULT_CONTRIBUTOR
    return ContributorMeta(
        contributor_id=str(_pick(data, "contributor_id", "contributorId", d.contributor_id)),
        license=str(data.get("license") or d.license),
        ai_preference=str(_pick(data, "ai_preference", "aiPreference", d.ai_preference)),
        rights_statement=str(_pick(data, "rights_statement", "rightsStatement", d.rights_statement)),
        rights_confirmed=bool(_pick(data, "rights_confirmed", "rightsConfirmed", d.rights_confirmed)),
        reviewed_confirmed=bool(_pick(data, "reviewed_confirmed", "reviewedConfirmed", d.reviewed_confirmed)),
    )


def load_config(data: Mapping[str, Any] | None) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    data = data or {}
    # Support nested under "transcript_redactor" key or flat
    if "transcript_redactor" in data:
        data = data["transcript_redactor"] or {}

    scope = str(data.get("placeholder_scope", PlaceholderScope.SESSION.value)).lower()
    try:
        placeholder_scope = PlaceholderScope(scope)
    except ValueError:
        raise ValueError(f"placeholder_scope must be 'session' or 'batch', got {scope!r}") from None

    cfg = {
        "use_presidio": bool(data.get("use_presidio", False)),
        "language": data.get("language", "en"),
        "score_threshold": float(data.get("score_threshold", 0.35)),
        "entities": data.get("entities"),
        "allow_list": set(data.get("allow_list") or []),
        "residue_block_threshold": int(data.get("residue_block_threshold", 0)),
        "placeholder_scope": placeholder_scope,
        "max_workers": max(1, int(data.get("max_workers", 1))),
        "redaction": parse_redaction_config(data.get("redaction")),
        "profiles": [parse_profile_record(p) for p in data.get("profiles") or []],
    }
    logger.info(
        "Loaded config: presidio=%s scope=%s workers=%d user_profiles=%d",
        cfg["use_presidio"], placeholder_scope.value, cfg["max_workers"], len(cfg["profiles"]),
    )
    return cfg


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    import yaml
    with open(path) as f:
        return load_config(yaml.safe_load(f))


def build_detector_settings(cfg: Mapping[str, Any]) -> DetectorSettings:
    return DetectorSettings(
        use_presidio=cfg["use_presidio"],
        language=cfg["language"],
        score_threshold=cfg["score_threshold"],
        presidio_entities=cfg.get("entities"),
        allow_list=set(cfg.get("allow_list") or ()),
    )


def create_preparer(
    config: Mapping[str, Any] | None = None,
    library: PatternLibrary | None = None,
) -> Preparer:
    """Create a fully configured preparer from a config dict."""
    # already normalized by load_config?
    normalized = config is not None and isinstance(config.get("redaction"), RedactionConfig)
    cfg = config if normalized else load_config(config)
    return Preparer(Redactor(library, build_detector_settings(cfg)))


def parse_prepare_request(
    body: Mapping[str, Any],
    user_profiles: Iterable[Profile] = (),
    defaults: Mapping[str, Any] | None = None,
) -> tuple[list[str], PreparationConfig]:
    """Turn a prepare request dict into (correlation ids, config).

    An explicit ``selected_fields`` list wins over ``profile_id``; with
    neither the ``moderate`` profile applies.  Raises UnknownProfileError
    for an id that is neither builtin nor in ``user_profiles``.
    """
    defaults = defaults or {}
    ids = [str(i) for i in _pick(body, "correlation_ids", "correlationIds", [])]

    selected = _pick(body, "selected_fields", "selectedFields", None)
    if selected:
        profile = profile_from_fields(selected)
    else:
        profile_id = _pick(body, "profile_id", "profileId", DEFAULT_PROFILE_ID)
        profile = resolve_profile(profile_id, user_profiles)
        logger.info("Using profile %r", profile.id)

    redaction_body = body.get("redaction")
    if redaction_body is not None:
        redaction = parse_redaction_config(redaction_body)
    elif profile.redaction_config is not None:
        redaction = profile.redaction_config
    else:
        redaction = defaults.get("redaction") or parse_redaction_config({})

    config = PreparationConfig(
        redaction=redaction,
        profile=profile,
        contributor=parse_contributor(body.get("contributor")),
        placeholder_scope=defaults.get("placeholder_scope", PlaceholderScope.SESSION),
        residue_block_threshold=defaults.get("residue_block_threshold", 0),
        max_workers=defaults.get("max_workers", 1),
    )
    return ids, config


def parse_raw_session(data: Mapping[str, Any]) -> RawSession:
    """A session record as passed inline (``{session_id, source, data}``)."""
    session_id = _pick(data, "session_id", "sessionId", None)
    if session_id is None:
        raise ValueError("session record has no 'session_id'")
    return RawSession(
        session_id=str(session_id),
        source=str(data.get("source", "unknown")),
        data=data.get("data"),
        mtime_utc=_pick(data, "mtime_utc", "mtimeUtc", None),
        source_path_hint=_pick(data, "source_path_hint", "sourcePathHint", None),
    )


def parse_raw_sessions(records: Sequence[Mapping[str, Any]]) -> list[RawSession]:
    return [parse_raw_session(r) for r in records]
