"""Builtin field profiles and profile resolution.

Order: most permissive → most restrictive.  The three builtin ids always
resolve, whether or not the caller has a profile store.
"""

from __future__ import annotations
from typing import Iterable, Sequence

from .errors import UnknownProfileError
from .types import Profile

FULL_CONTENT_ID = "full-content"
MODERATE_ID = "moderate"
METADATA_ONLY_ID = "metadata-only"
DEFAULT_PROFILE_ID = MODERATE_ID
CUSTOM_PROFILE_ID = "custom"

FULL_CONTENT = Profile(
    id=FULL_CONTENT_ID,
    name="All (High Risk)",
    kept_fields=("*",),
    is_builtin=True,
    description=(
        "Includes all fields including file contents the agent read. "
        "Only use if you've audited the transcript for sensitive data."
    ),
)

MODERATE = Profile(
    id=MODERATE_ID,
    name="Moderate",
    kept_fields=(
        "session",
        "session.session_id",
        "session.start_time",
        "session.end_time",
        "session.permission_mode",
        "session.source",
        "session.tool_count",
        "session.tools_used",
        "session.total_input_tokens",
        "session.total_output_tokens",
        "session.estimated_cost_usd",
        "tool_usages",
        "tool_usages[].tool_use_id",
        "tool_usages[].tool_name",
        "tool_usages[].timestamp",
        "tool_usages[].session_id",
        "tool_usages[].success",
        "tool_usages[].duration_ms",
        "messages",
        "messages[].uuid",
        "messages[].role",
        "messages[].timestamp",
        "messages[].parentUuid",
        "messages[].message.role",
        "messages[].message.model",
        "messages[].message.usage",
        "messages[].message.stop_reason",
        "type",
        "total_input_tokens",
        "total_output_tokens",
    ),
    is_builtin=True,
    description="General audience default. Keeps tool usage patterns and token metrics.",
)

METADATA_ONLY = Profile(
    id=METADATA_ONLY_ID,
    name="Minimal (Safest)",
    kept_fields=(
        "session",
        "session.session_id",
        "session.start_time",
        "session.end_time",
        "session.tool_count",
        "session.tools_used",
        "session.total_input_tokens",
        "session.total_output_tokens",
        "session.estimated_cost_usd",
        "total_input_tokens",
        "total_output_tokens",
    ),
    is_builtin=True,
    description=(
        "Only session-level statistics. No tool details, no messages, "
        "no file contents. Recommended for first-time contributors."
    ),
)

BUILTIN_PROFILES: tuple[Profile, ...] = (FULL_CONTENT, MODERATE, METADATA_ONLY)
_BUILTIN_BY_ID = {p.id: p for p in BUILTIN_PROFILES}


def is_builtin_profile(profile_id: str) -> bool:
    return profile_id in _BUILTIN_BY_ID


def resolve_profile(profile_id: str, user_profiles: Iterable[Profile] = ()) -> Profile:
    """Find a profile by id.  Builtins win over user profiles with the same id."""
    if profile_id in _BUILTIN_BY_ID:
        return _BUILTIN_BY_ID[profile_id]
    for profile in user_profiles:
        if profile.id == profile_id:
            return profile
    raise UnknownProfileError(profile_id)


def profile_from_fields(selected_fields: Sequence[str]) -> Profile:
    """Ad-hoc profile for an explicit field selection."""
    return Profile(
        id=CUSTOM_PROFILE_ID,
        name="Custom selection",
        kept_fields=tuple(selected_fields),
    )


def list_profiles(user_profiles: Iterable[Profile] = ()) -> list[Profile]:
    """Builtins first, then user profiles (shadowed ids dropped)."""
    out = list(BUILTIN_PROFILES)
    out.extend(p for p in user_profiles if p.id not in _BUILTIN_BY_ID)
    return out
