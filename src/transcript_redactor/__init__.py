"""Transcript Redactor — redaction and field reduction for agent session transcripts."""

from .errors import (
    InvalidPatternError,
    PatternLibraryError,
    PlaceholderCollisionError,
    RedactionError,
    SessionInputError,
    UnknownProfileError,
)
from .patterns import PatternLibrary, PatternRule, validate_pattern
from .placeholders import PlaceholderAssigner
from .redactor import DetectorSettings, Redactor
from .fields import discover_fields, strip
from .profiles import BUILTIN_PROFILES, resolve_profile
from .residue import check_residue, is_blocked
from .prepare import Preparer, prepare_sessions
from .config import create_preparer, load_config, load_from_yaml, parse_redaction_config
from .types import (
    ContributorMeta,
    EntityMatch,
    PlaceholderScope,
    PreparationConfig,
    PreparationResult,
    Profile,
    RawSession,
    RedactionCategory,
    RedactionConfig,
)

__all__ = [
    "RedactionError", "PatternLibraryError", "InvalidPatternError",
    "UnknownProfileError", "PlaceholderCollisionError", "SessionInputError",
    "PatternLibrary", "PatternRule", "validate_pattern",
    "PlaceholderAssigner",
    "Redactor", "DetectorSettings",
    "discover_fields", "strip",
    "BUILTIN_PROFILES", "resolve_profile",
    "check_residue", "is_blocked",
    "Preparer", "prepare_sessions",
    "create_preparer", "load_config", "load_from_yaml", "parse_redaction_config",
    "ContributorMeta", "EntityMatch", "PlaceholderScope", "PreparationConfig",
    "PreparationResult", "Profile", "RawSession", "RedactionCategory", "RedactionConfig",
]
__version__ = "0.1.0"
