"""CLI interface for transcript-redactor — designed to be called by the dashboard daemon.

Usage:
    # Prepare sessions for contribution (stdin: request JSON, stdout: result JSON)
    echo '{"sessions": [{"session_id": "s1", "source": "claude", "data": {...}}],
           "profile_id": "moderate"}' | transcript-redactor prepare

    # Redact a string or JSON value
    echo '{"content": "token=sk-ABCDEF1234"}' | transcript-redactor sanitize

    # Residue check already redacted output
    echo '{"content": ["..."]}' | transcript-redactor check

    # Pattern tooling
    transcript-redactor patterns
    echo 'mail me at a@b.co' | transcript-redactor test-patterns --names email
    transcript-redactor validate-pattern '\\b10\\.\\d+\\.\\d+\\.\\d+\\b'

    # Profiles (builtin + configured)
    transcript-redactor profiles

The config file is read from --config or $TRANSCRIPT_REDACTOR_CONFIG.
"""

from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from typing import Any

from .config import (
    create_preparer,
    load_config,
    load_from_yaml,
    parse_prepare_request,
    parse_raw_sessions,
    parse_redaction_config,
)
from .errors import RedactionError
from .patterns import describe_patterns, run_pattern_tests, validate_pattern
from .placeholders import PlaceholderAssigner
from .profiles import list_profiles
from .residue import check_residue_many

logger = logging.getLogger(__name__)

CONFIG_ENV = "TRANSCRIPT_REDACTOR_CONFIG"


def _load(args: argparse.Namespace) -> dict[str, Any]:
    path = args.config or os.environ.get(CONFIG_ENV)
    cfg = load_from_yaml(path) if path else load_config({})
    if args.presidio:
        cfg["use_presidio"] = True
    if args.workers:
        cfg["max_workers"] = args.workers
    return cfg


def _read_json() -> Any:
    return json.loads(sys.stdin.read())


def _write_json(obj: Any) -> None:
    json.dump(obj, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_prepare(args: argparse.Namespace) -> int:
    """Prepare inline sessions for contribution."""
    cfg = _load(args)
    body = _read_json()
    _, config = parse_prepare_request(body, cfg["profiles"], defaults=cfg)
    sessions = parse_raw_sessions(body.get("sessions") or [])

    result = create_preparer(cfg).prepare(sessions, config)
    _write_json(result.to_dict())
    return 2 if result.redaction_report.blocked else 0


def cmd_sanitize(args: argparse.Namespace) -> int:
    """Redact a string or JSON value with the builtin rules."""
    cfg = _load(args)
    body = _read_json()
    content = body.get("content", "")
    options = body.get("options")
    redaction = parse_redaction_config(options) if options is not None else cfg["redaction"]

    redactor = create_preparer(cfg).redactor
    assigner = PlaceholderAssigner()
    if isinstance(content, str):
        result = redactor.detect(content, redaction, assigner)
        sanitized, events = result.text, result.events
        original_length, sanitized_length = len(content), len(sanitized)
    else:
        sanitized, events = redactor.redact_object(content, redaction, assigner)
        original_length = len(json.dumps(content, ensure_ascii=False))
        sanitized_length = len(json.dumps(sanitized, ensure_ascii=False))

    counts = {cat.value: 0 for cat in redaction.enabled_categories()}
    for event in events:
        counts[event.category.value] = counts.get(event.category.value, 0) + 1
    _write_json({
        "sanitized": sanitized,
        "original_length": original_length,
        "sanitized_length": sanitized_length,
        "redaction_count": len(events),
        "categories": counts,
    })
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Residue check on redacted output."""
    cfg = _load(args)
    content = _read_json().get("content", [])
    texts = [content] if isinstance(content, str) else list(content)
    result = check_residue_many(texts, threshold=cfg["residue_block_threshold"])
    _write_json({
        "clean": result.clean,
        "blocked": result.blocked,
        "warnings": result.warnings,
    })
    return 2 if result.blocked else 0


def cmd_patterns(args: argparse.Namespace) -> int:
    """List builtin rules."""
    _write_json(describe_patterns(create_preparer(_load(args)).redactor.library))
    return 0


def cmd_test_patterns(args: argparse.Namespace) -> int:
    """Run rules against sample text on stdin."""
    library = create_preparer(_load(args)).redactor.library
    names = args.names.split(",") if args.names else None
    _write_json(run_pattern_tests(library, sys.stdin.read(), names))
    return 0


def cmd_validate_pattern(args: argparse.Namespace) -> int:
    """Validate a custom regex."""
    result = validate_pattern(args.pattern)
    _write_json(result.to_dict())
    return 0 if result.valid else 1


def cmd_profiles(args: argparse.Namespace) -> int:
    """List builtin and configured profiles."""
    cfg = _load(args)
    _write_json([
        {
            "id": p.id,
            "name": p.name,
            "kept_fields": list(p.kept_fields),
            "is_builtin": p.is_builtin,
            "description": p.description,
        }
        for p in list_profiles(cfg["profiles"])
    ])
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transcript-redactor",
        description="Redact and reduce agent transcripts before contribution",
    )
    parser.add_argument("--config", default=None, help=f"YAML config (default: ${CONFIG_ENV})")
    parser.add_argument("--presidio", action="store_true", help="Enable the Presidio NER layer")
    parser.add_argument("--workers", type=int, default=0, help="Thread pool size for prepare")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("prepare", help="Prepare sessions (JSON stdin)")
    sub.add_parser("sanitize", help="Redact a string or JSON value (JSON stdin)")
    sub.add_parser("check", help="Residue check redacted output (JSON stdin)")
    sub.add_parser("patterns", help="List builtin rules")
    p = sub.add_parser("test-patterns", help="Run rules against sample text (stdin)")
    p.add_argument("--names", default="", help="Comma-separated rule names")
    p = sub.add_parser("validate-pattern", help="Validate a custom regex")
    p.add_argument("pattern")
    sub.add_parser("profiles", help="List profiles")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    cmds = {
        "prepare": cmd_prepare,
        "sanitize": cmd_sanitize,
        "check": cmd_check,
        "patterns": cmd_patterns,
        "test-patterns": cmd_test_patterns,
        "validate-pattern": cmd_validate_pattern,
        "profiles": cmd_profiles,
    }
    try:
        return cmds[args.command](args)
    except (RedactionError, ValueError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
