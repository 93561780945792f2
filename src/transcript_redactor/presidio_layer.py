"""Optional NER scanner backed by Presidio.

Finds names and locations in free-form transcript text, which no regex
catches reliably.  Results are ``pii`` matches and go through the same
overlap resolution as the rule library.  Presidio drags in spaCy, so
nothing here is imported until a Redactor runs with ``use_presidio``.
"""

from __future__ import annotations
import threading
from typing import TYPE_CHECKING, Sequence

from .types import EntityMatch, RedactionCategory

if TYPE_CHECKING:
    from presidio_analyzer import AnalyzerEngine, RecognizerResult

# Entities worth masking in agent transcripts.  Structured ones (email,
# phone, cards) belong to the rule library.
DEFAULT_ENTITIES: tuple[str, ...] = (
    "PERSON",
    "LOCATION",
    "NRP",           # nationality, religious, political group
    "MEDICAL_LICENSE",
)

# placed after every library rule in the overlap tie-break
NER_ORDER = 10_000

_engines: dict[str, AnalyzerEngine] = {}
_engines_lock = threading.Lock()


def get_engine(language: str = "en") -> AnalyzerEngine:
    """One analyzer per language, built on first request."""
    with _engines_lock:
        engine = _engines.get(language)
        if engine is None:
            from presidio_analyzer import AnalyzerEngine
            from presidio_analyzer.nlp_engine import NlpEngineProvider

            nlp = NlpEngineProvider(nlp_configuration={
                "nlp_engine_name": "spacy",
                "models": [{"lang_code": language, "model_name": f"{language}_core_web_sm"}],
            }).create_engine()
            engine = AnalyzerEngine(nlp_engine=nlp, supported_languages=[language])
            _engines[language] = engine
        return engine


def to_match(text: str, result: RecognizerResult) -> EntityMatch:
    return EntityMatch(
        category=RedactionCategory.PII,
        rule_name=f"presidio_{result.entity_type.lower()}",
        prefix=result.entity_type,
        start=result.start,
        end=result.end,
        text=text[result.start:result.end],
        order=NER_ORDER,
        source="presidio",
    )


def scan_presidio(
    text: str,
    *,
    language: str = "en",
    entities: Sequence[str] | None = None,
    score_threshold: float = 0.35,
) -> list[EntityMatch]:
    """``pii`` matches Presidio reports above ``score_threshold``.

    ``entities`` defaults to DEFAULT_ENTITIES.
    """
    if not text:
        return []
    results = get_engine(language).analyze(
        text=text,
        language=language,
        entities=list(entities or DEFAULT_ENTITIES),
        score_threshold=score_threshold,
    )
    # analyzer output order varies between runs
    return sorted(
        (to_match(text, r) for r in results),
        key=lambda m: (m.start, m.end, m.rule_name),
    )
