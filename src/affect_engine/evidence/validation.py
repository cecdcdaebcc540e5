"""Evidence span validation and offset auto-repair.

Each span must be an exact substring of the journal text at its declared
offsets.  When the offsets are wrong but the quote does occur in the text,
the returned copy points at the first occurrence instead.  Only quotes that
are absent from the text count as errors.
"""

from __future__ import annotations

from typing import Iterator

from affect_engine.evidence.models import EvidenceSpan, ExtractionEvidence, ValidationResult

_QUOTE_PREVIEW = 60


def iter_span_fields(evidence: ExtractionEvidence) -> Iterator[tuple[str, list[EvidenceSpan]]]:
    """Yield ``(label, spans)`` for every evidence field, in a fixed order."""
    yield "mood_score", evidence.mood_score
    yield "anxiety_score", evidence.anxiety_score
    yield "crisis_detected", evidence.crisis_detected
    for key, spans in evidence.phq9_indicators.items():
        yield f"phq9.{key}", spans
    for key, spans in evidence.gad7_indicators.items():
        yield f"gad7.{key}", spans


def _preview(quote: str) -> str:
    if len(quote) > _QUOTE_PREVIEW:
        return quote[:_QUOTE_PREVIEW] + "…"
    return quote


def validate_evidence_spans(evidence: ExtractionEvidence, text: str) -> ValidationResult:
    """Check every span of ``evidence`` against ``text``.

    The input is never mutated; ``repaired`` is always a deep copy.
    """
    repaired = evidence.model_copy(deep=True)
    errors: list[str] = []
    invalid: list[str] = []

    for label, spans in iter_span_fields(repaired):
        for i, span in enumerate(spans):
            if text[span.start_char : span.end_char] == span.quote:
                continue
            idx = text.find(span.quote)
            if idx != -1:
                span.start_char = idx
                span.end_char = idx + len(span.quote)
                continue
            errors.append(f'[{label}][{i}] quote not found in text: "{_preview(span.quote)}"')
            if label not in invalid:
                invalid.append(label)

    return ValidationResult(
        valid=not errors,
        repaired=repaired,
        errors=errors,
        invalid_fields=invalid,
    )
