"""Bounded repair policy for evidence that fails validation.

Validation itself never re-prompts.  This policy sits above it: it may ask
the extraction collaborator for fresh evidence a limited number of times,
then empties the spans of any field that still cannot be located.  Numeric
scores are never touched; a dropped field simply has no supporting quote.
"""

from __future__ import annotations

from typing import Awaitable, Callable

import structlog

from affect_engine.config import get_settings
from affect_engine.evidence.models import ExtractionEvidence, RepairOutcome, ValidationResult
from affect_engine.evidence.validation import validate_evidence_spans

logger = structlog.get_logger(__name__)

# Called with (current evidence, validation errors); returns new evidence.
RepromptFn = Callable[[ExtractionEvidence, list[str]], Awaitable[ExtractionEvidence]]


def drop_fields(evidence: ExtractionEvidence, labels: list[str]) -> ExtractionEvidence:
    """Return a copy of ``evidence`` with the spans of ``labels`` emptied."""
    out = evidence.model_copy(deep=True)
    for label in labels:
        if label.startswith("phq9."):
            out.phq9_indicators[label.removeprefix("phq9.")] = []
        elif label.startswith("gad7."):
            out.gad7_indicators[label.removeprefix("gad7.")] = []
        else:
            setattr(out, label, [])
    return out


class EvidenceRepairPolicy:
    """Validate, optionally re-prompt, then drop what is still unverifiable."""

    def __init__(self, max_reprompts: int | None = None) -> None:
        if max_reprompts is None:
            max_reprompts = get_settings().evidence_max_reprompts
        self.max_reprompts = max(0, max_reprompts)

    async def resolve(
        self,
        evidence: ExtractionEvidence,
        text: str,
        reprompt: RepromptFn | None = None,
    ) -> RepairOutcome:
        result: ValidationResult = validate_evidence_spans(evidence, text)
        used = 0

        while not result.valid and reprompt is not None and used < self.max_reprompts:
            used += 1
            try:
                fresh = await reprompt(result.repaired, list(result.errors))
            except Exception:
                logger.exception("evidence.reprompt_failed", attempt=used)
                break
            result = validate_evidence_spans(fresh, text)
            logger.info("evidence.reprompted", attempt=used, valid=result.valid)

        if result.valid:
            return RepairOutcome(evidence=result.repaired, valid=True, reprompts_used=used)

        logger.warning(
            "evidence.dropped_fields",
            fields=result.invalid_fields,
            errors=len(result.errors),
            reprompts_used=used,
        )
        return RepairOutcome(
            evidence=drop_fields(result.repaired, result.invalid_fields),
            valid=False,
            reprompts_used=used,
            dropped_fields=list(result.invalid_fields),
            errors=list(result.errors),
        )
