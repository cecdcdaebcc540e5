"""Pydantic models for extraction evidence spans."""

from __future__ import annotations

from pydantic import BaseModel, Field


class EvidenceSpan(BaseModel):
    """A verbatim quote and its character offsets in the journal text."""

    quote: str
    start_char: int = Field(ge=0)
    end_char: int = Field(ge=0)


class ExtractionEvidence(BaseModel):
    """Evidence spans backing each extracted score.

    Indicator maps are keyed by PHQ-9 / GAD-7 item name.
    """

    mood_score: list[EvidenceSpan] = Field(default_factory=list)
    anxiety_score: list[EvidenceSpan] = Field(default_factory=list)
    crisis_detected: list[EvidenceSpan] = Field(default_factory=list)
    phq9_indicators: dict[str, list[EvidenceSpan]] = Field(default_factory=dict)
    gad7_indicators: dict[str, list[EvidenceSpan]] = Field(default_factory=dict)


class ValidationResult(BaseModel):
    valid: bool
    repaired: ExtractionEvidence = Field(
        description="Deep copy of the input with offsets repaired where possible."
    )
    errors: list[str] = Field(default_factory=list)
    invalid_fields: list[str] = Field(
        default_factory=list,
        description="Labels (e.g. 'mood_score', 'phq9.sleep') with unlocatable quotes.",
    )


class RepairOutcome(BaseModel):
    """Final state after validation, optional re-prompting and field drops."""

    evidence: ExtractionEvidence
    valid: bool
    reprompts_used: int = 0
    dropped_fields: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
