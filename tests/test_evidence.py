"""Tests for evidence span validation and the re-prompt repair policy."""

from __future__ import annotations

import pytest

from affect_engine.evidence.models import EvidenceSpan, ExtractionEvidence
from affect_engine.evidence.repair import EvidenceRepairPolicy, drop_fields
from affect_engine.evidence.validation import validate_evidence_spans

TEXT = "Slept badly again. Work was overwhelming but dinner with Sam helped a lot."


def _span(quote: str, start: int | None = None) -> EvidenceSpan:
    if start is None:
        start = TEXT.index(quote)
    return EvidenceSpan(quote=quote, start_char=start, end_char=start + len(quote))


# ── Validation ───────────────────────────────────────────────


class TestValidateEvidenceSpans:
    def test_all_valid(self):
        ev = ExtractionEvidence(
            mood_score=[_span("dinner with Sam helped")],
            anxiety_score=[_span("Work was overwhelming")],
            phq9_indicators={"sleep": [_span("Slept badly")]},
        )
        result = validate_evidence_spans(ev, TEXT)
        assert result.valid
        assert result.errors == []
        assert result.invalid_fields == []
        assert result.repaired == ev

    def test_wrong_offsets_repaired_without_error(self):
        ev = ExtractionEvidence(mood_score=[_span("helped a lot", start=0)])
        result = validate_evidence_spans(ev, TEXT)
        assert result.valid
        fixed = result.repaired.mood_score[0]
        assert TEXT[fixed.start_char : fixed.end_char] == "helped a lot"
        # input untouched
        assert ev.mood_score[0].start_char == 0

    def test_repair_uses_first_occurrence(self):
        text = "fine, fine, fine"
        ev = ExtractionEvidence(mood_score=[EvidenceSpan(quote="fine", start_char=3, end_char=7)])
        fixed = validate_evidence_spans(ev, text).repaired.mood_score[0]
        assert (fixed.start_char, fixed.end_char) == (0, 4)

    def test_missing_quote_is_error(self):
        ev = ExtractionEvidence(
            mood_score=[_span("Slept badly")],
            crisis_detected=[EvidenceSpan(quote="I want to disappear", start_char=0, end_char=19)],
            gad7_indicators={"worry": [EvidenceSpan(quote="nope", start_char=1, end_char=5)]},
        )
        result = validate_evidence_spans(ev, TEXT)
        assert not result.valid
        assert result.errors == [
            '[crisis_detected][0] quote not found in text: "I want to disappear"',
            '[gad7.worry][0] quote not found in text: "nope"',
        ]
        assert result.invalid_fields == ["crisis_detected", "gad7.worry"]
        assert result.repaired is not None

    def test_long_quote_preview_truncated(self):
        quote = "z" * 80
        ev = ExtractionEvidence(anxiety_score=[EvidenceSpan(quote=quote, start_char=0, end_char=80)])
        error = validate_evidence_spans(ev, TEXT).errors[0]
        assert error == f'[anxiety_score][0] quote not found in text: "{"z" * 60}…"'

    def test_index_in_label_counts_within_field(self):
        ev = ExtractionEvidence(mood_score=[_span("Slept badly"), EvidenceSpan(quote="xyz", start_char=0, end_char=3)])
        result = validate_evidence_spans(ev, TEXT)
        assert result.errors[0].startswith("[mood_score][1]")
        assert result.invalid_fields == ["mood_score"]

    def test_repaired_is_deep_copy(self):
        ev = ExtractionEvidence(phq9_indicators={"sleep": [_span("Slept badly")]})
        result = validate_evidence_spans(ev, TEXT)
        result.repaired.phq9_indicators["sleep"].clear()
        assert len(ev.phq9_indicators["sleep"]) == 1

    def test_empty_evidence_is_valid(self):
        assert validate_evidence_spans(ExtractionEvidence(), TEXT).valid


# ── Repair policy ────────────────────────────────────────────


class TestDropFields:
    def test_drops_top_level_and_indicator_fields(self):
        ev = ExtractionEvidence(
            mood_score=[_span("Slept badly")],
            anxiety_score=[_span("Work was overwhelming")],
            phq9_indicators={"sleep": [_span("Slept badly")], "mood": [_span("helped a lot")]},
        )
        out = drop_fields(ev, ["mood_score", "phq9.sleep"])
        assert out.mood_score == []
        assert out.phq9_indicators["sleep"] == []
        assert len(out.anxiety_score) == 1
        assert len(out.phq9_indicators["mood"]) == 1
        assert len(ev.mood_score) == 1


class TestEvidenceRepairPolicy:
    def _bad(self) -> ExtractionEvidence:
        return ExtractionEvidence(
            mood_score=[_span("helped a lot")],
            anxiety_score=[EvidenceSpan(quote="panicking", start_char=0, end_char=9)],
        )

    @pytest.mark.asyncio
    async def test_valid_needs_no_reprompt(self):
        calls = []

        async def reprompt(evidence, errors):
            calls.append(errors)
            return evidence

        outcome = await EvidenceRepairPolicy(max_reprompts=1).resolve(
            ExtractionEvidence(mood_score=[_span("helped a lot", start=3)]), TEXT, reprompt
        )
        assert outcome.valid
        assert outcome.reprompts_used == 0
        assert calls == []

    @pytest.mark.asyncio
    async def test_successful_reprompt(self):
        async def reprompt(evidence, errors):
            assert errors and "anxiety_score" in errors[0]
            return evidence.model_copy(update={"anxiety_score": [_span("Work was overwhelming")]})

        outcome = await EvidenceRepairPolicy(max_reprompts=1).resolve(self._bad(), TEXT, reprompt)
        assert outcome.valid
        assert outcome.reprompts_used == 1
        assert outcome.dropped_fields == []
        assert outcome.evidence.anxiety_score[0].quote == "Work was overwhelming"

    @pytest.mark.asyncio
    async def test_drops_after_bounded_attempts(self):
        calls = 0

        async def reprompt(evidence, errors):
            nonlocal calls
            calls += 1
            return evidence

        outcome = await EvidenceRepairPolicy(max_reprompts=1).resolve(self._bad(), TEXT, reprompt)
        assert calls == 1
        assert not outcome.valid
        assert outcome.dropped_fields == ["anxiety_score"]
        assert outcome.evidence.anxiety_score == []
        assert len(outcome.evidence.mood_score) == 1
        assert outcome.errors

    @pytest.mark.asyncio
    async def test_without_reprompt_drops_immediately(self):
        outcome = await EvidenceRepairPolicy(max_reprompts=3).resolve(self._bad(), TEXT)
        assert outcome.reprompts_used == 0
        assert outcome.dropped_fields == ["anxiety_score"]

    @pytest.mark.asyncio
    async def test_failing_reprompt_falls_back_to_drop(self):
        async def reprompt(evidence, errors):
            raise TimeoutError("upstream timed out")

        outcome = await EvidenceRepairPolicy(max_reprompts=2).resolve(self._bad(), TEXT, reprompt)
        assert outcome.reprompts_used == 1
        assert outcome.dropped_fields == ["anxiety_score"]

    def test_default_from_settings(self):
        assert EvidenceRepairPolicy().max_reprompts == 1
