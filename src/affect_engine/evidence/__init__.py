"""Evidence span validation and repair for extraction output."""

from affect_engine.evidence.models import (
    EvidenceSpan,
    ExtractionEvidence,
    RepairOutcome,
    ValidationResult,
)
from affect_engine.evidence.repair import EvidenceRepairPolicy, drop_fields
from affect_engine.evidence.validation import validate_evidence_spans

__all__ = [
    "EvidenceRepairPolicy",
    "EvidenceSpan",
    "ExtractionEvidence",
    "RepairOutcome",
    "ValidationResult",
    "drop_fields",
    "validate_evidence_spans",
]
