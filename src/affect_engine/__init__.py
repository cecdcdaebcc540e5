"""Affect Engine — personalised affect calibration and normalisation."""

from affect_engine.engine import AffectEngine, ExtractionScores

__version__ = "0.1.0"

__all__ = ["AffectEngine", "ExtractionScores", "__version__"]
