"""
archrisk - AI-assisted architecture failure-risk analysis

Sends a free-text architecture description to an LLM and returns a
structured risk report, falling back to a deterministic seeded generator
when the model is unavailable or its answer cannot be parsed.
"""

__version__ = "0.1.0"

# Core API exports
from .analysis_pipeline import analyze, analyze_offline
from .config import ArchriskConfig
from .fallback import generate_fallback_analysis
from .models import AnalysisReport, ArchitectureInput, MissingFieldsError

__all__ = [
    "analyze",
    "analyze_offline",
    "generate_fallback_analysis",
    "AnalysisReport",
    "ArchitectureInput",
    "MissingFieldsError",
    "ArchriskConfig",
    "__version__",
]
