"""Sortie evaluation engine - metrics, scoring, extraction and reports."""

from sortie.evaluation.analyze import (
    ExtractionError,
    analyze,
    analyze_events,
    extract,
    extract_from_events,
    slugify,
)
from sortie.evaluation.formatting import failed_criteria, format_report
from sortie.evaluation.metrics import SessionMetrics, collect_metrics
from sortie.evaluation.scorer import (
    ScoreComponent,
    compute_score,
    metric_points,
    score_components,
)

__all__ = [
    "ExtractionError",
    "ScoreComponent",
    "SessionMetrics",
    "analyze",
    "analyze_events",
    "collect_metrics",
    "compute_score",
    "extract",
    "extract_from_events",
    "failed_criteria",
    "format_report",
    "metric_points",
    "score_components",
    "slugify",
]
