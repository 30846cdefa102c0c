"""
mission/scorer — anomaly scoring strategies.

Two interchangeable strategies behind AnomalyScorer:
  rules        deterministic rule table (RuleBasedScorer)
  precomputed  lookup over external model results (PrecomputedScorer)
"""

from typing import Optional

from mission.scorer.base import AnomalyScorer, priority_for
from mission.scorer.precomputed_scorer import PrecomputedLoader, PrecomputedScorer
from mission.scorer.rule_scorer import RuleBasedScorer, hour_of_day

SCORER_KINDS = ("rules", "precomputed")


def build_scorer(
    kind:   str,
    loader: Optional[PrecomputedLoader] = None,
    **rule_options,
) -> AnomalyScorer:
    """
    Construct the named strategy.
    'precomputed' requires a loader; rule_options go to RuleBasedScorer.
    """
    if kind == "rules":
        return RuleBasedScorer(**rule_options)
    if kind == "precomputed":
        if loader is None:
            raise ValueError("precomputed scorer needs a results loader")
        return PrecomputedScorer(loader)
    raise ValueError(f"Unknown scorer kind: {kind!r} (expected one of {SCORER_KINDS})")


__all__ = [
    "SCORER_KINDS",
    "AnomalyScorer",
    "PrecomputedScorer",
    "RuleBasedScorer",
    "build_scorer",
    "hour_of_day",
    "priority_for",
]
