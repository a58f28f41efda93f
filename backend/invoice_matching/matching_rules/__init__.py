"""
Matching Rules Module
"""

from .candidate_finder import CandidateIndex, find_candidates
from .match_classifier import MatchClassifier
from .confidence_scorer import ConfidenceScorer, ConfidenceResult, calculate_match_confidence

__all__ = [
    "CandidateIndex",
    "find_candidates",
    "MatchClassifier",
    "ConfidenceScorer",
    "ConfidenceResult",
    "calculate_match_confidence",
]
