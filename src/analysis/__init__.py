"""Difference typing, pattern analysis and recommendations."""

from src.analysis.difference_classifier import (
    ClassifiedDifference,
    DifferenceClassification,
    DifferenceClassifier,
)
from src.analysis.difference_detector import DifferenceDetector
from src.analysis.issue_analyzer import IssueAnalyzer, calculate_parity_percentage
from src.analysis.recommendations import RecommendationEngine

__all__ = [
    "ClassifiedDifference",
    "DifferenceClassification",
    "DifferenceClassifier",
    "DifferenceDetector",
    "IssueAnalyzer",
    "RecommendationEngine",
    "calculate_parity_percentage",
]
