"""Challenge detection."""

from .detector import ChallengeClassifier, HeuristicChallengeClassifier

__all__ = ["ChallengeClassifier", "HeuristicChallengeClassifier"]
