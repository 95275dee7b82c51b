"""Rating model and full-history recalculation."""

from domain.ratings.model import RatingModel, RatingParameters, display_rating
from domain.ratings.replay import RecalculationEngine, RecalculationSummary, RatingSnapshot, replay_history

__all__ = [
    "RatingModel",
    "RatingParameters",
    "RatingSnapshot",
    "RecalculationEngine",
    "RecalculationSummary",
    "display_rating",
    "replay_history",
]
