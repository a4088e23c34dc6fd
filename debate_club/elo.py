"""ELO rating arithmetic over a persisted rating table."""

import logging
import threading
from typing import Protocol

from debate_club.models import DrawUpdate, RatingChange, RatingUpdate

logger = logging.getLogger(__name__)

DEFAULT_RATING = 1500
K_FACTOR = 32


class RatingStore(Protocol):
    def get_elo_ratings(self) -> dict[str, int]: ...

    def save_elo_ratings(self, ratings: dict[str, int]) -> dict[str, int]: ...


def expected_score(rating: float, opponent_rating: float) -> float:
    """Probability that `rating` beats `opponent_rating`."""
    return 1 / (1 + 10 ** ((opponent_rating - rating) / 400))


def rated(rating: int, expected: float, actual: float, k_factor: int = K_FACTOR) -> int:
    return round(rating + k_factor * (actual - expected))


class EloRatings:
    """Rating engine bound to an explicit store.

    Every call is one load/compute/flush transaction; nothing is cached
    between calls. The lock keeps a single update in flight per engine.
    """

    def __init__(
        self,
        store: RatingStore,
        default_rating: int = DEFAULT_RATING,
        k_factor: int = K_FACTOR,
    ) -> None:
        self._store = store
        self._default = default_rating
        self._k = k_factor
        self._lock = threading.Lock()

    def _settle(self, id_a: str, id_b: str, actual_a: float) -> tuple[RatingChange, RatingChange]:
        with self._lock:
            ratings = self._store.get_elo_ratings()
            ratings.setdefault(id_a, self._default)
            ratings.setdefault(id_b, self._default)

            old_a, old_b = ratings[id_a], ratings[id_b]
            new_a = rated(old_a, expected_score(old_a, old_b), actual_a, self._k)
            new_b = rated(old_b, expected_score(old_b, old_a), 1 - actual_a, self._k)
            ratings[id_a], ratings[id_b] = new_a, new_b

            self._store.save_elo_ratings(ratings)

        logger.info("Ratings: %s %d -> %d, %s %d -> %d", id_a, old_a, new_a, id_b, old_b, new_b)
        return (
            RatingChange(model_id=id_a, old_rating=old_a, new_rating=new_a, change=new_a - old_a),
            RatingChange(model_id=id_b, old_rating=old_b, new_rating=new_b, change=new_b - old_b),
        )

    def update_ratings(self, winner_id: str, loser_id: str) -> RatingUpdate:
        winner, loser = self._settle(winner_id, loser_id, 1.0)
        return RatingUpdate(winner=winner, loser=loser)

    def update_ratings_with_draw(self, model_id1: str, model_id2: str) -> DrawUpdate:
        model1, model2 = self._settle(model_id1, model_id2, 0.5)
        return DrawUpdate(model1=model1, model2=model2)

    def get_rating(self, model_id: str) -> int:
        return self._store.get_elo_ratings().get(model_id, self._default)

    def get_rankings(self) -> list[tuple[str, int]]:
        """All known (model_id, rating) pairs, highest rating first."""
        return sorted(self._store.get_elo_ratings().items(), key=lambda item: item[1], reverse=True)
