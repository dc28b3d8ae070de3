from typing import List, Optional, Sequence

import numpy as np

from ...entities.profile import UserProfile
from ...entities.property import Property
from ...entities.recommendation import ScoredCandidate, SignalSource
from ...repositories.property_repository import PropertyRepository
from ..recommendation_config import RecommendationConfig
from .base import CandidateScorer

SUB_SCORE_COUNT = 5


def amenity_overlap(candidate: Property, reference: Property) -> float:
    overlap = len(candidate.amenity_ids & reference.amenity_ids)
    return min(overlap / max(len(candidate.amenity_ids), 1), 1.0)


def similarity_matrix(candidates: Sequence[Property], references: Sequence[Property],
                      price_tolerance: float = 0.3, capacity_tolerance: int = 2) -> np.ndarray:
    """Candidate x reference similarity in [0, 1].

    Each cell averages five sub-scores: same type, price within tolerance of
    the reference price, same city, guest capacity within tolerance, and
    amenity overlap relative to the candidate's amenity count.
    """
    if not candidates or not references:
        return np.zeros((len(candidates), len(references)))

    cand_types = np.array([prop.property_type for prop in candidates], dtype=object)[:, None]
    ref_types = np.array([prop.property_type for prop in references], dtype=object)[None, :]
    cand_cities = np.array([prop.city for prop in candidates], dtype=object)[:, None]
    ref_cities = np.array([prop.city for prop in references], dtype=object)[None, :]
    cand_prices = np.array([prop.price_per_night for prop in candidates], dtype=float)[:, None]
    ref_prices = np.array([prop.price_per_night for prop in references], dtype=float)[None, :]
    cand_guests = np.array([prop.guests for prop in candidates], dtype=float)[:, None]
    ref_guests = np.array([prop.guests for prop in references], dtype=float)[None, :]

    type_match = (cand_types == ref_types).astype(float)
    city_match = (cand_cities == ref_cities).astype(float)

    price_gap = np.abs(cand_prices - ref_prices)
    priced = ref_prices > 0
    relative_gap = price_gap / np.where(priced, ref_prices, 1.0)
    # A free reference only matches an equally free candidate
    price_match = np.where(priced, relative_gap < price_tolerance, price_gap == 0).astype(float)

    capacity_match = (np.abs(cand_guests - ref_guests) <= capacity_tolerance).astype(float)

    amenities = np.array(
        [[amenity_overlap(candidate, reference) for reference in references] for candidate in candidates],
        dtype=float
    )

    total = type_match + price_match + city_match + capacity_match + amenities
    return total / SUB_SCORE_COUNT


def average_similarity(candidates: Sequence[Property], references: Sequence[Property],
                       price_tolerance: float = 0.3, capacity_tolerance: int = 2) -> np.ndarray:
    """Per-candidate similarity averaged over all reference properties"""
    matrix = similarity_matrix(candidates, references, price_tolerance, capacity_tolerance)
    if matrix.size == 0:
        return np.zeros(len(candidates))
    return matrix.mean(axis=1)


def rank_similar(candidates: Sequence[Property], scores: np.ndarray, threshold: float,
                 limit: int) -> List[tuple]:
    """(property_id, score) pairs above threshold, best first, id ascending on ties"""
    ranked = [
        (prop.id, float(score)) for prop, score in zip(candidates, scores) if score > threshold
    ]
    ranked.sort(key=lambda item: (-item[1], item[0]))
    return ranked[:limit]


class ContentScorer(CandidateScorer):
    """Scores properties by feature similarity to the user's booked and bookmarked places"""

    source = SignalSource.CONTENT

    def __init__(self, property_repository: PropertyRepository,
                 config: Optional[RecommendationConfig] = None):
        super().__init__()
        self.property_repository = property_repository
        self.config = config or RecommendationConfig()

    async def score(self, profile: UserProfile) -> List[ScoredCandidate]:
        reference_ids = profile.reference_ids
        if not reference_ids:
            return []

        references = await self.property_repository.get_by_ids(sorted(reference_ids))
        if not references:
            return []

        candidates = await self.property_repository.get_active(exclude_ids=profile.excluded_ids)
        candidates = [prop for prop in candidates if prop.id not in profile.excluded_ids]
        if not candidates:
            return []

        scores = average_similarity(
            candidates,
            references,
            price_tolerance=self.config.price_similarity_tolerance,
            capacity_tolerance=self.config.guest_capacity_tolerance
        )
        ranked = rank_similar(
            candidates, scores, self.config.content_similarity_threshold, self.config.content_limit
        )
        return [ScoredCandidate(property_id, score, self.source) for property_id, score in ranked]
