from typing import Collection, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..entities.recommendation import CombinedRecommendation, ScoredCandidate, SignalSource
from .recommendation_config import default_weights

ScoreDelta = Tuple[int, float, SignalSource]


def weighted_deltas(results: Mapping[SignalSource, Sequence[ScoredCandidate]],
                    weights: Mapping[SignalSource, float]) -> Iterator[ScoreDelta]:
    """(property_id, weighted score, source) for every non-zero contribution.

    Sources are visited in canonical SignalSource order whatever order the
    mapping was built in, so merging is independent of scorer completion order.
    """
    for source in SignalSource:
        weight = weights.get(source, 0.0)
        for candidate in results.get(source, ()):
            delta = candidate.raw_score * weight
            if delta != 0:
                yield candidate.property_id, delta, source


def fold_scores(deltas: Iterable[ScoreDelta]) -> Dict[int, Tuple[float, Tuple[SignalSource, ...]]]:
    """Sum deltas per property and collect distinct reasons in first-seen order"""
    totals: Dict[int, Tuple[float, Tuple[SignalSource, ...]]] = {}
    for property_id, delta, source in deltas:
        score, reasons = totals.get(property_id, (0.0, ()))
        if source not in reasons:
            reasons = reasons + (source,)
        totals[property_id] = (score + delta, reasons)
    return totals


class ScoreCombiner:
    """Weighted blend of the signal sources into one ranked list"""

    def __init__(self, weights: Optional[Mapping[SignalSource, float]] = None, limit: int = 20):
        self.weights = dict(weights) if weights is not None else default_weights()
        self.limit = limit

    def combine(self, results: Mapping[SignalSource, Sequence[ScoredCandidate]],
                exclude_ids: Collection[int] = ()) -> List[CombinedRecommendation]:
        totals = fold_scores(weighted_deltas(results, self.weights))
        # Rank on exact totals; rounding is for presentation only
        ranked = sorted(
            (
                (property_id, score, reasons)
                for property_id, (score, reasons) in totals.items()
                if property_id not in exclude_ids
            ),
            key=lambda item: (-item[1], item[0])
        )
        return [
            CombinedRecommendation(property_id=property_id, score=round(score * 100, 2), reasons=reasons)
            for property_id, score, reasons in ranked[:self.limit]
        ]
