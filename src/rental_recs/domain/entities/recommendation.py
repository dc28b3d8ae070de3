from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class SignalSource(str, Enum):
    """Independent scoring strategies, in canonical merge order"""
    COLLABORATIVE = "collaborative"
    CONTENT = "content"
    POPULAR = "popular"


class RecommendationAction(str, Enum):
    SHOWN = "shown"
    CLICKED = "clicked"
    BOOKED = "booked"


@dataclass(frozen=True)
class ScoredCandidate:
    property_id: int
    raw_score: float
    source: SignalSource


@dataclass(frozen=True)
class CombinedRecommendation:
    property_id: int
    score: float  # 0-100 scale
    reasons: Tuple[SignalSource, ...]

    def __post_init__(self):
        if not self.reasons:
            raise ValueError(f"Recommendation for property {self.property_id} has no reasons")

    @property
    def primary_reason(self) -> SignalSource:
        return self.reasons[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "property_id": self.property_id,
            "score": self.score,
            "reasons": [reason.value for reason in self.reasons]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CombinedRecommendation":
        return cls(
            property_id=int(data["property_id"]),
            score=float(data["score"]),
            reasons=tuple(SignalSource(reason) for reason in data["reasons"])
        )


@dataclass
class PersistedRecommendation:
    """Row of the recommendation store, unique on (user_id, property_id)"""
    user_id: int
    property_id: int
    score: float
    reason: str
    factors: Dict[str, Any]
    valid_until: datetime
    shown: bool = False
    clicked: bool = False
    booked: bool = False

    @property
    def reasons(self) -> List[str]:
        return list(self.factors.get("reasons", []))

    def is_valid(self, now: datetime) -> bool:
        return self.valid_until > now


@dataclass
class RecommendationStats:
    total_recommendations: int = 0
    active_recommendations: int = 0
    shown_count: int = 0
    clicked_count: int = 0
    booked_count: int = 0
    click_through_rate: float = 0.0
    conversion_rate: float = 0.0
    average_score: Optional[float] = None
    top_performing_reasons: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_counts(cls, total: int, active: int, shown: int, clicked: int, booked: int,
                    average_score: Optional[float], booked_reason_counts: Dict[str, int],
                    top_n: int = 5) -> "RecommendationStats":
        """Derive rates (percent of shown rows) from raw store counts"""
        def rate(count: int) -> float:
            return round(count / shown * 100, 2) if shown > 0 else 0.0

        ranked = sorted(booked_reason_counts.items(), key=lambda item: (-item[1], item[0]))
        return cls(
            total_recommendations=total,
            active_recommendations=active,
            shown_count=shown,
            clicked_count=clicked,
            booked_count=booked,
            click_through_rate=rate(clicked),
            conversion_rate=rate(booked),
            average_score=round(float(average_score), 2) if average_score is not None else None,
            top_performing_reasons=dict(ranked[:top_n])
        )
