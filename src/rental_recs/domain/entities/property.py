from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional


ACTIVE_STATUS = "active"


@dataclass(frozen=True)
class Property:
    id: int
    property_type: str
    price_per_night: float
    city: str
    guests: int
    amenity_ids: FrozenSet[int] = field(default_factory=frozenset)
    status: str = ACTIVE_STATUS

    @classmethod
    def create(cls, id: int, property_type: str = "apartment", price_per_night: float = 100.0,
               city: str = "", guests: int = 2, amenity_ids: Iterable[int] = None,
               status: str = ACTIVE_STATUS):
        return cls(
            id=id,
            property_type=property_type,
            price_per_night=float(price_per_night),
            city=city,
            guests=guests,
            amenity_ids=frozenset(amenity_ids or ()),
            status=status
        )

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS


@dataclass(frozen=True)
class PropertyStats:
    """Global booking volume and review quality for one property"""
    property_id: int
    booking_count: int
    avg_rating: Optional[float] = None

    @property
    def rating(self) -> float:
        return self.avg_rating if self.avg_rating is not None else 0.0
