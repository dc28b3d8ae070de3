from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from .property import Property


VIEW = "view"
BOOKMARK = "bookmark"
COMPLETED = "completed"


@dataclass(frozen=True)
class BehaviorEvent:
    user_id: int
    property_id: int
    action: str  # "view", "bookmark", "search", ...
    action_at: datetime


@dataclass(frozen=True)
class Booking:
    id: int
    user_id: int
    property_id: int
    status: str
    created_at: Optional[datetime] = None
    property: Optional[Property] = None


@dataclass(frozen=True)
class BehaviorQuery:
    """Filters for reading a user's behavior events.

    Repositories translate this into a single query; there is no open-ended
    builder. Only events strictly after ``since`` match.
    """
    user_id: int
    actions: Tuple[str, ...] = (VIEW, BOOKMARK)
    since: Optional[datetime] = None
    limit: Optional[int] = None

    def matches(self, event: BehaviorEvent) -> bool:
        if event.user_id != self.user_id:
            return False
        if self.actions and event.action not in self.actions:
            return False
        if self.since is not None and event.action_at <= self.since:
            return False
        return True
