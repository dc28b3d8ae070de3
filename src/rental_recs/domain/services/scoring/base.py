import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from ...entities.profile import UserProfile
from ...entities.recommendation import ScoredCandidate, SignalSource


class CandidateScorer(ABC):
    """One independent signal source producing scored candidates for a profile"""

    source: SignalSource

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__module__)

    @abstractmethod
    async def score(self, profile: UserProfile) -> List[ScoredCandidate]:
        pass

    async def score_safely(self, profile: UserProfile,
                           timeout: Optional[float] = None) -> List[ScoredCandidate]:
        """Score within a time limit; failures and timeouts yield no signal"""
        try:
            return await asyncio.wait_for(self.score(profile), timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.warning(
                f"{self.source.value} scorer exceeded {timeout}s for user {profile.user_id}; skipping signal"
            )
        except Exception as e:
            self.logger.warning(
                f"{self.source.value} scorer failed for user {profile.user_id}: {e}; skipping signal"
            )
        return []
