from abc import ABC, abstractmethod
from typing import List, Sequence


class UserRepository(ABC):

    @abstractmethod
    async def exists(self, user_id: int) -> bool:
        pass

    @abstractmethod
    async def get_active_user_ids(self, limit: int = 100, offset: int = 0) -> List[int]:
        pass

    @abstractmethod
    async def find_peer_user_ids(self, property_ids: Sequence[int], exclude_user_id: int,
                                 statuses: Sequence[str], limit: int = 50) -> List[int]:
        """Users other than ``exclude_user_id`` holding a booking in ``statuses`` for any of ``property_ids``"""
        pass
