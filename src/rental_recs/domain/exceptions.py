"""Errors raised by the recommendation engine.

Only the ``*NotFoundError`` family reaches callers of the public operations;
store and scorer failures are logged and degraded inside the engine.
"""


class RecommendationError(Exception):
    """Base class for recommendation engine errors"""


class UserNotFoundError(RecommendationError, LookupError):
    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class PropertyNotFoundError(RecommendationError, LookupError):
    def __init__(self, property_id: int):
        self.property_id = property_id
        super().__init__(f"Property {property_id} not found")


class RecommendationNotFoundError(RecommendationError, LookupError):
    def __init__(self, user_id: int, property_id: int):
        self.user_id = user_id
        self.property_id = property_id
        super().__init__(f"No recommendation of property {property_id} for user {user_id}")


class StoreUnavailableError(RecommendationError):
    """A backing store (database or cache) could not be reached"""
