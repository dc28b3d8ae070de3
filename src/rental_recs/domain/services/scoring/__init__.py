from .base import CandidateScorer
from .collaborative import CollaborativeScorer, collaborative_score
from .content import ContentScorer, average_similarity, similarity_matrix
from .popularity import PopularityScorer

__all__ = [
    'CandidateScorer',
    'CollaborativeScorer',
    'ContentScorer',
    'PopularityScorer',
    'collaborative_score',
    'average_similarity',
    'similarity_matrix'
]
