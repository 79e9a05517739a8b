from .checkpoint_repository import CheckpointRepository
from .relationship_repository import RelationshipRepository, RelationshipRepositoryError

__all__ = [
    "CheckpointRepository",
    "RelationshipRepository",
    "RelationshipRepositoryError",
]
