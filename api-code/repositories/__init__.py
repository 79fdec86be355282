from .in_memory import InMemoryFederalistRepository
from .mongo import FederalistRepository

__all__ = ["FederalistRepository", "InMemoryFederalistRepository"]
