__all__ = [
    "PersistentContainer",
    "StorageContainer",
    "TycoonContainer",
]

from .storage import PersistentContainer, StorageContainer
from .tycoon import TycoonContainer
