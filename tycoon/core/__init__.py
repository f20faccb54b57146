__all__ = [
    "di",
    "TycoonContainer",
    "LoggingProvider",
    "Settings",
    "Secrets",
    "TimestampProvider",
]


from . import di
from .config import Secrets, Settings
from .container import TycoonContainer
from .provider import LoggingProvider, TimestampProvider
