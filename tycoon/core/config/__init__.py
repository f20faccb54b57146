__all__ = [
    "DistributionSettings",
    "EngineSettings",
    "GradingSettings",
    "InterestSettings",
    "LedgerSettings",
    "LoggingSettings",
    "Secrets",
    "Settings",
    "StorageSettings",
]


from .engine import DistributionSettings, EngineSettings, GradingSettings, InterestSettings, LedgerSettings
from .logging import LoggingSettings
from .secrets import Secrets
from .settings import Settings
from .storage import StorageSettings
