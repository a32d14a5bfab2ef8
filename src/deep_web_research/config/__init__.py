from .settings import RuntimeSettings, Settings, settings
from .vocabulary import DEFAULT_TABLES, VOCABULARY_VERSION, HeuristicTables

__all__ = [
    "RuntimeSettings",
    "Settings",
    "settings",
    "HeuristicTables",
    "DEFAULT_TABLES",
    "VOCABULARY_VERSION",
]
