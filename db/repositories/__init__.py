"""
Repository layer exports.
"""

from db.repositories.import_configuration_repository import ImportConfigurationRepository
from db.repositories.import_execution_history_repository import ImportExecutionHistoryRepository

__all__ = [
    "ImportConfigurationRepository",
    "ImportExecutionHistoryRepository",
]
