"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.import_configuration import AuthenticationType, ImportConfiguration, ScheduleFrequency
from db.models.import_execution_history import ImportExecutionHistory

__all__ = [
    "AuthenticationType",
    "ImportConfiguration",
    "ImportExecutionHistory",
    "ScheduleFrequency",
]
