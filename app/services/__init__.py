"""
app/services package marker.
"""

from app.services.import_executor import ImportExecutor, get_import_executor
from app.services.import_notification_service import ImportNotificationService
from app.services.scheduled_import_service import (
    ImportConfigurationStore,
    ScheduledImportService,
)

__all__ = [
    "ImportConfigurationStore",
    "ImportExecutor",
    "ImportNotificationService",
    "ScheduledImportService",
    "get_import_executor",
]
