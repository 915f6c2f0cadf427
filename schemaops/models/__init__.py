from schemaops.models.event import Event
from schemaops.models.alert import Alert, ALERT_STATUSES, ALERT_STATUS_CONSTRAINT
from schemaops.models.trigger_word import TriggerWord, TRIGGER_WORDS_UNIQUE_INDEX
from schemaops.models.anti_blocking_settings import AntiBlockingSettings, SINGLETON_ID

__all__ = [
    "Event",
    "Alert",
    "ALERT_STATUSES",
    "ALERT_STATUS_CONSTRAINT",
    "TriggerWord",
    "TRIGGER_WORDS_UNIQUE_INDEX",
    "AntiBlockingSettings",
    "SINGLETON_ID",
]
