from .notification import (
    BroadcastCreate,
    BroadcastResult,
    MarkAllReadResponse,
    NotificationPageRead,
    NotificationRead,
    NotificationStatisticsRead,
    PurgeResult,
    RelatedEntityRead,
    UnreadCountRead,
)
from .preference import PreferenceRead, PreferenceUpdate, PreferencesUpdate

__all__ = [
    "BroadcastCreate",
    "BroadcastResult",
    "MarkAllReadResponse",
    "NotificationPageRead",
    "NotificationRead",
    "NotificationStatisticsRead",
    "PreferenceRead",
    "PreferenceUpdate",
    "PreferencesUpdate",
    "PurgeResult",
    "RelatedEntityRead",
    "UnreadCountRead",
]
