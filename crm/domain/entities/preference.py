"""Domain entity describing per-type notification preferences of a user."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .notification import NotificationType

SUPPORTED_LANGUAGES = ("en", "ar")
DEFAULT_LANGUAGE = "en"


@dataclass
class Preference:
    """How a user wants to receive one type of notification."""

    user_id: int
    notification_type: NotificationType
    in_app_enabled: bool = True
    email_enabled: bool = False
    threshold: dict[str, Any] | None = None
    language: str = DEFAULT_LANGUAGE
    id: int | None = None

    @property
    def is_default(self) -> bool:
        """``True`` when the preference was synthesized rather than stored."""

        return self.id is None


@dataclass(frozen=True)
class PreferencePatch:
    """Partial update applied by :meth:`PreferenceStore.set`.

    ``None`` leaves a field untouched. ``clear_threshold`` removes a stored
    threshold so the system default applies again.
    """

    in_app_enabled: bool | None = None
    email_enabled: bool | None = None
    threshold: dict[str, Any] | None = None
    language: str | None = None
    clear_threshold: bool = False


def default_preference(
    user_id: int, notification_type: NotificationType, *, language: str = DEFAULT_LANGUAGE
) -> Preference:
    """Return the preference applied when the user never configured ``notification_type``."""

    return Preference(
        user_id=user_id,
        notification_type=notification_type,
        in_app_enabled=True,
        email_enabled=False,
        threshold=None,
        language=language,
    )


__all__ = [
    "DEFAULT_LANGUAGE",
    "Preference",
    "PreferencePatch",
    "SUPPORTED_LANGUAGES",
    "default_preference",
]
