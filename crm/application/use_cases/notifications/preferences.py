"""Per-user notification preferences with synthesized defaults."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.orm import Session

from crm.config import get_settings
from crm.domain.entities import (
    SUPPORTED_LANGUAGES,
    NotificationType,
    Preference,
    PreferencePatch,
    default_preference,
)
from crm.domain.exceptions import ValidationError
from crm.infrastructure.repositories import PreferenceRepository

from .thresholds import validate_threshold


class PreferenceStore:
    """Read preferences without writing defaults and upsert explicit changes."""

    def __init__(self, session: Session, *, default_language: str | None = None) -> None:
        self._repository = PreferenceRepository(session)
        self._default_language = default_language or get_settings().default_language

    def _default(self, user_id: int, notification_type: NotificationType) -> Preference:
        return default_preference(
            user_id, notification_type, language=self._default_language
        )

    def get(self, user_id: int, notification_type: NotificationType) -> Preference:
        stored = self._repository.get(user_id, notification_type)
        return stored or self._default(user_id, notification_type)

    def get_many(
        self, user_ids: Iterable[int], notification_type: NotificationType
    ) -> dict[int, Preference]:
        ids = list(dict.fromkeys(user_ids))
        stored = self._repository.get_many(ids, notification_type)
        return {
            user_id: stored.get(user_id) or self._default(user_id, notification_type)
            for user_id in ids
        }

    def list_for_user(self, user_id: int) -> list[Preference]:
        """Return one preference per notification type, stored or default."""

        stored = {
            preference.notification_type: preference
            for preference in self._repository.list_for_user(user_id)
        }
        return [
            stored.get(notification_type) or self._default(user_id, notification_type)
            for notification_type in NotificationType
        ]

    def set(
        self,
        user_id: int,
        notification_type: NotificationType,
        patch: PreferencePatch,
    ) -> Preference:
        if patch.language is not None and patch.language not in SUPPORTED_LANGUAGES:
            raise ValidationError(f"Unsupported language '{patch.language}'")
        if patch.threshold is not None and not patch.clear_threshold:
            patch = PreferencePatch(
                in_app_enabled=patch.in_app_enabled,
                email_enabled=patch.email_enabled,
                threshold=validate_threshold(notification_type, patch.threshold),
                language=patch.language,
            )
        return self._repository.upsert(
            user_id,
            notification_type,
            patch,
            defaults=self._default(user_id, notification_type),
        )


__all__ = ["PreferenceStore"]
