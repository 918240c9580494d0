"""Schemas for notification preference endpoints."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from crm.domain.entities import NotificationType


class PreferenceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    notification_type: NotificationType
    in_app_enabled: bool
    email_enabled: bool
    threshold: dict[str, Any] | None = None
    language: str
    is_default: bool


class PreferenceUpdate(BaseModel):
    """Partial change for one notification type; omitted fields stay as they are."""

    model_config = ConfigDict(extra="forbid")

    notification_type: NotificationType
    in_app_enabled: bool | None = None
    email_enabled: bool | None = None
    threshold: dict[str, float] | None = None
    clear_threshold: bool = False
    language: Literal["en", "ar"] | None = None


class PreferencesUpdate(BaseModel):
    preferences: list[PreferenceUpdate] = Field(..., min_length=1)


__all__ = ["PreferenceRead", "PreferenceUpdate", "PreferencesUpdate"]
