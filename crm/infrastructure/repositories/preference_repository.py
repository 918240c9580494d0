"""Persistence layer for notification preferences."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crm.domain.entities import NotificationType, Preference, PreferencePatch
from crm.infrastructure.models import PreferenceModel


class PreferenceRepository:
    """Provide lookups and single-row upserts for :class:`Preference` rows."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int, notification_type: NotificationType) -> Preference | None:
        model = self._get_model(user_id, notification_type)
        return self._to_entity(model) if model else None

    def get_many(
        self, user_ids: Iterable[int], notification_type: NotificationType
    ) -> dict[int, Preference]:
        unique_ids = {int(user_id) for user_id in user_ids}
        if not unique_ids:
            return {}
        query = (
            self.session.query(PreferenceModel)
            .filter(PreferenceModel.user_id.in_(unique_ids))
            .filter(PreferenceModel.notification_type == notification_type.value)
        )
        return {model.user_id: self._to_entity(model) for model in query.all()}

    def list_for_user(self, user_id: int) -> Sequence[Preference]:
        query = (
            self.session.query(PreferenceModel)
            .filter(PreferenceModel.user_id == user_id)
            .order_by(PreferenceModel.notification_type)
        )
        return [self._to_entity(model) for model in query.all()]

    def upsert(
        self,
        user_id: int,
        notification_type: NotificationType,
        patch: PreferencePatch,
        *,
        defaults: Preference,
    ) -> Preference:
        """Apply ``patch`` to the stored row, inserting it from ``defaults`` first if absent.

        A concurrent insert of the same ``(user, type)`` pair trips the unique
        constraint; the row is then re-read and updated instead.
        """

        model = self._get_model(user_id, notification_type)
        if model is None:
            model = PreferenceModel(
                user_id=user_id,
                notification_type=notification_type.value,
                in_app_enabled=defaults.in_app_enabled,
                email_enabled=defaults.email_enabled,
                threshold=defaults.threshold,
                language=defaults.language,
            )
            self._apply_patch(model, patch)
            self.session.add(model)
            try:
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                model = self._get_model(user_id, notification_type)
                if model is None:
                    raise
            else:
                self.session.refresh(model)
                return self._to_entity(model)

        self._apply_patch(model, patch)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def _get_model(
        self, user_id: int, notification_type: NotificationType
    ) -> PreferenceModel | None:
        return (
            self.session.query(PreferenceModel)
            .filter(PreferenceModel.user_id == user_id)
            .filter(PreferenceModel.notification_type == notification_type.value)
            .first()
        )

    @staticmethod
    def _apply_patch(model: PreferenceModel, patch: PreferencePatch) -> None:
        if patch.in_app_enabled is not None:
            model.in_app_enabled = patch.in_app_enabled
        if patch.email_enabled is not None:
            model.email_enabled = patch.email_enabled
        if patch.clear_threshold:
            model.threshold = None
        elif patch.threshold is not None:
            model.threshold = dict(patch.threshold)
        if patch.language is not None:
            model.language = patch.language

    @staticmethod
    def _to_entity(model: PreferenceModel) -> Preference:
        return Preference(
            id=model.id,
            user_id=model.user_id,
            notification_type=NotificationType(model.notification_type),
            in_app_enabled=model.in_app_enabled,
            email_enabled=model.email_enabled,
            threshold=dict(model.threshold) if model.threshold else None,
            language=model.language,
        )


__all__ = ["PreferenceRepository"]
