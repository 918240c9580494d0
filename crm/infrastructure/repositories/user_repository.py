"""Persistence layer for user data."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from crm.domain.entities import Role, User
from crm.infrastructure.models import RoleModel, UserModel


class UserRepository:
    """Read access to CRM users used as the notification recipient directory."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> User | None:
        model = self._get_model(id=user_id)
        return self._to_entity(model) if model else None

    def list_active(self) -> Sequence[User]:
        query = (
            self._base_query()
            .filter(UserModel.deleted.is_(False))
            .order_by(UserModel.id)
        )
        return [self._to_entity(model) for model in query.all()]

    def list_by_roles(self, aliases: Iterable[str]) -> Sequence[User]:
        normalized = {alias.lower() for alias in aliases if alias}
        if not normalized:
            return []
        query = (
            self._base_query()
            .join(RoleModel, UserModel.role_id == RoleModel.id)
            .filter(UserModel.deleted.is_(False))
            .filter(func.lower(RoleModel.alias).in_(normalized))
            .order_by(UserModel.id)
        )
        return [self._to_entity(model) for model in query.all()]

    def get_many(self, user_ids: Iterable[int]) -> Sequence[User]:
        unique_ids = {int(user_id) for user_id in user_ids}
        if not unique_ids:
            return []
        query = (
            self._base_query()
            .filter(UserModel.id.in_(unique_ids))
            .filter(UserModel.deleted.is_(False))
            .order_by(UserModel.id)
        )
        return [self._to_entity(model) for model in query.all()]

    def create(self, user: User) -> User:
        model = UserModel(
            role_id=user.role.id,
            name=user.name,
            email=user.email,
            is_active=user.is_active,
            deleted=user.deleted,
        )
        if user.created_at is not None:
            model.created_at = user.created_at
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def _base_query(self):
        return self.session.query(UserModel).options(joinedload(UserModel.role))

    def _get_model(self, include_deleted: bool = False, **filters) -> UserModel | None:
        query = self._base_query()
        if not include_deleted:
            query = query.filter(UserModel.deleted.is_(False))
        return query.filter_by(**filters).first()

    @staticmethod
    def _to_entity(model: UserModel) -> User:
        return User(
            id=model.id,
            role=UserRepository._role_to_entity(model.role),
            name=model.name,
            email=model.email,
            is_active=model.is_active,
            deleted=model.deleted,
            created_at=model.created_at,
        )

    @staticmethod
    def _role_to_entity(model_role) -> Role:
        if model_role is None:
            msg = "User role is not set"
            raise ValueError(msg)
        return Role(id=model_role.id, name=model_role.name, alias=model_role.alias)


__all__ = ["UserRepository"]
