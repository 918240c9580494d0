"""Recipient resolution strategies used by the dispatcher."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from crm.domain.entities import User

logger = logging.getLogger(__name__)


class UserDirectory(Protocol):
    """Read-only view of the user table needed to resolve recipients."""

    def list_active(self) -> Sequence[User]: ...

    def list_by_roles(self, aliases: Iterable[str]) -> Sequence[User]: ...

    def get_many(self, user_ids: Iterable[int]) -> Sequence[User]: ...


class RecipientStrategy(Protocol):
    is_broadcast: bool

    def resolve(self, directory: UserDirectory) -> list[User]: ...


@dataclass(frozen=True)
class AllUsers:
    """Every non-deleted user at dispatch time."""

    is_broadcast = True

    def resolve(self, directory: UserDirectory) -> list[User]:
        return list(directory.list_active())


@dataclass(frozen=True)
class ByRole:
    roles: tuple[str, ...]

    is_broadcast = True

    def resolve(self, directory: UserDirectory) -> list[User]:
        return list(directory.list_by_roles(self.roles))


@dataclass(frozen=True)
class ByIds:
    """Explicit recipients. Ids without a user row are dropped."""

    user_ids: tuple[int, ...] = field(default_factory=tuple)

    is_broadcast = False

    def resolve(self, directory: UserDirectory) -> list[User]:
        requested = list(dict.fromkeys(self.user_ids))
        users = list(directory.get_many(requested))
        found = {user.id for user in users}
        missing = [user_id for user_id in requested if user_id not in found]
        if missing:
            logger.warning("Dropping unknown notification recipients: %s", missing)
        return users


def recipient_strategy_for(
    *,
    explicit_recipients: Iterable[int] | None = None,
    target_roles: Iterable[str] | None = None,
) -> RecipientStrategy:
    """Pick the strategy for an event: explicit ids, then roles, then everyone."""

    if explicit_recipients is not None:
        return ByIds(tuple(int(user_id) for user_id in explicit_recipients))
    roles = tuple(role for role in (target_roles or ()) if role)
    if roles:
        return ByRole(roles)
    return AllUsers()


__all__ = [
    "AllUsers",
    "ByIds",
    "ByRole",
    "RecipientStrategy",
    "UserDirectory",
    "recipient_strategy_for",
]
