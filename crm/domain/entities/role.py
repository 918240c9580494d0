"""Domain entity representing a user role."""

from dataclasses import dataclass


@dataclass
class Role:
    """A role such as ``admin``, ``staff`` or ``user``.

    ``alias`` is the machine name used by role-targeted notifications.
    """

    id: int
    name: str
    alias: str


__all__ = ["Role"]
