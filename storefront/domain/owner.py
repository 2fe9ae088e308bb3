# storefront/domain/owner.py
from dataclasses import dataclass
from typing import Union

from storefront.domain.errors import OwnerRequired


@dataclass(frozen=True)
class UserOwner:
    user_id: int


@dataclass(frozen=True)
class SessionOwner:
    session_id: str


Owner = Union[UserOwner, SessionOwner]


def resolve_owner(user_id: int | None, session_id: str | None) -> Owner:
    """
    Owner of a cart for the current request.
    Authenticated user wins over the guest session when both are present.
    """
    if user_id is not None:
        return UserOwner(user_id)
    if session_id:
        return SessionOwner(session_id)
    raise OwnerRequired()
