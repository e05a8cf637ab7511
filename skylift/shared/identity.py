"""Caller identity utilities.

Identity is carried in a context variable so that a long-lived booking
store can answer current_user() for whichever request is running.
"""

import contextvars
import re
from collections.abc import Iterator
from contextlib import contextmanager

from pydantic import BaseModel

_USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-:.@]{1,128}$")

_current_user: contextvars.ContextVar["UserIdentity | None"] = contextvars.ContextVar(
    "skylift_current_user", default=None
)


class UserIdentity(BaseModel):
    """An authenticated rider.

    Attributes:
        user_id: Opaque identifier issued by the identity provider.
        email: Optional contact email.
    """

    user_id: str
    email: str | None = None


def canonicalize_user_id(raw: str | None) -> str | None:
    """Normalize a user id taken from an inbound header.

    Args:
        raw: Raw header value.

    Returns:
        Stripped id, or None if empty or malformed.
    """
    if raw is None:
        return None
    value = raw.strip()
    if not _USER_ID_PATTERN.fullmatch(value):
        return None
    return value


def get_current_user() -> UserIdentity | None:
    """Return the identity bound to the running context, if any."""
    return _current_user.get()


def set_current_user(user: UserIdentity | None) -> contextvars.Token:
    """Bind an identity to the running context.

    Args:
        user: Identity to bind, or None to clear.

    Returns:
        Token for restoring the previous value.
    """
    return _current_user.set(user)


@contextmanager
def acting_as(user: UserIdentity | None) -> Iterator[None]:
    """Temporarily bind an identity for the duration of a block.

    Args:
        user: Identity to bind.

    Yields:
        Control with the identity bound.
    """
    token = _current_user.set(user)
    try:
        yield
    finally:
        _current_user.reset(token)
