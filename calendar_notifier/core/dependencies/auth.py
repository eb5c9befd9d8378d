"""Caller identity.

Authentication happens upstream (gateway or session middleware); this
service trusts the ``X-User-ID`` header it forwards.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Header

from calendar_notifier.core.exceptions import MissingAuthenticationError


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header(alias="X-User-ID", max_length=255)] = None,
) -> str:
    """Return the caller's user id.

    Raises:
        MissingAuthenticationError: If the header is absent or blank.
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise MissingAuthenticationError()
    return user_id
