"""Caller identity supplied by the upstream authentication gateway."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, HTTPException, Request

from planwarden.web.dependencies import get_container


@dataclass(frozen=True, slots=True)
class UserContext:
    """Immutable caller identity carried through each request."""

    user_id: str
    email: str | None = None
    name: str | None = None


async def get_current_user(
    request: Request,
    x_user_id: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
) -> UserContext:
    """Build the caller from gateway headers, filling contact details from the users table."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    if x_user_email:
        return UserContext(user_id=x_user_id, email=x_user_email, name=x_user_name)

    contact = await get_container(request).users.get_contact(x_user_id)
    if contact is None:
        return UserContext(user_id=x_user_id, name=x_user_name)
    return UserContext(user_id=x_user_id, email=contact.email, name=x_user_name or contact.name)
