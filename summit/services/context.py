"""
summit.services.context — Explicit Member Context
==================================================

Every bookkeeping call receives the acting member explicitly instead of
reading an ambient "current user".  The API builds one per request from
the bearer token (see :func:`summit.api.deps.get_member_context`).
"""

from __future__ import annotations

from dataclasses import dataclass

from summit.errors import AuthRequired


@dataclass(frozen=True, slots=True)
class MemberContext:
    member_id: str
    display_name: str | None = None
    timezone: str = "UTC"
    is_admin: bool = False


def require_member(ctx: MemberContext | None) -> MemberContext:
    """Return *ctx* or raise :class:`AuthRequired` if nobody is signed in."""
    if ctx is None or not ctx.member_id:
        raise AuthRequired()
    return ctx
