# huddle/api/dependencies/context.py
from collections.abc import Callable
from datetime import datetime
from http import HTTPStatus
from typing import Optional

from fastapi import Header, HTTPException

from huddle.services.slot_grid import SlotGrid, get_slot_grid


async def get_actor_id(
    x_user_id: Optional[str] = Header(
        default=None,
        alias="X-User-Id",
        description="Identity of the calling user, set by the upstream auth layer.",
    ),
) -> str:
    """
    The acting user. Authentication itself happens upstream; this service
    only trusts the forwarded identity.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    return x_user_id.strip()


async def get_optional_actor_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> str | None:
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None


def get_grid() -> SlotGrid:
    return get_slot_grid()


def get_clock() -> Callable[[], datetime]:
    """
    Wall-clock source for services. Overridden in tests.
    """
    return datetime.now
