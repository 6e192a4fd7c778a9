"""Request-scoped dependencies shared by the routers."""
from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException


def current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity, resolved upstream and forwarded in the X-User-Id header."""
    if not x_user_id:
        raise HTTPException(401, "Missing X-User-Id header")
    return x_user_id
