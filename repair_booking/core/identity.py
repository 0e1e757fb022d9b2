"""Caller identity as asserted by the upstream authentication gateway."""

from fastapi import Header, HTTPException


def get_current_user_id(x_user_id: int | None = Header(default=None)) -> int:
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing caller identity.")
    return x_user_id
