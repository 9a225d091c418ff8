"""Caller identity for FastAPI endpoints.

Authentication happens upstream; the gateway forwards the verified user id in
``X-User-Id`` and this service trusts it as given.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, status


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	display_name: Optional[str] = None


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None),
) -> AuthenticatedUser:
	user_id = (x_user_id or "").strip()
	if not user_id:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthenticated")
	return AuthenticatedUser(id=user_id)
