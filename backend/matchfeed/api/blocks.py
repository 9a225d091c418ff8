"""REST endpoints for user blocks."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from matchfeed.domain.blocks import BlockService
from matchfeed.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/blocks", tags=["blocks"])

_service = BlockService()


class BlockStatus(BaseModel):
	user_id: str
	blocked: bool
	changed: bool


class BlockListResponse(BaseModel):
	blocked_user_ids: list[str]


@router.get("", response_model=BlockListResponse)
async def list_blocks_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> BlockListResponse:
	blocks = await _service.list_blocked(auth_user.id)
	return BlockListResponse(blocked_user_ids=sorted(blocks.blocked_by_me))


@router.post("/{target_id}", response_model=BlockStatus)
async def block_endpoint(
	target_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> BlockStatus:
	changed = await _service.block_user(auth_user.id, target_id)
	return BlockStatus(user_id=target_id, blocked=True, changed=changed)


@router.delete("/{target_id}", response_model=BlockStatus)
async def unblock_endpoint(
	target_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> BlockStatus:
	changed = await _service.unblock_user(auth_user.id, target_id)
	return BlockStatus(user_id=target_id, blocked=False, changed=changed)
