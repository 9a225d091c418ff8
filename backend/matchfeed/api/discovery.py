"""REST endpoints for discovery search and saved views."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from matchfeed.domain.discovery import schemas
from matchfeed.domain.discovery.saved_views import SavedViewService
from matchfeed.domain.discovery.service import DiscoveryService
from matchfeed.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/discovery", tags=["discovery"])

_service = DiscoveryService()
_views = SavedViewService()


@router.post("/search", response_model=schemas.SearchResponse)
async def search_endpoint(
	payload: schemas.SearchRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.SearchResponse:
	return await _service.search(auth_user, payload)


@router.post("/views", response_model=schemas.SavedViewSummary, status_code=status.HTTP_201_CREATED)
async def create_view_endpoint(
	payload: schemas.SavedViewCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.SavedViewSummary:
	return await _views.save_view(auth_user.id, payload)


@router.get("/views", response_model=list[schemas.SavedViewSummary])
async def list_views_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> list[schemas.SavedViewSummary]:
	return await _views.list_views(auth_user.id)


@router.delete("/views/{view_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_view_endpoint(
	view_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> None:
	await _views.delete_view(auth_user.id, view_id)


@router.post("/views/{view_id}/default")
async def set_default_view_endpoint(
	view_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dict[str, str]:
	await _views.set_default_view(auth_user.id, view_id)
	return {"status": "ok"}
