"""Profile lifecycle endpoints owned by this service."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from matchfeed.domain.profile_service import ProfileService
from matchfeed.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/profile", tags=["profile"])

_service = ProfileService()


class OnboardingResponse(BaseModel):
	user_id: str
	searchable: bool
	already_completed: bool = False


@router.post("/onboarding/complete", response_model=OnboardingResponse)
async def complete_onboarding_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> OnboardingResponse:
	result = await _service.complete_onboarding(auth_user.id)
	return OnboardingResponse(
		user_id=result.user_id,
		searchable=result.searchable,
		already_completed=result.already_completed,
	)
