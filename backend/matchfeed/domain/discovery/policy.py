"""Rate limits and result privacy for Discovery search."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from matchfeed.domain.discovery import schemas
from matchfeed.domain.discovery.models import RankedCandidate
from matchfeed.domain.discovery.pipeline import is_online
from matchfeed.domain.exceptions import RateLimitError
from matchfeed.infra.rate_limit import allow
from matchfeed.settings import settings


async def enforce_rate_limit(user_id: str, *, kind: str = "search", limit: Optional[int] = None) -> None:
	"""Ensure the caller remains within the configured budget."""

	allowed = await allow(kind, user_id, limit=limit or settings.search_per_minute)
	if not allowed:
		raise RateLimitError("search_rate_limited")


def project_result(candidate: RankedCandidate, *, now: datetime) -> schemas.ProfileResult:
	"""Apply the candidate's own privacy toggles to the public result."""

	profile = candidate.profile
	online = is_online(profile, now)
	return schemas.ProfileResult(
		user_id=profile.user_id,
		display_name=profile.display_name,
		age=profile.age(now.date()),
		city=profile.city if profile.show_location else None,
		country=profile.country if profile.show_location else None,
		distance=candidate.distance,
		last_active_at=profile.last_active_at if profile.show_last_active and not online else None,
		is_online=profile.show_online_status and online,
		show_online_status=profile.show_online_status,
		show_last_active=profile.show_last_active,
		show_location=profile.show_location,
		gender_identity=profile.gender_identity,
		support_orientation=profile.support_orientation,
		lifestyle=profile.lifestyle,
		connection_types=list(profile.connection_types),
		values=list(profile.values),
		tagline=profile.tagline,
		photo_url=profile.photo_url or (profile.photos[0] if profile.photos else None),
		photos=list(profile.photos),
		identity_verified=profile.identity_verified,
		reputation_tier=profile.reputation_tier,
		ethnicity=profile.ethnicity,
		relationship_status=profile.relationship_status,
		children=profile.children,
		smoker=profile.smoker,
		drinker=profile.drinker,
		education=profile.education,
		occupation=profile.occupation,
	)
