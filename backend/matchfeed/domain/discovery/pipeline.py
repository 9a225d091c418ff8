"""In-process refine, rank and paginate stage of Discovery search."""

from __future__ import annotations

import base64
import json
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional, Sequence

from matchfeed.domain import geo, matching
from matchfeed.domain.discovery.models import Page, RankedCandidate
from matchfeed.domain.discovery.schemas import SearchFilters, SearchRequest, SearchSort, SortDirection, SortField
from matchfeed.domain.exceptions import ValidationError
from matchfeed.domain.profiles import Coordinates, Profile

ONLINE_WINDOW = timedelta(minutes=15)
ACTIVE_WINDOW = timedelta(hours=24)

SortKey = tuple[int, float, int, str]


def _lowered(values: Iterable[str]) -> set[str]:
	return {str(value).strip().lower() for value in values if value}


def _member(value: Optional[str], allowed: Sequence[str]) -> bool:
	if not allowed:
		return True
	return (value or "").strip().lower() in _lowered(allowed)


def _overlaps(values: Sequence[str], allowed: Sequence[str]) -> bool:
	if not allowed:
		return True
	return bool(_lowered(values) & _lowered(allowed))


def is_online(profile: Profile, now: datetime) -> bool:
	return profile.last_active_at is not None and profile.last_active_at > now - ONLINE_WINDOW


def _passes_filters(
	profile: Profile,
	distance: Optional[int],
	filters: SearchFilters,
	*,
	requester: Optional[Profile],
	now: datetime,
) -> bool:
	if requester is not None:
		# Implicit compatibility for whichever side the caller did not filter on.
		if not filters.gender_identity and not matching.matches_gender_preference(
			profile.gender_identity, requester.interested_in
		):
			return False
		if not filters.support_orientation and not matching.matches_support_orientation(
			profile.support_orientation, requester.support_orientation
		):
			return False
	if not _member(profile.support_orientation, filters.support_orientation):
		return False
	if filters.verified_only and not profile.identity_verified:
		return False
	if not _overlaps(profile.connection_types, filters.connection_types):
		return False
	if not _overlaps(profile.values, filters.values):
		return False
	for field_name in ("ethnicity", "relationship_status", "children", "smoker", "drinker", "education"):
		if not _member(getattr(profile, field_name), getattr(filters, field_name)):
			return False
	if filters.online_now:
		if not is_online(profile, now):
			return False
	elif filters.active_recently:
		if profile.last_active_at is None or profile.last_active_at < now - ACTIVE_WINDOW:
			return False
	if filters.min_reputation_tier is not None and profile.reputation_tier.rank < filters.min_reputation_tier.rank:
		return False
	if (
		filters.min_profile_completeness is not None
		and profile.profile_completeness < filters.min_profile_completeness
	):
		return False
	# Unknown distance never fails the radius test.
	if filters.max_distance is not None and distance is not None and distance > filters.max_distance:
		return False
	return True


def refine(
	profiles: Iterable[Profile],
	filters: SearchFilters,
	*,
	requester_id: str,
	requester: Optional[Profile] = None,
	origin: Optional[Coordinates] = None,
	excluded: frozenset[str] = frozenset(),
	now: Optional[datetime] = None,
) -> list[RankedCandidate]:
	now = now or datetime.now(timezone.utc)
	refined: list[RankedCandidate] = []
	for profile in profiles:
		if profile.user_id == requester_id or profile.user_id in excluded:
			continue
		distance = geo.distance_miles(origin, profile.location)
		if _passes_filters(profile, distance, filters, requester=requester, now=now):
			refined.append(RankedCandidate(profile=profile, distance=distance))
	return refined


def _primary_value(candidate: RankedCandidate, field: SortField, today: date) -> Optional[float]:
	profile = candidate.profile
	if field == SortField.DISTANCE:
		return None if candidate.distance is None else float(candidate.distance)
	if field == SortField.LAST_ACTIVE:
		return None if profile.last_active_at is None else profile.last_active_at.timestamp()
	if field == SortField.NEWEST:
		return None if profile.created_at is None else profile.created_at.timestamp()
	if field == SortField.AGE:
		age = profile.age(today)
		return None if age is None else float(age)
	return float(profile.reputation_tier.rank)


def sort_key(candidate: RankedCandidate, sort: SearchSort, *, today: Optional[date] = None) -> SortKey:
	"""Total order used for ranking and keyset pagination.

	Missing primary values sort last in both directions. Equal primary values
	order by descending reputation tier whatever the direction, then by id.
	"""

	today = today or datetime.now(timezone.utc).date()
	value = _primary_value(candidate, sort.field, today)
	if value is None:
		return (1, 0.0, -candidate.profile.reputation_tier.rank, candidate.profile.user_id)
	directional = value if sort.direction == SortDirection.ASC else -value
	return (0, directional, -candidate.profile.reputation_tier.rank, candidate.profile.user_id)


def rank(candidates: Iterable[RankedCandidate], sort: SearchSort, *, today: Optional[date] = None) -> list[RankedCandidate]:
	today = today or datetime.now(timezone.utc).date()
	return sorted(candidates, key=lambda candidate: sort_key(candidate, sort, today=today))


def encode_cursor(key: SortKey, sort: SearchSort) -> str:
	payload = {"s": sort.token, "k": list(key)}
	blob = json.dumps(payload, separators=(",", ":"))
	return base64.urlsafe_b64encode(blob.encode("utf-8")).decode("ascii")


def decode_cursor(value: str, sort: SearchSort) -> SortKey:
	try:
		decoded = base64.urlsafe_b64decode(value.encode("ascii")).decode("utf-8")
		data = json.loads(decoded)
		missing, directional, tier, user_id = data["k"]
		token = data["s"]
		key: SortKey = (int(missing), float(directional), int(tier), str(user_id))
	except Exception as exc:
		raise ValidationError("bad_cursor") from exc
	if token != sort.token:
		raise ValidationError("cursor_sort_mismatch")
	return key


def paginate(
	ranked: Sequence[RankedCandidate],
	sort: SearchSort,
	*,
	limit: int,
	cursor: Optional[str] = None,
	offset: Optional[int] = None,
	today: Optional[date] = None,
) -> Page:
	today = today or datetime.now(timezone.utc).date()
	keys = [sort_key(candidate, sort, today=today) for candidate in ranked]
	start = 0
	if cursor:
		boundary = decode_cursor(cursor, sort)
		start = next((index for index, key in enumerate(keys) if key > boundary), len(keys))
	elif offset:
		start = min(offset, len(keys))
	end = start + limit
	items = list(ranked[start:end])
	has_more = end < len(ranked)
	next_cursor = encode_cursor(keys[end - 1], sort) if has_more and items else None
	return Page(items=items, has_more=has_more, next_cursor=next_cursor, total_estimate=len(ranked))


def run(
	profiles: Iterable[Profile],
	request: SearchRequest,
	*,
	requester_id: str,
	requester: Optional[Profile] = None,
	excluded: frozenset[str] = frozenset(),
	now: Optional[datetime] = None,
) -> Page:
	now = now or datetime.now(timezone.utc)
	origin: Optional[Coordinates] = None
	if request.location is not None:
		origin = Coordinates(latitude=request.location.latitude, longitude=request.location.longitude)
	elif requester is not None:
		origin = requester.location
	refined = refine(
		profiles,
		request.filters,
		requester_id=requester_id,
		requester=requester,
		origin=origin,
		excluded=excluded,
		now=now,
	)
	today = now.date()
	ranked = rank(refined, request.sort, today=today)
	return paginate(
		ranked,
		request.sort,
		limit=request.limit,
		cursor=request.cursor,
		offset=request.offset,
		today=today,
	)
