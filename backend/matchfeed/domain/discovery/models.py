"""Internal models for Discovery search."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from matchfeed.domain.profiles import Profile


@dataclass(slots=True)
class CandidateQuery:
	"""Predicates evaluated by the store in the index-narrowing stage."""

	exclude_user_id: Optional[str] = None
	gender_identities: tuple[str, ...] = ()
	lifestyles: tuple[str, ...] = ()
	birth_date_min: Optional[date] = None
	birth_date_max: Optional[date] = None
	limit: int = 500


@dataclass(slots=True)
class RankedCandidate:
	profile: Profile
	distance: Optional[int]


@dataclass(slots=True)
class Page:
	items: list[RankedCandidate]
	has_more: bool
	next_cursor: Optional[str]
	total_estimate: int


@dataclass(slots=True)
class SavedView:
	id: str
	user_id: str
	name: str
	filters: dict[str, Any] = field(default_factory=dict)
	sort: dict[str, Any] = field(default_factory=dict)
	is_default: bool = False
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None
