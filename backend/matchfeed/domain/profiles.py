"""Profile records consumed by discovery and the feed."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional


class SupportOrientation(str, Enum):
	PROVIDING = "providing"
	RECEIVING = "receiving"
	EITHER = "either"
	PRIVATE = "private"


class ReputationTier(str, Enum):
	"""Ordered trust classification, lowest first."""

	NEW = "new"
	ACTIVE = "active"
	ESTABLISHED = "established"
	TRUSTED = "trusted"
	DISTINGUISHED = "distinguished"

	@property
	def rank(self) -> int:
		return _TIER_ORDER.index(self)

	@classmethod
	def parse(cls, value: Optional[str]) -> "ReputationTier":
		"""Return the tier for ``value``; unknown or missing values map to ``NEW``."""
		if isinstance(value, cls):
			return value
		try:
			return cls(str(value).strip().lower())
		except ValueError:
			return cls.NEW


_TIER_ORDER = [
	ReputationTier.NEW,
	ReputationTier.ACTIVE,
	ReputationTier.ESTABLISHED,
	ReputationTier.TRUSTED,
	ReputationTier.DISTINGUISHED,
]

LOWEST_TIER = ReputationTier.NEW


@dataclass(slots=True, frozen=True)
class Coordinates:
	latitude: float
	longitude: float


@dataclass(slots=True)
class PrivateData:
	"""Access-restricted partition of a profile."""

	reputation_tier: ReputationTier = LOWEST_TIER
	profile_completeness: int = 0


@dataclass(slots=True)
class Profile:
	"""A user's matchable attributes, flattened from the profile document."""

	user_id: str
	display_name: str = ""
	gender_identity: Optional[str] = None
	support_orientation: Optional[str] = None
	interested_in: frozenset[str] = field(default_factory=frozenset)
	location: Optional[Coordinates] = None
	birth_date: Optional[date] = None
	identity_verified: bool = False
	lifestyle: Optional[str] = None
	connection_types: tuple[str, ...] = ()
	values: tuple[str, ...] = ()
	ethnicity: Optional[str] = None
	relationship_status: Optional[str] = None
	children: Optional[str] = None
	smoker: Optional[str] = None
	drinker: Optional[str] = None
	education: Optional[str] = None
	occupation: Optional[str] = None
	city: Optional[str] = None
	country: Optional[str] = None
	tagline: str = ""
	photo_url: Optional[str] = None
	photos: tuple[str, ...] = ()
	show_online_status: bool = True
	show_last_active: bool = True
	show_location: bool = True
	last_active_at: Optional[datetime] = None
	created_at: Optional[datetime] = None
	onboarding_completed: bool = False
	is_visible: bool = True
	is_disabled: bool = False
	pending_deletion: bool = False
	# Populated from the private partition by candidate retrieval.
	reputation_tier: ReputationTier = LOWEST_TIER
	profile_completeness: int = 0

	@property
	def is_searchable(self) -> bool:
		return (
			self.is_visible
			and not self.is_disabled
			and not self.pending_deletion
			and self.onboarding_completed
		)

	def age(self, today: Optional[date] = None) -> Optional[int]:
		return age_from_birth_date(self.birth_date, today=today)


def age_from_birth_date(birth_date: Optional[date], *, today: Optional[date] = None) -> Optional[int]:
	if birth_date is None:
		return None
	today = today or datetime.now(timezone.utc).date()
	years = today.year - birth_date.year
	if (today.month, today.day) < (birth_date.month, birth_date.day):
		years -= 1
	return years


def birth_date_bounds(
	*,
	min_age: Optional[int],
	max_age: Optional[int],
	today: Optional[date] = None,
) -> tuple[Optional[date], Optional[date]]:
	"""Translate an age range into an inclusive birth-date range.

	Someone aged ``max_age`` was born after ``today - (max_age + 1) years``;
	someone aged at least ``min_age`` was born on or before ``today - min_age years``.
	"""

	today = today or datetime.now(timezone.utc).date()
	earliest: Optional[date] = None
	latest: Optional[date] = None
	if max_age is not None:
		earliest = _shift_years(today, -(max_age + 1))
		earliest = date.fromordinal(earliest.toordinal() + 1)
	if min_age is not None:
		latest = _shift_years(today, -min_age)
	return earliest, latest


def _shift_years(value: date, years: int) -> date:
	try:
		return value.replace(year=value.year + years)
	except ValueError:
		# 29 February in a non-leap target year
		return value.replace(year=value.year + years, day=28)
